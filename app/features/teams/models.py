"""
Team and TeamMember models.
"""
import enum
from datetime import date, datetime
from sqlalchemy import String, ForeignKey, Text, Integer, Date, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, SoftDeleteMixin, generate_ulid


class TeamType(str, enum.Enum):
    PERMANENT = "permanent"
    PROJECT = "project"
    CROSS_FUNCTIONAL = "cross_functional"


class TeamStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"


class Team(Base, TimestampMixin, SoftDeleteMixin):
    """
    Team model.

    A team with a department that is not cross-functional only accepts
    members from that department. max_members of None means unlimited.
    """
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    team_type: Mapped[TeamType] = mapped_column(
        Enum(TeamType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=TeamType.PERMANENT,
        nullable=False
    )
    status: Mapped[TeamStatus] = mapped_column(
        Enum(TeamStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=TeamStatus.ACTIVE,
        nullable=False
    )

    department_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    team_lead_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    max_members: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, code={self.code!r}, type={self.team_type})>"


class TeamMember(Base, TimestampMixin):
    """Membership of one user in one team."""
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    team_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role_in_team: Mapped[str] = mapped_column(String(100), nullable=False, default="Member")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<TeamMember(team_id={self.team_id}, user_id={self.user_id}, role={self.role_in_team!r})>"
