"""
Assignment history: one row per period a user held a department/position.
"""
from datetime import date
from sqlalchemy import String, ForeignKey, Date, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


# Reasons recorded on history rows
TRANSFER_REASONS = ("new_hire", "promotion", "transfer", "restructure", "demotion", "other")


class AssignmentHistory(Base, TimestampMixin):
    """
    A closed or open assignment period.

    The row with end_date NULL is the user's current assignment.
    """
    __tablename__ = "assignment_history"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    department_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    position_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("positions.id", ondelete="SET NULL"),
        nullable=True
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AssignmentHistory(user_id={self.user_id}, department_id={self.department_id}, "
            f"position_id={self.position_id}, effective={self.effective_date}, end={self.end_date})>"
        )
