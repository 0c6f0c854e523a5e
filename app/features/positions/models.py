"""
Position model: a job title, optionally scoped to one department.
"""
from decimal import Decimal
from sqlalchemy import String, Boolean, ForeignKey, Text, Integer, Numeric, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, SoftDeleteMixin, generate_ulid


class Position(Base, TimestampMixin, SoftDeleteMixin):
    """
    Position model.

    A position without a department is unscoped and may be held by users
    of any department.
    """
    __tablename__ = "positions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    department_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    salary_min: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    salary_max: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    salary_currency: Mapped[str] = mapped_column(String(3), default="IDR", nullable=False)
    required_skills: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Position(id={self.id}, code={self.code!r}, department_id={self.department_id})>"
