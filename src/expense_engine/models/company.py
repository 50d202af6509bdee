"""Company and user models."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_engine.models.base import Base, TimestampMixin


class Company(Base, TimestampMixin):
    """Tenant company. Expenses are converted into its currency."""

    __tablename__ = "company"

    company_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    country: Mapped[str] = mapped_column(String, nullable=False)

    # Relationships
    users: Mapped[list[User]] = relationship(back_populates="company")


class User(Base, TimestampMixin):
    """Employee, manager, or admin of a company."""

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    manager_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'manager', 'employee')",
            name="app_user_role_check",
        ),
    )

    # Relationships
    company: Mapped[Company] = relationship(back_populates="users")
    manager: Mapped[User | None] = relationship(remote_side=[user_id])

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
