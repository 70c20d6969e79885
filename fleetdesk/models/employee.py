# FleetDesk - Employee Model

from typing import Optional

from sqlalchemy import String, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


ROLES = ("employee", "manager", "admin")


class Employee(TimestampMixin, Base):
    """
    A person who clocks time and/or drives company vehicles.

    Email is the identity key used across time entries, journal entries
    and approval requests. The numeric id is only used for sessions
    and the audit log.
    """

    __tablename__ = "employees"

    employee_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )

    full_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False
    )

    # employee, manager or admin
    role: Mapped[str] = mapped_column(
        String(20),
        default="employee",
        nullable=False
    )

    # bcrypt hash; NULL until a password is set
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Employee {self.email} ({self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_manager(self) -> bool:
        return self.role in ("manager", "admin")
