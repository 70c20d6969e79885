# FleetDesk - Project Model

from datetime import date
from typing import Optional

from sqlalchemy import String, Boolean, Integer, Date, Float
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


PROJECT_STATUSES = ("planerat", "pågående", "avslutat", "pausat")


class Project(TimestampMixin, Base):
    """
    A cost center / job that time can be allocated to.

    budget_hours and hourly_rate are both optional. When present, the
    accumulated allocated hours are compared against the budget and
    multiplied by the rate for the estimated cost.

    Projects are hard-deleted; the audit log keeps the last state.
    """

    __tablename__ = "projects"

    project_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False
    )

    # Human key used in allocations and journal entries (e.g., "P-1042")
    project_code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default="planerat",
        nullable=False
    )

    customer: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True
    )

    budget_hours: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    hourly_rate: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    start_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True
    )

    end_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True
    )

    # Receives the over-budget notification
    project_manager_email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )

    is_billable: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )

    is_invoiced: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    invoice_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<Project {self.project_code} {self.name!r} ({self.status})>"
