# FleetDesk - Time Entry Model

from datetime import datetime, date
from typing import Optional, Any

from sqlalchemy import (
    String, Boolean, Integer, DateTime, Date,
    Float, JSON, Index
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


TIME_ENTRY_STATUSES = ("active", "completed", "pending_review")

ALLOCATION_CATEGORIES = ("support_service", "install", "rental", "interntid")


class TimeEntry(TimestampMixin, Base):
    """
    One clock-in/out session for one employee on one date.

    Lifecycle:
        - clock-in creates the entry with status=active and a single
          zero-hour allocation to the chosen project
        - breaks are appended while active
        - clock-out sets clock_out_time; the entry becomes completed
          once its hours are allocated (immediately when there is a
          single allocation and no split)
        - a correction request moves it to pending_review until an
          admin approves or rejects the request

    At most one entry per employee is active at a time. The workflow
    enforces this, not the schema.

    JSON columns (breaks, project_allocations, locations) are replaced
    wholesale on every change, never mutated in place, so SQLAlchemy
    sees the assignment.

    Entries are never hard-deleted.
    """

    __tablename__ = "time_entries"

    __table_args__ = (
        Index("ix_time_entries_employee_date", "employee_email", "date"),
        Index("ix_time_entries_employee_status", "employee_email", "status"),
    )

    entry_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    # Whose time is this?
    employee_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True
    )

    # Calendar day of the clock-in
    entry_date: Mapped[date] = mapped_column(
        "date",
        Date,
        nullable=False
    )

    clock_in_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False
    )

    # NULL while the employee is still clocked in
    clock_out_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    # active, completed, pending_review
    status: Mapped[str] = mapped_column(
        String(20),
        default="active",
        nullable=False,
        index=True
    )

    # [{start_time, end_time, duration_minutes}, ...]
    breaks: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False
    )

    # Start of the break currently in progress, if any
    break_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    total_break_minutes: Mapped[float] = mapped_column(
        Float,
        default=0,
        nullable=False
    )

    # Net worked hours; set at clock-out
    total_hours: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    # [{project_id, hours, category, notes}, ...]
    project_allocations: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False
    )

    # {latitude, longitude, address}
    clock_in_location: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )

    clock_out_location: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    # Set when an approved correction rewrote the times
    edit_reason: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    edited_by: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )

    edited_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    # Raised by the long-running entry sweep
    anomaly_flag: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    anomaly_reason: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    def __repr__(self) -> str:
        out = self.clock_out_time.strftime("%H:%M") if self.clock_out_time else "--:--"
        return (
            f"<TimeEntry {self.entry_id} {self.employee_email} {self.entry_date} "
            f"{self.clock_in_time.strftime('%H:%M')}-{out} ({self.status})>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def on_break(self) -> bool:
        return self.break_started_at is not None

    @property
    def allocated_hours(self) -> float:
        """Sum of hours across all project allocations."""
        return round(sum(float(a.get("hours") or 0) for a in self.project_allocations or []), 2)
