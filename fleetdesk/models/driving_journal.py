# FleetDesk - Driving Journal Models

from datetime import datetime
from typing import Optional, Any

from sqlalchemy import (
    String, Boolean, Integer, DateTime, Float,
    JSON, ForeignKey, Index, Text, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, SoftDeleteMixin, utcnow


TRIP_TYPES = ("tjänst", "privat", "väntar")

JOURNAL_STATUSES = ("pending_review", "submitted", "approved", "rejected", "requires_info")

CHANGE_TYPES = (
    "created",
    "classified",
    "submitted",
    "ai_classified",
    "approved",
    "info_requested",
    "rejected",
    "draft_rejected",
    "deleted",
    "restored",
)


class DrivingJournalEntry(TimestampMixin, SoftDeleteMixin, Base):
    """
    One vehicle trip, either synced from GPS or entered by hand.

    State machine:
        väntar/pending_review --classify--> submitted
        submitted --approve--> approved
        submitted --request_info--> requires_info --classify--> submitted
        submitted --reject--> rejected
        any classified state --reject_draft--> väntar/pending_review

    trip_type=väntar always implies status=pending_review.

    Every transition appends one row to journal_changes. Rows are never
    updated or removed, so the history of an entry is its event log.
    Soft delete is a flag on top of whatever state the entry is in.
    """

    __tablename__ = "driving_journal_entries"

    __table_args__ = (
        Index("ix_journal_driver_start", "driver_email", "start_time"),
        Index("ix_journal_vehicle_start", "vehicle_id", "start_time"),
    )

    trip_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    vehicle_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True
    )

    registration_number: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True
    )

    # Missing for GPS trips the tracker could not attribute to a driver
    driver_email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )

    driver_name: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True
    )

    start_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False
    )

    end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    # {latitude, longitude, address}
    start_location: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )

    end_location: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )

    distance_km: Mapped[float] = mapped_column(
        Float,
        default=0,
        nullable=False
    )

    duration_minutes: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    # tjänst (business), privat (private), väntar (not yet classified)
    trip_type: Mapped[str] = mapped_column(
        String(10),
        default="väntar",
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default="pending_review",
        nullable=False,
        index=True
    )

    purpose: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    project_code: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )

    project_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("projects.project_id", ondelete="SET NULL"),
        nullable=True
    )

    customer: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    is_manual: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    # Classifier proposal awaiting review: {trip_type, purpose, project_code, customer, confidence}
    suggested_classification: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )

    # Completeness problems found when the trip was recorded
    anomaly_flag: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    anomaly_reason: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    reviewed_by: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )

    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    review_comment: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True
    )

    changes: Mapped[list["JournalChange"]] = relationship(
        "JournalChange",
        back_populates="entry",
        order_by="JournalChange.sequence",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        deleted = " [DELETED]" if self.is_deleted else ""
        return (
            f"<DrivingJournalEntry {self.trip_id} {self.vehicle_id} "
            f"{self.distance_km}km {self.trip_type}/{self.status}{deleted}>"
        )

    @property
    def change_history(self) -> list[dict[str, Any]]:
        """The event log as plain dicts, oldest first."""
        return [change.to_dict() for change in self.changes]

    def record_change(
        self,
        change_type: str,
        changed_by: str,
        comment: Optional[str] = None,
    ) -> "JournalChange":
        """Append one event to the log. The caller owns the session."""
        change = JournalChange(
            sequence=len(self.changes) + 1,
            change_type=change_type,
            changed_by=changed_by,
            comment=comment,
            timestamp=utcnow(),
        )
        self.changes.append(change)
        return change


class JournalChange(Base):
    """
    One event in a journal entry's history.

    Append-only: (trip_id, sequence) is unique and rows are never updated.
    """

    __tablename__ = "journal_changes"

    __table_args__ = (
        UniqueConstraint("trip_id", "sequence", name="uq_journal_changes_trip_sequence"),
    )

    change_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    trip_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("driving_journal_entries.trip_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # 1-based position in the entry's history
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )

    timestamp: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )

    changed_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )

    change_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False
    )

    comment: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True
    )

    entry: Mapped["DrivingJournalEntry"] = relationship(
        "DrivingJournalEntry",
        back_populates="changes"
    )

    def __repr__(self) -> str:
        return f"<JournalChange {self.trip_id}#{self.sequence} {self.change_type} by {self.changed_by}>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "changed_by": self.changed_by,
            "change_type": self.change_type,
            "comment": self.comment,
        }
