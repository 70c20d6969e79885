# FleetDesk - Approval Request Model

from datetime import datetime
from typing import Optional, Any

from sqlalchemy import String, Integer, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


APPROVAL_STATUSES = ("pending", "approved", "rejected")


class ApprovalRequest(TimestampMixin, Base):
    """
    A proposed change to another record, held until an admin decides.

    original_data and requested_data are snapshots of the fields being
    changed. Approving copies requested_data onto the related record in
    the same transaction as the status change; applied_at is stamped when
    that copy succeeds.
    """

    __tablename__ = "approval_requests"

    __table_args__ = (
        Index("ix_approval_requests_related", "related_entity_type", "related_entity_id"),
    )

    request_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    # e.g., "time_adjustment"
    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )

    requester_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True
    )

    related_entity_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )

    # e.g., "TimeEntry"
    related_entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )

    original_data: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False
    )

    requested_data: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False
    )

    reason: Mapped[str] = mapped_column(
        String(1000),
        nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default="pending",
        nullable=False,
        index=True
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

    applied_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.request_id} {self.type} "
            f"{self.related_entity_type}:{self.related_entity_id} ({self.status})>"
        )

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"
