# FleetDesk - Notification Model

from typing import Optional, Any

from sqlalchemy import String, Boolean, Integer, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Notification(TimestampMixin, Base):
    """
    An in-app message for one recipient.

    Created by background checks (budget overruns, forgotten clock-outs).
    Delivery beyond the list endpoint is handled elsewhere.
    """

    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_email", "is_read"),
    )

    notification_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    recipient_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )

    # budget_exceeded, forgot_clock_out, system, ...
    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False
    )

    message: Mapped[str] = mapped_column(
        String(2000),
        nullable=False
    )

    # low, normal, high
    priority: Mapped[str] = mapped_column(
        String(10),
        default="normal",
        nullable=False
    )

    is_read: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    related_entity_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True
    )

    related_entity_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )

    payload: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<Notification {self.notification_id} {self.type} -> {self.recipient_email}>"
