# FleetDesk - User Session Model
# Database-backed session storage for authentication

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, Boolean, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .employee import Employee


class UserSession(Base):
    """
    Database-backed user sessions.

    A login creates one row; logout or expiry deactivates it. The token is
    sent back as a cookie or as a bearer token.
    """

    __tablename__ = "user_sessions"

    __table_args__ = (
        Index("ix_user_sessions_employee_active", "employee_id", "is_active"),
    )

    session_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employees.employee_id"),
        nullable=False,
        index=True
    )

    # The session token (stored in cookie)
    session_token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )

    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    logged_out_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),
        nullable=True
    )

    user_agent: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    employee: Mapped["Employee"] = relationship("Employee")

    def __repr__(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"<UserSession {self.session_id} ({status}) for employee {self.employee_id}>"

    @property
    def is_expired(self) -> bool:
        """Check if session has expired."""
        return utcnow() > self.expires_at

    @property
    def is_valid(self) -> bool:
        """Check if session is valid (active and not expired)."""
        return self.is_active and not self.is_expired
