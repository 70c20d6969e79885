# FleetDesk - SQLAlchemy Models

from .base import Base, TimestampMixin, SoftDeleteMixin, utcnow
from .employee import Employee
from .project import Project
from .time_entry import TimeEntry
from .driving_journal import DrivingJournalEntry, JournalChange
from .approval_request import ApprovalRequest
from .notification import Notification
from .audit_log import AuditLog
from .user_session import UserSession

__all__ = [
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utcnow",
    "Employee",
    "Project",
    "TimeEntry",
    "DrivingJournalEntry",
    "JournalChange",
    "ApprovalRequest",
    "Notification",
    "AuditLog",
    "UserSession",
]
