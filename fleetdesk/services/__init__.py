# FleetDesk - Services
# Business logic layer

from .approvals import ApprovalService
from .audit import AuditService, AuditQuery
from .auth import AuthService, AuthSession, AuthenticationError, AuthorizationError
from .budget import BudgetService
from .errors import NotFoundError
from .journal import JournalService
from .notifications import NotificationService
from .projects import ProjectService
from .time_entry import TimeEntryService

__all__ = [
    "ApprovalService",
    "AuditService",
    "AuditQuery",
    "AuthService",
    "AuthSession",
    "AuthenticationError",
    "AuthorizationError",
    "BudgetService",
    "NotFoundError",
    "JournalService",
    "NotificationService",
    "ProjectService",
    "TimeEntryService",
]
