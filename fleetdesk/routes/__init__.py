# FleetDesk - API Routes

from . import approvals, auth, journal, notifications, projects, reports, time
from .errors import register_error_handlers

ROUTERS = [
    auth.router,
    time.router,
    journal.router,
    approvals.router,
    projects.router,
    reports.router,
    notifications.router,
]

__all__ = ["ROUTERS", "register_error_handlers"]
