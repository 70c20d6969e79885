# FleetDesk - Project Budget Check
# Over-budget alerts raised after hours are allocated

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.logging import get_logger
from fleetdesk.models.project import Project
from fleetdesk.models.time_entry import TimeEntry
from fleetdesk.services.notifications import NotificationService
from fleetdesk.services.errors import NotFoundError
from fleetdesk.services.projects import resolve_project
from fleetdesk.services.reporting import budget_percentage


logger = get_logger(__name__)


@dataclass
class BudgetAlert:
    project_id: int
    project_code: str
    total_hours: float
    budget_hours: float
    overage_hours: float
    percentage_used: float
    recipients: list[str]


def project_keys(project: Project) -> set[str]:
    """Every key an allocation may use to refer to this project."""
    return {project.project_code, str(project.project_id)}


def project_allocated_hours(db: Session, project: Project) -> float:
    """Hours allocated to a project across all time entries."""
    keys = project_keys(project)
    total = 0.0
    for allocations in db.execute(select(TimeEntry.project_allocations)).scalars():
        for allocation in allocations or []:
            if str(allocation.get("project_id")) in keys:
                total += float(allocation.get("hours") or 0)
    return round(total, 2)


class BudgetService:
    """
    Checks the projects a time entry was allocated to and notifies the
    project manager and every admin about any that are over budget.
    """

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def check_time_entry(self, entry_id: int) -> list[BudgetAlert]:
        entry = self.db.get(TimeEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"Time entry {entry_id} not found")

        alerts = []
        seen: set[int] = set()
        for allocation in entry.project_allocations or []:
            project = resolve_project(self.db, allocation.get("project_id"))
            if project is None or project.project_id in seen:
                continue
            seen.add(project.project_id)

            alert = self.check_project(project)
            if alert is not None:
                alerts.append(alert)

        return alerts

    def check_project(self, project: Project) -> Optional[BudgetAlert]:
        if not project.budget_hours:
            return None

        total_hours = project_allocated_hours(self.db, project)
        if total_hours <= project.budget_hours:
            return None

        overage = round(total_hours - project.budget_hours, 2)
        _, percentage = budget_percentage(total_hours, project.budget_hours)
        payload = {
            "project_id": project.project_id,
            "project_name": project.name,
            "total_hours": total_hours,
            "budget_hours": project.budget_hours,
            "overage": overage,
        }

        recipients = []
        if project.project_manager_email:
            self.notifications.notify(
                recipient_email=project.project_manager_email,
                type="budget_exceeded",
                title=f"Projektbudget överskriden: {project.name}",
                message=(
                    f'Projektet "{project.name}" ({project.project_code}) har överskridit sin budget '
                    f"med {overage:.1f} timmar. Total använd tid: {total_hours:.1f}h av "
                    f"{project.budget_hours:g}h ({percentage:.1f}%)"
                ),
                priority="high",
                related_entity_id=project.project_id,
                related_entity_type="Project",
                payload=payload,
            )
            recipients.append(project.project_manager_email)

        for admin in self.notifications.notify_admins(
            type="budget_exceeded",
            title=f"Budget Alert: {project.name}",
            message=(
                f'Projektet "{project.name}" är {percentage:.1f}% av budget '
                f"({total_hours:.1f}h / {project.budget_hours:g}h)"
            ),
            priority="high",
            related_entity_id=project.project_id,
            related_entity_type="Project",
            payload=payload,
        ):
            recipients.append(admin.recipient_email)

        logger.warning(
            "project_over_budget",
            project_code=project.project_code,
            total_hours=total_hours,
            budget_hours=project.budget_hours,
            notified=len(recipients),
        )
        return BudgetAlert(
            project_id=project.project_id,
            project_code=project.project_code,
            total_hours=total_hours,
            budget_hours=project.budget_hours,
            overage_hours=overage,
            percentage_used=percentage,
            recipients=recipients,
        )


def run_budget_check(entry_id: int) -> None:
    """
    Background task: run the budget check in its own session.

    Failures are logged and dropped; the allocation that triggered the
    check is already committed.
    """
    from fleetdesk.database import get_db_context

    try:
        with get_db_context() as db:
            alerts = BudgetService(db).check_time_entry(entry_id)
            db.commit()
    except Exception:
        logger.exception("budget_check_failed", entry_id=entry_id)
        return

    if alerts:
        logger.info("budget_check_alerts", entry_id=entry_id, projects=[a.project_code for a in alerts])
