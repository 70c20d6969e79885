# FleetDesk - Project Service
# Admin CRUD for projects and resolution of allocation project keys

from typing import Optional, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.logging import get_logger
from fleetdesk.models.project import Project, PROJECT_STATUSES
from fleetdesk.services.audit import AuditService
from fleetdesk.services.auth import AuthSession, require_admin_session
from fleetdesk.services.errors import NotFoundError


logger = get_logger(__name__)


class ProjectNotFound(NotFoundError):
    pass


EDITABLE_FIELDS = (
    "name",
    "project_code",
    "status",
    "customer",
    "budget_hours",
    "hourly_rate",
    "start_date",
    "end_date",
    "project_manager_email",
    "is_billable",
    "is_invoiced",
    "invoice_number",
)


def resolve_project(db: Session, key: Any) -> Optional[Project]:
    """
    Find the project an allocation or trip refers to.

    Keys are matched against project_code first, then the numeric id.
    """
    if key is None:
        return None
    key = str(key).strip()
    if not key:
        return None

    project = db.execute(
        select(Project).where(Project.project_code == key)
    ).scalar_one_or_none()
    if project is None and key.isdigit():
        project = db.get(Project, int(key))
    return project


class ProjectService:
    """
    Service for project management.

    Reads are open to every authenticated user; writes require admin.
    Deletes are hard deletes, recorded in the audit log first.
    """

    def __init__(self, db: Session, session: AuthSession, ip_address: Optional[str] = None):
        self.db = db
        self.session = session
        self.audit = AuditService(db, session.email, ip_address)

    def get_project(self, project_id: int) -> Project:
        project = self.db.get(Project, project_id)
        if not project:
            raise ProjectNotFound(f"Project {project_id} not found")
        return project

    def list_projects(self, status: Optional[str] = None) -> list[Project]:
        query = select(Project)
        if status:
            query = query.where(Project.status == status)
        return list(self.db.execute(query.order_by(Project.project_code)).scalars())

    def create_project(self, **fields) -> Project:
        require_admin_session(self.session, "create projects")
        data = self._validate(fields)
        self._check_code_unique(data["project_code"])

        project = Project(**data)
        self.db.add(project)
        self.db.flush()
        self.audit.log_insert(project)

        logger.info("project_created", project_code=project.project_code, by=self.session.email)
        return project

    def update_project(self, project_id: int, **fields) -> Project:
        require_admin_session(self.session, "edit projects")
        project = self.get_project(project_id)
        data = self._validate(fields, partial=True)

        if "project_code" in data and data["project_code"] != project.project_code:
            self._check_code_unique(data["project_code"])

        old_state = self.audit.capture_state(project)
        for key, value in data.items():
            setattr(project, key, value)
        self.db.flush()
        self.audit.log_update(project, old_state)
        return project

    def delete_project(self, project_id: int) -> None:
        require_admin_session(self.session, "delete projects")
        project = self.get_project(project_id)
        self.audit.log_delete(project)
        self.db.delete(project)
        self.db.flush()
        logger.info("project_deleted", project_id=project_id, by=self.session.email)

    def _check_code_unique(self, project_code: str) -> None:
        existing = self.db.execute(
            select(Project.project_id).where(Project.project_code == project_code)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValueError(f"Project code {project_code} is already in use")

    def _validate(self, fields: dict[str, Any], partial: bool = False) -> dict[str, Any]:
        data = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}

        if not partial:
            for required in ("name", "project_code"):
                if not (data.get(required) or "").strip():
                    raise ValueError(f"{required} is required")

        for key in ("name", "project_code"):
            if key in data:
                if not (data[key] or "").strip():
                    raise ValueError(f"{key} cannot be empty")
                data[key] = data[key].strip()

        if "status" in data and data["status"] not in PROJECT_STATUSES:
            raise ValueError(f"Invalid project status: {data['status']}")

        for key in ("budget_hours", "hourly_rate"):
            if data.get(key) is not None and data[key] < 0:
                raise ValueError(f"{key} cannot be negative")

        start = data.get("start_date")
        end = data.get("end_date")
        if start and end and end < start:
            raise ValueError("end_date cannot be before start_date")

        return data
