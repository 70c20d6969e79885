# FleetDesk - Project Routes
# Project CRUD, budget summary and change history

from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.dependencies import get_client_ip, get_current_session, require_admin
from fleetdesk.models.driving_journal import DrivingJournalEntry
from fleetdesk.models.time_entry import TimeEntry
from fleetdesk.services.audit import AuditQuery
from fleetdesk.services.auth import AuthSession
from fleetdesk.services.budget import project_keys
from fleetdesk.services.projects import ProjectService
from fleetdesk.services.reporting import project_summary


router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectBase(BaseModel):
    status: str = "planerat"
    customer: Optional[str] = None
    budget_hours: Optional[float] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    project_manager_email: Optional[str] = None
    is_billable: bool = True
    is_invoiced: bool = False
    invoice_number: Optional[str] = None


class ProjectCreate(ProjectBase):
    name: str
    project_code: str


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    project_code: Optional[str] = None
    status: Optional[str] = None
    customer: Optional[str] = None
    budget_hours: Optional[float] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    project_manager_email: Optional[str] = None
    is_billable: Optional[bool] = None
    is_invoiced: Optional[bool] = None
    invoice_number: Optional[str] = None


class ProjectOut(ProjectBase):
    model_config = ConfigDict(from_attributes=True)

    project_id: int
    name: str
    project_code: str
    created_at: datetime


class AuditEntryOut(BaseModel):
    audit_id: int
    action: str
    performed_by: str
    performed_at: datetime
    context: Optional[str]
    changes: dict[str, Any]


@router.get("", response_model=list[ProjectOut])
def list_projects(
    request: Request,
    status: Optional[str] = Query(None),
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return ProjectService(db, session, get_client_ip(request)).list_projects(status)


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(
    project_id: int,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return ProjectService(db, session, get_client_ip(request)).get_project(project_id)


@router.post("", response_model=ProjectOut, status_code=201)
def create_project(
    payload: ProjectCreate,
    request: Request,
    admin: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    project = ProjectService(db, admin, get_client_ip(request)).create_project(**payload.model_dump())
    db.commit()
    return project


@router.patch("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    request: Request,
    admin: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Partial update; only fields present in the body change."""
    service = ProjectService(db, admin, get_client_ip(request))
    project = service.update_project(project_id, **payload.model_dump(exclude_unset=True))
    db.commit()
    return project


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: int,
    request: Request,
    admin: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ProjectService(db, admin, get_client_ip(request)).delete_project(project_id)
    db.commit()
    return Response(status_code=204)


@router.get("/{project_id}/summary")
def get_project_summary(
    project_id: int,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Hours against budget, per-employee and per-category hours, and
    labour plus vehicle cost for one project.
    """
    project = ProjectService(db, session, get_client_ip(request)).get_project(project_id)

    entries = db.execute(select(TimeEntry)).scalars().all()
    trips = db.execute(
        select(DrivingJournalEntry).where(
            DrivingJournalEntry.project_id == project.project_id,
            DrivingJournalEntry.is_deleted == False,  # noqa: E712
        )
    ).scalars().all()

    return asdict(project_summary(project, entries, trips, project_keys(project)))


@router.get("/{project_id}/history", response_model=list[AuditEntryOut])
def get_project_history(
    project_id: int,
    admin: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Audit trail for the project, oldest first."""
    return [
        AuditEntryOut(
            audit_id=log.audit_id,
            action=log.action,
            performed_by=log.performed_by,
            performed_at=log.performed_at,
            context=log.context,
            changes={
                field: {"old": old, "new": new}
                for field, (old, new) in log.get_changes().items()
            } or (log.get_new_values() or log.get_old_values() or {}),
        )
        for log in AuditQuery(db).get_record_history("projects", project_id)
    ]
