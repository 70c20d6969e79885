# FleetDesk - Time Entry Routes
# Clock in/out, breaks, project allocation and adjustment requests

from datetime import date, datetime, time
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.dependencies import get_client_ip, get_current_session
from fleetdesk.services.auth import AuthSession
from fleetdesk.services.budget import run_budget_check
from fleetdesk.services.time_entry import AllocationPrompt, TimeEntryService


router = APIRouter(prefix="/time", tags=["time"])


# Request / response models

class Location(BaseModel):
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    address: Optional[str] = None


class ClockInRequest(BaseModel):
    project_id: Optional[str] = None
    location: Optional[Location] = None
    notes: Optional[str] = None


class ClockOutRequest(BaseModel):
    location: Optional[Location] = None
    split: bool = False


class AllocationIn(BaseModel):
    project_id: Optional[str] = None
    hours: float = 0
    category: str = "interntid"
    notes: Optional[str] = None


class AllocationRequest(BaseModel):
    allocations: list[AllocationIn]
    confirm: bool = False


class AdjustmentRequest(BaseModel):
    clock_in: time
    clock_out: time
    total_break_minutes: float = Field(0, ge=0)
    reason: str


class TimeEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: int
    employee_email: str
    entry_date: date
    clock_in_time: datetime
    clock_out_time: Optional[datetime]
    status: str
    breaks: list[dict[str, Any]]
    break_started_at: Optional[datetime]
    total_break_minutes: float
    total_hours: Optional[float]
    project_allocations: list[dict[str, Any]]
    clock_in_location: Optional[dict[str, Any]]
    clock_out_location: Optional[dict[str, Any]]
    notes: Optional[str]
    edit_reason: Optional[str]
    edited_by: Optional[str]
    edited_at: Optional[datetime]
    anomaly_flag: bool
    anomaly_reason: Optional[str]


class AllocationView(BaseModel):
    entry: TimeEntryOut
    net_hours: float
    available_hours: float
    allocated_hours: float
    remaining_hours: float
    allocations: list[dict[str, Any]]


class ClockOutResponse(BaseModel):
    entry: TimeEntryOut
    needs_allocation: bool
    allocation: Optional[AllocationView] = None


class AdjustmentOut(BaseModel):
    request_id: int
    status: str
    entry_id: int
    requested_data: dict[str, Any]


def _dump_location(location: Optional[Location]) -> Optional[dict[str, Any]]:
    return location.model_dump(exclude_none=True) if location else None


def _allocation_view(prompt: AllocationPrompt) -> AllocationView:
    return AllocationView(
        entry=TimeEntryOut.model_validate(prompt.entry),
        net_hours=prompt.net_hours,
        available_hours=prompt.available_hours,
        allocated_hours=prompt.allocated_hours,
        remaining_hours=prompt.remaining_hours,
        allocations=prompt.allocations,
    )


# Routes

@router.post("/clock-in", response_model=TimeEntryOut, status_code=201)
def clock_in(
    payload: ClockInRequest,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Start work on a project. Only one active entry per employee."""
    service = TimeEntryService(db, session, get_client_ip(request))
    entry = service.clock_in(
        payload.project_id,
        location=_dump_location(payload.location),
        notes=payload.notes,
    )
    db.commit()
    return entry


@router.post("/break", response_model=Optional[TimeEntryOut])
def toggle_break(
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Start or end a break. Returns null when not clocked in."""
    service = TimeEntryService(db, session, get_client_ip(request))
    entry = service.toggle_break()
    db.commit()
    return entry


@router.post("/clock-out", response_model=ClockOutResponse)
def clock_out(
    payload: ClockOutRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Clock out.

    A single-project day is completed immediately. Otherwise (or with
    split=true) the response carries the allocation figures and the entry
    waits for POST /time/entries/{id}/allocations.
    """
    service = TimeEntryService(db, session, get_client_ip(request))
    result = service.clock_out(location=_dump_location(payload.location), split=payload.split)
    db.commit()

    if isinstance(result, AllocationPrompt):
        return ClockOutResponse(
            entry=TimeEntryOut.model_validate(result.entry),
            needs_allocation=True,
            allocation=_allocation_view(result),
        )

    background_tasks.add_task(run_budget_check, result.entry_id)
    return ClockOutResponse(entry=TimeEntryOut.model_validate(result), needs_allocation=False)


@router.get("/entries/{entry_id}/allocation", response_model=AllocationView)
def get_allocation(
    entry_id: int,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """The figures the allocation editor starts from."""
    service = TimeEntryService(db, session, get_client_ip(request))
    entry = service.get_entry(entry_id)
    return _allocation_view(service.allocation_prompt(entry))


@router.post("/entries/{entry_id}/allocations", response_model=TimeEntryOut)
def allocate_projects(
    entry_id: int,
    payload: AllocationRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Save the project split.

    409 when hours are left unallocated and confirm is false; 400 when
    more hours are allocated than are available.
    """
    service = TimeEntryService(db, session, get_client_ip(request))
    entry = service.allocate_projects(
        entry_id,
        [row.model_dump() for row in payload.allocations],
        confirm=payload.confirm,
    )
    db.commit()

    background_tasks.add_task(run_budget_check, entry.entry_id)
    return entry


@router.post("/entries/{entry_id}/adjustment", response_model=AdjustmentOut, status_code=201)
def request_adjustment(
    entry_id: int,
    payload: AdjustmentRequest,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Ask an admin to correct the times of a completed entry."""
    service = TimeEntryService(db, session, get_client_ip(request))
    approval = service.request_adjustment(
        entry_id,
        payload.clock_in,
        payload.clock_out,
        payload.total_break_minutes,
        payload.reason,
    )
    db.commit()
    return AdjustmentOut(
        request_id=approval.request_id,
        status=approval.status,
        entry_id=approval.related_entity_id,
        requested_data=approval.requested_data,
    )


@router.get("/entries", response_model=list[TimeEntryOut])
def list_entries(
    request: Request,
    employee_email: Optional[str] = Query(None, description="Managers only"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[str] = Query(None),
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    service = TimeEntryService(db, session, get_client_ip(request))
    return service.list_entries(
        employee_email=employee_email,
        start_date=start_date,
        end_date=end_date,
        status=status,
    )


@router.get("/entries/{entry_id}", response_model=TimeEntryOut)
def get_entry(
    entry_id: int,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return TimeEntryService(db, session, get_client_ip(request)).get_entry(entry_id)


@router.get("/active", response_model=Optional[TimeEntryOut])
def get_active(
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """The caller's active entry, or null."""
    return TimeEntryService(db, session, get_client_ip(request)).get_active_entry()
