# FleetDesk - Driving Journal Routes
# Trip listing, manual entry, classification and admin review

from datetime import date, datetime
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.dependencies import get_client_ip, get_current_session, require_admin
from fleetdesk.services.auth import AuthSession
from fleetdesk.services.classification import HistoryClassifier
from fleetdesk.services.journal import JournalService


router = APIRouter(prefix="/journal", tags=["journal"])

TripType = Literal["tjänst", "privat"]


# Request / response models

class ManualTripCreate(BaseModel):
    vehicle_id: str
    distance_km: float
    start_time: datetime
    end_time: Optional[datetime] = None
    trip_type: Optional[Literal["tjänst", "privat", "väntar"]] = None
    purpose: Optional[str] = None
    project_code: Optional[str] = None
    customer: Optional[str] = None
    notes: Optional[str] = None
    registration_number: Optional[str] = None


class GpsTripCreate(BaseModel):
    vehicle_id: str
    start_time: datetime
    distance_km: float
    end_time: Optional[datetime] = None
    registration_number: Optional[str] = None
    driver_email: Optional[str] = None
    driver_name: Optional[str] = None
    start_location: Optional[dict[str, Any]] = None
    end_location: Optional[dict[str, Any]] = None


class QuickClassify(BaseModel):
    trip_type: TripType


class Classify(BaseModel):
    trip_type: TripType
    purpose: str
    project_code: Optional[str] = None
    customer: Optional[str] = None
    notes: Optional[str] = None


class SuggestionRequest(BaseModel):
    trip_ids: Optional[list[int]] = None


class SuggestionOverrides(BaseModel):
    trip_type: Optional[TripType] = None
    purpose: Optional[str] = None
    project_code: Optional[str] = None
    customer: Optional[str] = None


class ReviewComment(BaseModel):
    comment: Optional[str] = None


class InfoRequest(BaseModel):
    comment: str = Field(..., min_length=1)


class JournalEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trip_id: int
    vehicle_id: str
    registration_number: Optional[str]
    driver_email: Optional[str]
    driver_name: Optional[str]
    start_time: datetime
    end_time: Optional[datetime]
    start_location: Optional[dict[str, Any]]
    end_location: Optional[dict[str, Any]]
    distance_km: float
    duration_minutes: Optional[float]
    trip_type: str
    status: str
    purpose: Optional[str]
    project_code: Optional[str]
    customer: Optional[str]
    notes: Optional[str]
    is_manual: bool
    suggested_classification: Optional[dict[str, Any]]
    anomaly_flag: bool
    anomaly_reason: Optional[str]
    reviewed_by: Optional[str]
    reviewed_at: Optional[datetime]
    review_comment: Optional[str]
    is_deleted: bool
    change_history: list[dict[str, Any]]


def _service(request: Request, session: AuthSession, db: Session) -> JournalService:
    return JournalService(db, session, get_client_ip(request))


# Listing and creation

@router.get("", response_model=list[JournalEntryOut])
def list_trips(
    request: Request,
    driver_email: Optional[str] = Query(None, description="Managers only"),
    vehicle_id: Optional[str] = Query(None),
    trip_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Trips, newest first. Deleted trips are never listed."""
    return _service(request, session, db).list_entries(
        driver_email=driver_email,
        vehicle_id=vehicle_id,
        trip_type=trip_type,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/{trip_id}", response_model=JournalEntryOut)
def get_trip(
    trip_id: int,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return _service(request, session, db).get_entry(trip_id)


@router.post("", response_model=JournalEntryOut, status_code=201)
def create_manual_trip(
    payload: ManualTripCreate,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).create_manual(**payload.model_dump())
    db.commit()
    return entry


@router.post("/gps", response_model=JournalEntryOut, status_code=201)
def record_gps_trip(
    payload: GpsTripCreate,
    request: Request,
    session: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Import a trip reported by a vehicle's GPS unit."""
    entry = _service(request, session, db).record_gps_trip(**payload.model_dump())
    db.commit()
    return entry


# Driver classification

@router.post("/{trip_id}/quick-classify", response_model=JournalEntryOut)
def quick_classify(
    trip_id: int,
    payload: QuickClassify,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).quick_classify(trip_id, payload.trip_type)
    db.commit()
    return entry


@router.post("/{trip_id}/classify", response_model=JournalEntryOut)
def classify(
    trip_id: int,
    payload: Classify,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Set type and purpose and submit the trip for review."""
    entry = _service(request, session, db).classify(
        trip_id,
        payload.trip_type,
        payload.purpose,
        project_code=payload.project_code,
        customer=payload.customer,
        notes=payload.notes,
    )
    db.commit()
    return entry


@router.post("/suggestions")
def request_suggestions(
    payload: SuggestionRequest,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[int, dict[str, Any]]:
    """
    Suggest classifications for unclassified trips from the driver's
    approved history. Suggestions are stored on the trip until accepted
    or rejected.
    """
    results = _service(request, session, db).request_suggestions(HistoryClassifier(db), payload.trip_ids)
    db.commit()
    return results


@router.post("/{trip_id}/suggestion/accept", response_model=JournalEntryOut)
def accept_suggestion(
    trip_id: int,
    payload: SuggestionOverrides,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    overrides = payload.model_dump(exclude_none=True)
    entry = _service(request, session, db).accept_suggestion(trip_id, overrides or None)
    db.commit()
    return entry


@router.post("/{trip_id}/suggestion/reject", response_model=JournalEntryOut)
def reject_suggestion(
    trip_id: int,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).reject_suggestion(trip_id)
    db.commit()
    return entry


# Admin review

@router.post("/{trip_id}/approve", response_model=JournalEntryOut)
def approve(
    trip_id: int,
    payload: ReviewComment,
    request: Request,
    session: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).approve(trip_id, payload.comment)
    db.commit()
    return entry


@router.post("/{trip_id}/request-info", response_model=JournalEntryOut)
def request_info(
    trip_id: int,
    payload: InfoRequest,
    request: Request,
    session: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).request_info(trip_id, payload.comment)
    db.commit()
    return entry


@router.post("/{trip_id}/reject", response_model=JournalEntryOut)
def reject(
    trip_id: int,
    payload: ReviewComment,
    request: Request,
    session: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).reject(trip_id, payload.comment)
    db.commit()
    return entry


@router.post("/{trip_id}/reject-draft", response_model=JournalEntryOut)
def reject_draft(
    trip_id: int,
    payload: ReviewComment,
    request: Request,
    session: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Send the trip back to the unclassified pool."""
    entry = _service(request, session, db).reject_draft(trip_id, payload.comment)
    db.commit()
    return entry


@router.delete("/{trip_id}", response_model=JournalEntryOut)
def delete_trip(
    trip_id: int,
    request: Request,
    comment: Optional[str] = Query(None),
    session: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).soft_delete(trip_id, comment)
    db.commit()
    return entry


@router.post("/{trip_id}/restore", response_model=JournalEntryOut)
def restore_trip(
    trip_id: int,
    payload: ReviewComment,
    request: Request,
    session: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    entry = _service(request, session, db).restore(trip_id, payload.comment)
    db.commit()
    return entry
