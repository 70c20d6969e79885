# FleetDesk - Approval Routes
# Review queue for time adjustment requests

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.dependencies import get_client_ip, get_current_session, require_admin
from fleetdesk.services.approvals import ApprovalService
from fleetdesk.services.auth import AuthSession


router = APIRouter(prefix="/approvals", tags=["approvals"])


class ReviewDecision(BaseModel):
    comment: Optional[str] = None


class ApprovalRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: int
    type: str
    requester_email: str
    related_entity_id: int
    related_entity_type: str
    original_data: dict[str, Any]
    requested_data: dict[str, Any]
    reason: str
    status: str
    created_at: datetime
    reviewed_by: Optional[str]
    reviewed_at: Optional[datetime]
    review_comment: Optional[str]
    applied_at: Optional[datetime]


@router.get("", response_model=list[ApprovalRequestOut])
def list_requests(
    request: Request,
    status: Optional[str] = Query("pending", description="Empty for every status"),
    requester_email: Optional[str] = Query(None, description="Admins only"),
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Admins see the whole queue; everyone else sees their own requests."""
    service = ApprovalService(db, session, get_client_ip(request))
    return service.list_requests(status=status or None, requester_email=requester_email)


@router.get("/{request_id}", response_model=ApprovalRequestOut)
def get_request(
    request_id: int,
    request: Request,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return ApprovalService(db, session, get_client_ip(request)).get_request(request_id)


@router.post("/{request_id}/approve", response_model=ApprovalRequestOut)
def approve(
    request_id: int,
    payload: ReviewDecision,
    request: Request,
    admin: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Approve and apply the requested change.

    The request and its target are committed together; if applying fails
    nothing is saved and the request stays pending.
    """
    service = ApprovalService(db, admin, get_client_ip(request))
    approval = service.approve(request_id, payload.comment)
    db.commit()
    return approval


@router.post("/{request_id}/reject", response_model=ApprovalRequestOut)
def reject(
    request_id: int,
    payload: ReviewDecision,
    request: Request,
    admin: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = ApprovalService(db, admin, get_client_ip(request))
    approval = service.reject(request_id, payload.comment)
    db.commit()
    return approval
