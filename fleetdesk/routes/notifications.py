# FleetDesk - Notification Routes

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.dependencies import get_current_session
from fleetdesk.services.auth import AuthSession
from fleetdesk.services.notifications import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: int
    type: str
    title: str
    message: str
    priority: str
    is_read: bool
    related_entity_id: Optional[int]
    related_entity_type: Optional[str]
    payload: Optional[dict[str, Any]]
    created_at: datetime


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return NotificationService(db).list_for(session.email, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: int,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    notification = NotificationService(db).mark_read(notification_id, session.email)
    db.commit()
    return notification
