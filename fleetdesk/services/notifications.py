# FleetDesk - Notification Service

from typing import Optional, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.models.employee import Employee
from fleetdesk.models.notification import Notification
from fleetdesk.services.errors import NotFoundError


class NotificationNotFound(NotFoundError):
    pass


class NotificationService:
    """Creates and reads in-app notifications. The caller commits."""

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        recipient_email: str,
        type: str,
        title: str,
        message: str,
        priority: str = "normal",
        related_entity_id: Optional[int] = None,
        related_entity_type: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            recipient_email=recipient_email,
            type=type,
            title=title,
            message=message,
            priority=priority,
            related_entity_id=related_entity_id,
            related_entity_type=related_entity_type,
            payload=payload,
        )
        self.db.add(notification)
        return notification

    def admin_emails(self) -> list[str]:
        return list(
            self.db.execute(
                select(Employee.email)
                .where(Employee.role == "admin", Employee.is_active == True)  # noqa: E712
                .order_by(Employee.email)
            ).scalars()
        )

    def notify_admins(self, type: str, title: str, message: str, **kwargs) -> list[Notification]:
        return [self.notify(email, type, title, message, **kwargs) for email in self.admin_emails()]

    def list_for(self, recipient_email: str, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        query = select(Notification).where(Notification.recipient_email == recipient_email)
        if unread_only:
            query = query.where(Notification.is_read == False)  # noqa: E712
        return list(
            self.db.execute(
                query.order_by(Notification.created_at.desc(), Notification.notification_id.desc()).limit(limit)
            ).scalars()
        )

    def mark_read(self, notification_id: int, recipient_email: str) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if not notification or notification.recipient_email != recipient_email:
            raise NotificationNotFound(f"Notification {notification_id} not found")
        notification.is_read = True
        return notification
