# FleetDesk - Audit Log Model

from datetime import datetime
from typing import Optional, Any
import json

from sqlalchemy import String, Integer, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class AuditLog(Base):
    """
    Audit trail for changes to projects, employees, time entries and
    approval requests.

    Actions:
        - INSERT: new_values contains the created record
        - UPDATE: old_values and new_values show before/after
        - DELETE: old_values contains the deleted record
        - RESTORE: new_values contains the restored record

    Driving journal entries keep their own event log (journal_changes)
    and are not written here.
    """

    __tablename__ = "audit_log"

    audit_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    table_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True
    )

    record_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True
    )

    # INSERT, UPDATE, DELETE, RESTORE
    action: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True
    )

    # Comma-separated field names (for UPDATE)
    changed_fields: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True
    )

    old_values: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    new_values: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    # Email of who made the change, or "system" for background jobs
    performed_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True
    )

    performed_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True
    )

    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # Supports IPv6
        nullable=True
    )

    # e.g., "approval 12", "auto clock-out"
    context: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.table_name}:{self.record_id} by {self.performed_by}>"

    def get_old_values(self) -> Optional[dict]:
        """Parse old_values JSON."""
        if self.old_values:
            return json.loads(self.old_values)
        return None

    def get_new_values(self) -> Optional[dict]:
        """Parse new_values JSON."""
        if self.new_values:
            return json.loads(self.new_values)
        return None

    def get_changes(self) -> dict[str, tuple[Any, Any]]:
        """
        Return a dict of {field_name: (old_value, new_value)} for changed fields.
        Only meaningful for UPDATE actions.
        """
        if self.action != "UPDATE":
            return {}

        old = self.get_old_values() or {}
        new = self.get_new_values() or {}

        changes = {}
        for field in (self.changed_fields or "").split(","):
            field = field.strip()
            if field:
                changes[field] = (old.get(field), new.get(field))

        return changes


def create_audit_entry(
    table_name: str,
    record_id: int,
    action: str,
    performed_by: str,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
    changed_fields: Optional[list[str]] = None,
    ip_address: Optional[str] = None,
    context: Optional[str] = None,
) -> AuditLog:
    """
    Factory function to create an AuditLog entry (not yet added to session).
    """
    return AuditLog(
        table_name=table_name,
        record_id=record_id,
        action=action,
        performed_by=performed_by,
        old_values=json.dumps(old_values, ensure_ascii=False) if old_values else None,
        new_values=json.dumps(new_values, ensure_ascii=False) if new_values else None,
        changed_fields=",".join(sorted(changed_fields)) if changed_fields else None,
        ip_address=ip_address,
        context=context,
    )
