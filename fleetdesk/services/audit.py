# FleetDesk - Audit Service
# Centralized service for logging data changes

from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Any

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.inspection import inspect

from fleetdesk.models.audit_log import AuditLog, create_audit_entry
from fleetdesk.models.base import Base


class AuditService:
    """
    Service for creating audit log entries.

    Usage:
        audit = AuditService(db, session.email, client_ip)

        # For inserts - call after flush to get the ID
        db.add(project)
        db.flush()
        audit.log_insert(project)

        # For updates - capture old values before modifying
        old_values = audit.capture_state(entry)
        entry.total_hours = 7.5
        audit.log_update(entry, old_values)

        # For hard deletes - call before db.delete()
        audit.log_delete(project)

    JSON columns are stored as-is; dates and decimals are converted to
    JSON-friendly values.
    """

    # Tables that should be audited
    AUDITED_TABLES = {
        "projects",
        "employees",
        "time_entries",
        "approval_requests",
    }

    # Fields to exclude from audit snapshots (sensitive or redundant)
    EXCLUDED_FIELDS = {
        "password_hash",
        "created_at",
        "modified_at",
    }

    def __init__(
        self,
        db: Session,
        performed_by: str,
        ip_address: Optional[str] = None,
        context: Optional[str] = None,
    ):
        self.db = db
        self.performed_by = performed_by
        self.ip_address = ip_address
        self.context = context

    def _serialize_value(self, value: Any) -> Any:
        """Convert a value to a JSON-serializable format."""
        if value is None:
            return None
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, (int, float, str, bool, dict, list)):
            return value
        return str(value)

    def _get_primary_key(self, instance: Base) -> int:
        mapper = inspect(type(instance))
        return getattr(instance, mapper.primary_key[0].key)

    def capture_state(self, instance: Base) -> dict[str, Any]:
        """
        Capture the current state of a model instance as a dict.

        Call this BEFORE making changes to capture the "old" state.
        """
        mapper = inspect(type(instance))
        state = {}

        for attr in mapper.column_attrs:
            if attr.key in self.EXCLUDED_FIELDS:
                continue
            state[attr.key] = self._serialize_value(getattr(instance, attr.key))

        return state

    def _diff_states(
        self,
        old_state: dict[str, Any],
        new_state: dict[str, Any]
    ) -> list[str]:
        """Compare two states and return list of changed field names."""
        all_keys = set(old_state) | set(new_state)
        return [key for key in all_keys if old_state.get(key) != new_state.get(key)]

    def _write(
        self,
        instance: Base,
        action: str,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        changed_fields: Optional[list[str]] = None,
        context: Optional[str] = None,
    ) -> AuditLog:
        entry = create_audit_entry(
            table_name=instance.__tablename__,
            record_id=self._get_primary_key(instance),
            action=action,
            performed_by=self.performed_by,
            old_values=old_values,
            new_values=new_values,
            changed_fields=changed_fields,
            ip_address=self.ip_address,
            context=context or self.context,
        )
        self.db.add(entry)
        return entry

    def log_insert(
        self,
        instance: Base,
        context: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Log an INSERT. Call after flush so the instance has an ID."""
        if instance.__tablename__ not in self.AUDITED_TABLES:
            return None
        return self._write(instance, "INSERT", new_values=self.capture_state(instance), context=context)

    def log_update(
        self,
        instance: Base,
        old_state: dict[str, Any],
        context: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Log an UPDATE operation.

        Returns None if the table is not audited or nothing changed.
        """
        if instance.__tablename__ not in self.AUDITED_TABLES:
            return None

        new_state = self.capture_state(instance)
        changed_fields = self._diff_states(old_state, new_state)

        # Don't log if nothing actually changed
        if not changed_fields:
            return None

        return self._write(
            instance,
            "UPDATE",
            old_values=old_state,
            new_values=new_state,
            changed_fields=changed_fields,
            context=context,
        )

    def log_delete(
        self,
        instance: Base,
        context: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Log a DELETE. Call before the row is removed or flagged."""
        if instance.__tablename__ not in self.AUDITED_TABLES:
            return None
        return self._write(instance, "DELETE", old_values=self.capture_state(instance), context=context)


class AuditQuery:
    """
    Helper class for querying audit logs.

    Usage:
        query = AuditQuery(db)
        history = query.get_record_history("projects", 42)
    """

    def __init__(self, db: Session):
        self.db = db

    def get_record_history(
        self,
        table_name: str,
        record_id: int,
    ) -> list[AuditLog]:
        """Full audit history for one record, oldest first."""
        return list(
            self.db.execute(
                select(AuditLog)
                .where(
                    AuditLog.table_name == table_name,
                    AuditLog.record_id == record_id,
                )
                .order_by(AuditLog.performed_at.asc(), AuditLog.audit_id.asc())
            ).scalars()
        )
