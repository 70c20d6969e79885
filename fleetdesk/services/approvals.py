# FleetDesk - Approval Service
# Admin decisions on change requests, applied in the same transaction

from datetime import datetime
from typing import Optional, Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.logging import get_logger
from fleetdesk.models.approval_request import ApprovalRequest
from fleetdesk.models.base import utcnow
from fleetdesk.models.time_entry import TimeEntry
from fleetdesk.services.allocation import compute_net_hours
from fleetdesk.services.audit import AuditService
from fleetdesk.services.auth import AuthSession, require_admin_session
from fleetdesk.services.errors import NotFoundError


logger = get_logger(__name__)


class ApprovalNotFound(NotFoundError):
    pass


class ApprovalService:
    """
    Approve or reject pending ApprovalRequests.

    Approving writes the request's status and the related record in one
    unit of work: requested_data is fully validated before anything is
    changed, and the caller commits both together. If the commit fails the
    caller rolls back and the request is still pending, so approving again
    is safe.

    Each related_entity_type needs an entry in self.appliers.
    """

    def __init__(self, db: Session, session: AuthSession, ip_address: Optional[str] = None):
        self.db = db
        self.session = session
        self.audit = AuditService(db, session.email, ip_address)
        self.appliers: dict[str, Callable[[ApprovalRequest], Any]] = {
            "TimeEntry": self._apply_time_entry,
        }

    def get_request(self, request_id: int) -> ApprovalRequest:
        request = self.db.get(ApprovalRequest, request_id)
        if not request:
            raise ApprovalNotFound(f"Approval request {request_id} not found")
        if request.requester_email != self.session.email and not self.session.is_admin:
            raise ApprovalNotFound(f"Approval request {request_id} not found")
        return request

    def list_requests(
        self,
        status: Optional[str] = "pending",
        requester_email: Optional[str] = None,
    ) -> list[ApprovalRequest]:
        """Admins see everything; everyone else sees their own requests."""
        if not self.session.is_admin:
            requester_email = self.session.email

        query = select(ApprovalRequest)
        if status:
            query = query.where(ApprovalRequest.status == status)
        if requester_email:
            query = query.where(ApprovalRequest.requester_email == requester_email)
        return list(
            self.db.execute(
                query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.request_id.desc())
            ).scalars()
        )

    def approve(self, request_id: int, comment: Optional[str] = None) -> ApprovalRequest:
        """
        Approve a pending request and apply requested_data to its target.

        Raises:
            AuthorizationError: caller is not an admin
            ValueError: request is not pending, or requested_data is invalid
            LookupError: the request or its target no longer exists
        """
        require_admin_session(self.session, "approve requests")
        request = self._get_pending(request_id)

        applier = self.appliers.get(request.related_entity_type)
        if applier is None:
            raise ValueError(f"Cannot apply changes to {request.related_entity_type}")

        old_state = self.audit.capture_state(request)
        applier(request)

        now = utcnow()
        request.status = "approved"
        request.reviewed_by = self.session.email
        request.reviewed_at = now
        request.review_comment = comment or None
        request.applied_at = now

        self.db.flush()
        self.audit.log_update(request, old_state)
        logger.info(
            "approval_approved",
            request_id=request.request_id,
            entity=f"{request.related_entity_type}:{request.related_entity_id}",
            by=self.session.email,
        )
        return request

    def reject(self, request_id: int, comment: Optional[str] = None) -> ApprovalRequest:
        """
        Reject a pending request. The target is left as it was, apart from
        leaving the pending_review state.
        """
        require_admin_session(self.session, "reject requests")
        request = self._get_pending(request_id)

        old_state = self.audit.capture_state(request)
        request.status = "rejected"
        request.reviewed_by = self.session.email
        request.reviewed_at = utcnow()
        request.review_comment = comment or None

        if request.related_entity_type == "TimeEntry":
            entry = self.db.get(TimeEntry, request.related_entity_id)
            if entry is not None and entry.status == "pending_review":
                entry_state = self.audit.capture_state(entry)
                entry.status = "completed"
                self.db.flush()
                self.audit.log_update(entry, entry_state, context=f"approval {request.request_id} rejected")

        self.db.flush()
        self.audit.log_update(request, old_state)
        logger.info("approval_rejected", request_id=request.request_id, by=self.session.email)
        return request

    def _get_pending(self, request_id: int) -> ApprovalRequest:
        request = self.db.get(ApprovalRequest, request_id)
        if not request:
            raise ApprovalNotFound(f"Approval request {request_id} not found")
        if request.status != "pending":
            raise ValueError(f"Approval request {request_id} is already {request.status}")
        return request

    def _apply_time_entry(self, request: ApprovalRequest) -> TimeEntry:
        entry = self.db.get(TimeEntry, request.related_entity_id)
        if entry is None:
            raise ApprovalNotFound(f"Time entry {request.related_entity_id} not found")

        data = request.requested_data or {}
        try:
            clock_in = datetime.fromisoformat(data["clock_in_time"])
            clock_out = datetime.fromisoformat(data["clock_out_time"]) if data.get("clock_out_time") else None
            break_minutes = float(data.get("total_break_minutes") or 0)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid requested data: {e}") from e

        if clock_out is not None and clock_out < clock_in:
            raise ValueError("Requested clock-out is before clock-in")
        if break_minutes < 0:
            raise ValueError("Requested break minutes cannot be negative")

        old_state = self.audit.capture_state(entry)

        entry.clock_in_time = clock_in
        entry.clock_out_time = clock_out
        entry.total_break_minutes = break_minutes
        # The recorded breaks no longer apply; one untimed record carries the approved total
        entry.breaks = [
            {"start_time": None, "end_time": None, "duration_minutes": break_minutes, "adjusted": True}
        ] if break_minutes else []
        if clock_out is not None:
            entry.total_hours = compute_net_hours(clock_in, clock_out, break_minutes)
            allocations = list(entry.project_allocations or [])
            if len(allocations) == 1:
                allocation = dict(allocations[0])
                allocation["hours"] = entry.total_hours
                entry.project_allocations = [allocation]
        entry.status = "completed"
        entry.edit_reason = request.reason
        entry.edited_by = self.session.email
        entry.edited_at = utcnow()

        self.db.flush()
        self.audit.log_update(entry, old_state, context=f"approval {request.request_id}")
        return entry
