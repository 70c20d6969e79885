from __future__ import annotations

from datetime import datetime, time

import pytest
from sqlalchemy import select

from fleetdesk.models.audit_log import AuditLog
from fleetdesk.services.approvals import ApprovalService
from fleetdesk.services.auth import AuthorizationError
from fleetdesk.services.errors import NotFoundError
from fleetdesk.services.time_entry import TimeEntryService


@pytest.fixture
def pending(db, employee, project, clock):
    """A completed 08:00-16:00 day with a pending request to make it 07:00-16:30."""
    service = TimeEntryService(db, employee, clock=clock)
    clock.now = datetime(2026, 3, 2, 8, 0)
    entry = service.clock_in("P-100")
    clock.advance(hours=8)
    service.clock_out()
    request = service.request_adjustment(
        entry.entry_id,
        clock_in=time(7, 0),
        clock_out=time(16, 30),
        total_break_minutes=30,
        reason="Started early at the site",
    )
    db.commit()
    return entry, request


def test_approve_applies_requested_times(db, admin, pending):
    entry, request = pending

    ApprovalService(db, admin, "10.0.0.9").approve(request.request_id, "Looks right")
    db.commit()

    assert request.status == "approved"
    assert request.reviewed_by == "admin@example.se"
    assert request.reviewed_at is not None
    assert request.applied_at is not None
    assert request.review_comment == "Looks right"

    assert entry.status == "completed"
    assert entry.clock_in_time == datetime(2026, 3, 2, 7, 0)
    assert entry.clock_out_time == datetime(2026, 3, 2, 16, 30)
    assert entry.total_break_minutes == 30
    assert entry.total_hours == 9.0
    assert entry.project_allocations[0]["hours"] == 9.0
    assert entry.edited_by == "admin@example.se"
    assert entry.edited_at is not None
    assert entry.edit_reason == "Started early at the site"


@pytest.mark.parametrize("requested_break, expected_breaks", [(45, 1), (0, 0)])
def test_approve_replaces_recorded_breaks(db, admin, employee, project, clock, requested_break, expected_breaks):
    service = TimeEntryService(db, employee, clock=clock)
    clock.now = datetime(2026, 3, 2, 8, 0)
    entry = service.clock_in("P-100")
    clock.advance(hours=2)
    service.toggle_break()
    clock.advance(minutes=15)
    service.toggle_break()
    clock.advance(hours=6)
    service.clock_out()
    request = service.request_adjustment(
        entry.entry_id,
        clock_in=time(8, 0),
        clock_out=time(16, 15),
        total_break_minutes=requested_break,
        reason="Longer lunch",
    )
    db.commit()

    ApprovalService(db, admin).approve(request.request_id)
    db.commit()

    assert len(entry.breaks) == expected_breaks
    assert sum(b["duration_minutes"] for b in entry.breaks) == requested_break
    assert entry.total_break_minutes == requested_break


def test_approve_is_audited(db, admin, pending):
    entry, request = pending

    ApprovalService(db, admin, "10.0.0.9").approve(request.request_id)
    db.commit()

    log = db.execute(
        select(AuditLog)
        .where(AuditLog.table_name == "time_entries", AuditLog.record_id == entry.entry_id)
        .order_by(AuditLog.audit_id.desc())
        .limit(1)
    ).scalar_one()
    assert log.action == "UPDATE"
    assert log.performed_by == "admin@example.se"
    assert log.ip_address == "10.0.0.9"
    assert "clock_in_time" in log.changed_fields


def test_reject_returns_entry_unchanged(db, admin, pending):
    entry, request = pending

    ApprovalService(db, admin).reject(request.request_id, "No record of this")
    db.commit()

    assert request.status == "rejected"
    assert request.applied_at is None
    assert entry.status == "completed"
    assert entry.clock_in_time == datetime(2026, 3, 2, 8, 0)
    assert entry.total_hours == 8.0


def test_request_cannot_be_decided_twice(db, admin, pending):
    _, request = pending
    service = ApprovalService(db, admin)
    service.approve(request.request_id)

    with pytest.raises(ValueError, match="already approved"):
        service.reject(request.request_id)


def test_non_admin_cannot_approve(db, manager, pending):
    _, request = pending

    with pytest.raises(AuthorizationError):
        ApprovalService(db, manager).approve(request.request_id)

    assert request.status == "pending"


def test_invalid_requested_data_leaves_request_pending(db, admin, pending):
    entry, request = pending
    request.requested_data = {"clock_in_time": "not a time"}
    db.commit()

    with pytest.raises(ValueError, match="Invalid requested data"):
        ApprovalService(db, admin).approve(request.request_id)

    assert request.status == "pending"
    assert entry.clock_in_time == datetime(2026, 3, 2, 8, 0)


def test_listing_is_scoped_to_requester(db, employee, admin, make_employee, pending):
    _, request = pending
    other = make_employee("bo@example.se")

    assert [r.request_id for r in ApprovalService(db, admin).list_requests()] == [request.request_id]
    assert len(ApprovalService(db, employee).list_requests()) == 1
    assert ApprovalService(db, other).list_requests() == []

    with pytest.raises(NotFoundError):
        ApprovalService(db, other).get_request(request.request_id)


def test_decided_requests_leave_pending_list(db, admin, pending):
    _, request = pending
    service = ApprovalService(db, admin)
    service.reject(request.request_id)
    db.commit()

    assert service.list_requests() == []
    assert len(service.list_requests(status=None)) == 1
