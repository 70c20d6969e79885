from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import select

from fleetdesk.models.notification import Notification
from fleetdesk.models.time_entry import TimeEntry
from fleetdesk.services.budget import BudgetService, project_allocated_hours, run_budget_check
from fleetdesk.services.errors import NotFoundError


def add_entry(db, email, allocations):
    entry = TimeEntry(
        employee_email=email,
        entry_date=datetime(2026, 3, 2).date(),
        clock_in_time=datetime(2026, 3, 2, 8, 0),
        clock_out_time=datetime(2026, 3, 2, 17, 0),
        status="completed",
        total_hours=sum(a["hours"] for a in allocations),
        project_allocations=allocations,
    )
    db.add(entry)
    db.commit()
    return entry


@pytest.fixture
def small_project(make_project):
    return make_project(
        "P-300",
        name="Skolan",
        budget_hours=10,
        project_manager_email="maja@example.se",
    )


def test_allocated_hours_match_code_and_id(db, small_project):
    add_entry(db, "anna@example.se", [{"project_id": "P-300", "hours": 4, "category": "install"}])
    add_entry(db, "bo@example.se", [{"project_id": str(small_project.project_id), "hours": 3}])
    add_entry(db, "bo@example.se", [{"project_id": "P-999", "hours": 8}])

    assert project_allocated_hours(db, small_project) == 7.0


def test_under_budget_sends_nothing(db, admin, small_project):
    entry = add_entry(db, "anna@example.se", [{"project_id": "P-300", "hours": 6}])

    assert BudgetService(db).check_time_entry(entry.entry_id) == []
    assert db.execute(select(Notification)).scalars().all() == []


def test_over_budget_notifies_manager_and_admins(db, admin, manager, small_project):
    add_entry(db, "anna@example.se", [{"project_id": "P-300", "hours": 8}])
    entry = add_entry(db, "anna@example.se", [{"project_id": "P-300", "hours": 4.5}])

    alerts = BudgetService(db).check_time_entry(entry.entry_id)
    db.commit()

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.total_hours == 12.5
    assert alert.overage_hours == 2.5
    assert alert.percentage_used == 125.0
    assert alert.recipients == ["maja@example.se", "admin@example.se"]

    notifications = db.execute(select(Notification).order_by(Notification.notification_id)).scalars().all()
    assert [n.recipient_email for n in notifications] == ["maja@example.se", "admin@example.se"]
    assert all(n.type == "budget_exceeded" and n.priority == "high" for n in notifications)
    assert notifications[0].payload["overage"] == 2.5
    assert "2.5 timmar" in notifications[0].message


def test_project_without_budget_is_skipped(db, admin, project):
    entry = add_entry(db, "anna@example.se", [{"project_id": "P-100", "hours": 40}])

    assert BudgetService(db).check_time_entry(entry.entry_id) == []


def test_each_project_checked_once(db, admin, small_project):
    entry = add_entry(
        db,
        "anna@example.se",
        [
            {"project_id": "P-300", "hours": 6, "category": "install"},
            {"project_id": "P-300", "hours": 6, "category": "support_service"},
        ],
    )

    alerts = BudgetService(db).check_time_entry(entry.entry_id)

    assert len(alerts) == 1
    assert alerts[0].total_hours == 12.0


def test_unknown_entry(db):
    with pytest.raises(NotFoundError):
        BudgetService(db).check_time_entry(404)


def test_background_check_swallows_missing_entry():
    assert run_budget_check(404) is None


def test_failed_budget_check_keeps_clock_out(client, db, employee, project, login_as, monkeypatch):
    def fail(self, entry_id):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(BudgetService, "check_time_entry", fail)
    headers = login_as(employee)
    client.post("/time/clock-in", json={"project_id": "P-100"}, headers=headers)

    response = client.post("/time/clock-out", json={}, headers=headers)

    assert response.status_code == 200
    entry = db.execute(select(TimeEntry)).scalar_one()
    assert entry.status == "completed"
    assert entry.clock_out_time is not None
