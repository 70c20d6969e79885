from __future__ import annotations

from datetime import date, datetime

import pytest

from fleetdesk.models.time_entry import TimeEntry


@pytest.fixture
def clocked_out_entry(db, employee, project):
    """An 08:00-16:00 day that has been clocked out but not yet allocated."""
    entry = TimeEntry(
        employee_email=employee.email,
        entry_date=date(2026, 3, 2),
        clock_in_time=datetime(2026, 3, 2, 8, 0),
        clock_out_time=datetime(2026, 3, 2, 16, 0),
        status="active",
        total_hours=8.0,
        project_allocations=[{"project_id": "P-100", "hours": 0, "category": "interntid", "notes": None}],
    )
    db.add(entry)
    db.commit()
    return entry


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "healthy"


def test_login_and_me(client, employee):
    token = client.post("/login", json={"email": "Anna@Example.se", "password": "correct-horse"}).json()["session_token"]
    headers = {"Authorization": f"Bearer {token}"}

    response = client.get("/me", headers=headers)

    assert response.status_code == 200
    assert response.json()["email"] == "anna@example.se"
    assert response.json()["role"] == "employee"
    assert not response.json()["is_manager"]


def test_login_with_wrong_password(client, employee):
    response = client.post("/login", json={"email": employee.email, "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_requests_without_session_are_rejected(client):
    assert client.get("/time/active").status_code == 401
    assert client.get("/me", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_logout_ends_session(client, employee, login_as):
    headers = login_as(employee)

    assert client.post("/logout", headers=headers).status_code == 200
    assert client.get("/me", headers=headers).status_code == 401


def test_admin_creates_employees(client, employee, admin, login_as):
    body = {"email": "bo@example.se", "full_name": "Bo Berg", "password": "long-enough", "role": "manager"}

    assert client.post("/employees", json=body, headers=login_as(employee)).status_code == 403

    response = client.post("/employees", json=body, headers=login_as(admin))
    assert response.status_code == 201
    assert response.json()["role"] == "manager"

    duplicate = client.post("/employees", json=body, headers=login_as(admin))
    assert duplicate.status_code == 400


def test_clock_flow(client, employee, project, login_as):
    headers = login_as(employee)

    missing = client.post("/time/clock-in", json={}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["detail"] == "You must select project before clocking in"

    response = client.post(
        "/time/clock-in",
        json={"project_id": "P-100", "location": {"latitude": 59.33, "longitude": 18.06}},
        headers=headers,
    )
    assert response.status_code == 201
    entry = response.json()
    assert entry["status"] == "active"
    assert entry["clock_in_location"]["address"] == "59.330000, 18.060000"

    assert client.post("/time/clock-in", json={"project_id": "P-100"}, headers=headers).status_code == 400
    assert client.get("/time/active", headers=headers).json()["entry_id"] == entry["entry_id"]

    on_break = client.post("/time/break", headers=headers).json()
    assert on_break["break_started_at"] is not None
    off_break = client.post("/time/break", headers=headers).json()
    assert off_break["break_started_at"] is None
    assert len(off_break["breaks"]) == 1

    response = client.post("/time/clock-out", json={}, headers=headers)
    assert response.status_code == 200
    assert response.json()["needs_allocation"] is False
    assert response.json()["entry"]["status"] == "completed"

    assert client.get("/time/active", headers=headers).json() is None
    assert client.post("/time/break", headers=headers).json() is None


def test_clock_out_with_split_returns_allocation_view(client, employee, project, login_as):
    headers = login_as(employee)
    client.post("/time/clock-in", json={"project_id": "P-100"}, headers=headers)

    response = client.post("/time/clock-out", json={"split": True}, headers=headers)

    body = response.json()
    assert body["needs_allocation"] is True
    assert body["entry"]["status"] == "active"
    assert body["allocation"]["allocations"][0]["project_id"] == "P-100"


def test_allocation_statuses(client, employee, project, make_project, clocked_out_entry, login_as):
    make_project("P-200")
    headers = login_as(employee)
    url = f"/time/entries/{clocked_out_entry.entry_id}/allocations"

    view = client.get(f"/time/entries/{clocked_out_entry.entry_id}/allocation", headers=headers).json()
    assert view["net_hours"] == 8.0
    assert view["available_hours"] == 7.0

    partial = client.post(url, json={"allocations": [{"project_id": "P-100", "hours": 5}]}, headers=headers)
    assert partial.status_code == 409
    assert partial.json()["remaining_hours"] == 2.0

    over = client.post(
        url,
        json={
            "allocations": [{"project_id": "P-100", "hours": 5}, {"project_id": "P-200", "hours": 3}],
            "confirm": True,
        },
        headers=headers,
    )
    assert over.status_code == 400
    assert over.json()["excess_hours"] == 1.0

    saved = client.post(
        url,
        json={
            "allocations": [
                {"project_id": "P-100", "hours": 4, "category": "install"},
                {"project_id": "P-200", "hours": 3, "category": "support_service"},
            ]
        },
        headers=headers,
    )
    assert saved.status_code == 200
    assert saved.json()["status"] == "completed"
    assert saved.json()["total_hours"] == 8.0


def test_adjustment_is_approved_by_admin(client, db, employee, admin, clocked_out_entry, login_as):
    clocked_out_entry.status = "completed"
    db.commit()
    employee_headers = login_as(employee)
    admin_headers = login_as(admin)

    response = client.post(
        f"/time/entries/{clocked_out_entry.entry_id}/adjustment",
        json={"clock_in": "07:00", "clock_out": "16:30", "total_break_minutes": 30, "reason": "Early start"},
        headers=employee_headers,
    )
    assert response.status_code == 201
    request_id = response.json()["request_id"]

    assert [r["request_id"] for r in client.get("/approvals", headers=admin_headers).json()] == [request_id]
    assert client.post(f"/approvals/{request_id}/approve", json={}, headers=employee_headers).status_code == 403

    approved = client.post(f"/approvals/{request_id}/approve", json={"comment": "OK"}, headers=admin_headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    entry = client.get(f"/time/entries/{clocked_out_entry.entry_id}", headers=employee_headers).json()
    assert entry["status"] == "completed"
    assert entry["total_hours"] == 9.0
    assert entry["edited_by"] == "admin@example.se"


def test_journal_review_and_delete(client, employee, admin, login_as):
    employee_headers = login_as(employee)
    admin_headers = login_as(admin)

    created = client.post(
        "/journal",
        json={
            "vehicle_id": "V-12",
            "distance_km": 24.5,
            "start_time": "2026-03-02T08:00:00",
            "trip_type": "tjänst",
            "purpose": "Kundbesök",
        },
        headers=employee_headers,
    )
    assert created.status_code == 201
    trip_id = created.json()["trip_id"]
    assert created.json()["status"] == "submitted"

    assert client.post(f"/journal/{trip_id}/approve", json={}, headers=employee_headers).status_code == 403
    approved = client.post(f"/journal/{trip_id}/approve", json={}, headers=admin_headers)
    assert approved.json()["status"] == "approved"
    assert [c["change_type"] for c in approved.json()["change_history"]] == ["created", "approved"]

    deleted = client.delete(f"/journal/{trip_id}", params={"comment": "Dubblett"}, headers=admin_headers)
    assert deleted.json()["is_deleted"] is True
    assert client.get("/journal", headers=employee_headers).json() == []
    assert client.get(f"/journal/{trip_id}", headers=admin_headers).json()["is_deleted"] is True


def test_reports_need_manager(client, employee, manager, login_as):
    assert client.get("/reports/time", headers=login_as(employee)).status_code == 403

    response = client.get("/reports/journal", headers=login_as(manager))
    assert response.status_code == 200
    assert response.json()["trips"] == 0


def test_unknown_records_are_404(client, manager, login_as):
    headers = login_as(manager)

    assert client.get("/time/entries/999", headers=headers).status_code == 404
    assert client.get("/journal/999", headers=headers).status_code == 404
    assert client.post("/notifications/999/read", headers=headers).status_code == 404


def test_project_history_lists_audited_changes(client, employee, admin, login_as):
    headers = login_as(admin)
    created = client.post("/projects", json={"name": "Skolan", "project_code": "P-400"}, headers=headers)
    assert created.status_code == 201
    project_id = created.json()["project_id"]
    client.patch(f"/projects/{project_id}", json={"budget_hours": 40}, headers=headers)

    assert client.get(f"/projects/{project_id}/history", headers=login_as(employee)).status_code == 403

    history = client.get(f"/projects/{project_id}/history", headers=headers).json()
    assert [h["action"] for h in history] == ["INSERT", "UPDATE"]
    assert history[1]["performed_by"] == "admin@example.se"
    assert history[1]["changes"]["budget_hours"] == {"old": None, "new": 40.0}

    assert client.delete(f"/projects/{project_id}", headers=headers).status_code == 204
    history = client.get(f"/projects/{project_id}/history", headers=headers).json()
    assert history[-1]["action"] == "DELETE"
    assert history[-1]["changes"]["project_code"] == "P-400"
