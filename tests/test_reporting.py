from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from fleetdesk.services.reporting import (
    budget_percentage,
    distance_by_driver,
    distance_by_vehicle,
    estimated_cost,
    hours_by_category,
    hours_by_day,
    hours_by_employee,
    hours_by_project,
    project_summary,
    trip_type_counts,
    vehicle_cost,
)


def entry(email, day, total, allocations):
    return SimpleNamespace(
        employee_email=email,
        entry_date=day,
        total_hours=total,
        project_allocations=allocations,
    )


def trip(driver, vehicle, km, trip_type="tjänst", deleted=False):
    return SimpleNamespace(
        driver_email=driver,
        vehicle_id=vehicle,
        distance_km=km,
        trip_type=trip_type,
        is_deleted=deleted,
    )


@pytest.fixture
def entries():
    return [
        entry("anna@example.se", date(2026, 3, 3), 8.0, [
            {"project_id": "P-100", "hours": 5, "category": "install"},
            {"project_id": "P-200", "hours": 2, "category": "support_service"},
        ]),
        entry("bo@example.se", date(2026, 3, 2), 4.5, [
            {"project_id": "P-100", "hours": 4.5, "category": "install"},
        ]),
        entry("anna@example.se", date(2026, 3, 2), None, [
            {"project_id": "P-100", "hours": 0, "category": "interntid"},
        ]),
    ]


@pytest.fixture
def trips():
    return [
        trip("anna@example.se", "V-12", 30.25),
        trip("anna@example.se", "V-7", 10, trip_type="privat"),
        trip(None, "V-12", 12.5, trip_type="väntar"),
        trip("anna@example.se", "V-12", 999, deleted=True),
    ]


def test_hours_by_employee(entries):
    assert hours_by_employee(entries) == {"anna@example.se": 8.0, "bo@example.se": 4.5}


def test_hours_by_day_is_sorted(entries):
    assert list(hours_by_day(entries).items()) == [(date(2026, 3, 2), 4.5), (date(2026, 3, 3), 8.0)]


def test_hours_by_category(entries):
    assert hours_by_category(entries) == {"install": 9.5, "support_service": 2.0, "interntid": 0.0}


def test_hours_by_project(entries):
    assert hours_by_project(entries) == {"P-100": 9.5, "P-200": 2.0}


def test_trip_aggregates_skip_deleted(trips):
    assert distance_by_driver(trips) == {"anna@example.se": 40.25, "okänd": 12.5}
    assert distance_by_vehicle(trips) == {"V-12": 42.75, "V-7": 10.0}
    assert trip_type_counts(trips) == {"tjänst": 1, "privat": 1, "väntar": 1}


@pytest.mark.parametrize(
    "used, budget, expected",
    [
        (50, 100, (50.0, 50.0)),
        (150, 100, (100.0, 150.0)),
        (10, None, (0.0, 0.0)),
        (10, 0, (0.0, 0.0)),
    ],
)
def test_budget_percentage(used, budget, expected):
    assert budget_percentage(used, budget) == expected


def test_costs():
    assert vehicle_cost(42.5) == 85.0
    assert vehicle_cost(10, rate_per_km=1.85) == 18.5
    assert estimated_cost(7.5, 650) == 4875.0
    assert estimated_cost(7.5, None) is None


def test_project_summary(entries, trips):
    project = SimpleNamespace(
        project_id=1,
        project_code="P-100",
        name="Kontoret",
        budget_hours=8,
        hourly_rate=500,
    )

    summary = project_summary(project, entries, trips)

    assert summary.total_hours == 9.5
    assert summary.budget_bar_percentage == 100.0
    assert summary.budget_percentage == 118.8
    assert summary.over_budget
    assert summary.labour_cost == 4750.0
    assert summary.distance_km == 52.75
    assert summary.vehicle_cost == 105.5
    assert summary.total_cost == 4855.5
    assert summary.hours_by_employee == {"anna@example.se": 5.0, "bo@example.se": 4.5}
    assert summary.hours_by_category == {"install": 9.5, "interntid": 0.0}


def test_project_summary_matches_numeric_key():
    project = SimpleNamespace(project_id=7, project_code="P-7", name="X", budget_hours=None, hourly_rate=None)
    rows = [entry("anna@example.se", date(2026, 3, 2), 3, [{"project_id": "7", "hours": 3}])]

    summary = project_summary(project, rows)

    assert summary.total_hours == 3.0
    assert summary.labour_cost is None
    assert not summary.over_budget
    assert summary.total_cost == 0.0
