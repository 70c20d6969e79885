from __future__ import annotations

from datetime import datetime

import pytest

from fleetdesk.models.driving_journal import DrivingJournalEntry
from fleetdesk.services.classification import (
    HistoryClassifier,
    completeness_flags,
    haversine_meters,
    is_similar_trip,
    suggest_from_history,
)

OFFICE = {"latitude": 59.3293, "longitude": 18.0686}
CUSTOMER = {"latitude": 59.4000, "longitude": 17.9500}
FAR_AWAY = {"latitude": 57.7089, "longitude": 11.9746}


def make_trip(hour=8, km=30.0, trip_type="väntar", start=OFFICE, end=CUSTOMER, **fields):
    return DrivingJournalEntry(
        vehicle_id=fields.pop("vehicle_id", "V-12"),
        driver_email=fields.pop("driver_email", "anna@example.se"),
        driver_name=fields.pop("driver_name", "Anna Andersson"),
        start_time=datetime(2026, 3, 2, hour, 0),
        distance_km=km,
        trip_type=trip_type,
        start_location=start,
        end_location=end,
        **fields,
    )


def test_haversine_stockholm_gothenburg():
    meters = haversine_meters(OFFICE["latitude"], OFFICE["longitude"], FAR_AWAY["latitude"], FAR_AWAY["longitude"])

    assert 390_000 < meters < 400_000


def test_haversine_same_point():
    assert haversine_meters(59.0, 18.0, 59.0, 18.0) == 0


@pytest.mark.parametrize(
    "other, similar",
    [
        (make_trip(), True),
        (make_trip(hour=10), True),
        (make_trip(hour=11), False),
        (make_trip(km=40), False),
        (make_trip(start=FAR_AWAY, end=FAR_AWAY), False),
        (make_trip(start=FAR_AWAY), True),
        (make_trip(start=None, end=None), True),
    ],
)
def test_is_similar_trip(other, similar):
    assert is_similar_trip(make_trip(), other) is similar


def test_suggestion_uses_majority_type():
    history = [
        make_trip(trip_type="tjänst", purpose="Service", customer="Acme AB", project_code="P-100"),
        make_trip(trip_type="tjänst", purpose="Service", customer="Acme AB"),
        make_trip(trip_type="tjänst", purpose="Montage"),
        make_trip(trip_type="privat"),
    ]

    suggestion = suggest_from_history(make_trip(), history)

    assert suggestion["trip_type"] == "tjänst"
    assert suggestion["confidence"] == 0.75
    assert suggestion["similar_trips_count"] == 4
    assert suggestion["purpose"] == "Service"
    assert suggestion["customer"] == "Acme AB"
    assert suggestion["project_code"] == "P-100"


def test_no_suggestion_without_agreement():
    history = [make_trip(trip_type="tjänst"), make_trip(trip_type="privat")]

    assert suggest_from_history(make_trip(), history) is None


def test_no_suggestion_without_similar_trips():
    history = [make_trip(hour=18, trip_type="privat"), make_trip(trip_type="väntar")]

    assert suggest_from_history(make_trip(), history) is None


def test_private_suggestion_has_no_purpose():
    history = [make_trip(trip_type="privat", purpose="Hem")] * 3

    suggestion = suggest_from_history(make_trip(), history)

    assert suggestion["trip_type"] == "privat"
    assert "purpose" not in suggestion


def test_history_classifier_uses_approved_trips(db):
    approved = [
        make_trip(trip_type="tjänst", purpose="Service", status="approved"),
        make_trip(trip_type="tjänst", purpose="Service", status="approved"),
        make_trip(trip_type="privat", status="submitted"),
        make_trip(trip_type="privat", status="approved", vehicle_id="V-7"),
    ]
    target = make_trip()
    db.add_all(approved + [target])
    db.commit()

    suggestion = HistoryClassifier(db).suggest(target)

    assert suggestion["trip_type"] == "tjänst"
    assert suggestion["confidence"] == 1.0
    assert suggestion["similar_trips_count"] == 2


def test_completeness_flags():
    assert completeness_flags(make_trip()) == []

    flags = completeness_flags(make_trip(driver_name=None, km=750, duration_minutes=600))

    assert flags == [
        "Saknar förarenamn",
        "Ovanligt lång resa (> 500 km)",
        "Ovanligt lång tid (> 8 timmar)",
    ]
