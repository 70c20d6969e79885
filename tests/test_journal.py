from __future__ import annotations

from datetime import date, datetime

import pytest

from fleetdesk.services.auth import AuthorizationError
from fleetdesk.services.classification import ClassificationError
from fleetdesk.services.journal import JournalService, JournalTransitionError

MORNING = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def driver_journal(db, employee):
    return JournalService(db, employee)


@pytest.fixture
def admin_journal(db, admin):
    return JournalService(db, admin)


@pytest.fixture
def gps_trip(admin_journal, employee, db):
    trip = admin_journal.record_gps_trip(
        vehicle_id="V-12",
        registration_number="ABC123",
        start_time=MORNING,
        end_time=datetime(2026, 3, 2, 8, 40),
        distance_km=32.5,
        driver_email=employee.email,
        driver_name=employee.full_name,
        start_location={"latitude": 59.33, "longitude": 18.06, "address": "Kontoret"},
        end_location={"latitude": 59.40, "longitude": 17.95, "address": "Kund"},
    )
    db.commit()
    return trip


class StubClassifier:
    def __init__(self, suggestion=None, error=None):
        self.suggestion = suggestion
        self.error = error

    def suggest(self, entry):
        if self.error:
            raise ClassificationError(self.error)
        return self.suggestion


def change_types(entry):
    return [change["change_type"] for change in entry.change_history]


def test_gps_trip_starts_unclassified(gps_trip):
    assert gps_trip.trip_type == "väntar"
    assert gps_trip.status == "pending_review"
    assert gps_trip.duration_minutes == 40.0
    assert not gps_trip.anomaly_flag
    assert change_types(gps_trip) == ["created"]


def test_gps_trip_requires_admin(driver_journal):
    with pytest.raises(AuthorizationError):
        driver_journal.record_gps_trip(vehicle_id="V-12", start_time=MORNING, distance_km=10)


def test_gps_trip_without_driver_is_flagged(admin_journal):
    trip = admin_journal.record_gps_trip(vehicle_id="V-12", start_time=MORNING, distance_km=612)

    assert trip.anomaly_flag
    assert "Saknar förarenamn" in trip.anomaly_reason
    assert "Ovanligt lång resa" in trip.anomaly_reason


def test_manual_trip_with_type_is_submitted(driver_journal, project):
    trip = driver_journal.create_manual(
        vehicle_id="V-12",
        distance_km=18,
        start_time=MORNING,
        trip_type="tjänst",
        purpose="Kundbesök",
        project_code="P-100",
    )

    assert trip.status == "submitted"
    assert trip.is_manual
    assert trip.driver_email == "anna@example.se"
    assert trip.project_id == project.project_id
    assert trip.customer == "Acme AB"
    assert trip.start_location == {"address": "Manuellt tillagd"}


def test_manual_trip_without_type_joins_pool(driver_journal):
    trip = driver_journal.create_manual(vehicle_id="V-12", distance_km=5, start_time=MORNING)

    assert trip.trip_type == "väntar"
    assert trip.status == "pending_review"


@pytest.mark.parametrize(
    "fields",
    [
        {"vehicle_id": "", "distance_km": 5},
        {"vehicle_id": "V-12", "distance_km": 0},
        {"vehicle_id": "V-12", "distance_km": 5, "trip_type": "tjänst"},
        {"vehicle_id": "V-12", "distance_km": 5, "trip_type": "privat", "project_code": "NOPE"},
        {"vehicle_id": "V-12", "distance_km": 5, "trip_type": "semester"},
    ],
)
def test_manual_trip_validation(driver_journal, fields):
    with pytest.raises(ValueError):
        driver_journal.create_manual(start_time=MORNING, **fields)


def test_quick_classify_keeps_status(driver_journal, gps_trip):
    trip = driver_journal.quick_classify(gps_trip.trip_id, "privat")

    assert trip.trip_type == "privat"
    assert trip.status == "pending_review"
    assert change_types(trip) == ["created", "classified"]

    with pytest.raises(JournalTransitionError):
        driver_journal.quick_classify(gps_trip.trip_id, "tjänst")


def test_classify_requires_purpose(driver_journal, gps_trip):
    with pytest.raises(ValueError, match="Purpose"):
        driver_journal.classify(gps_trip.trip_id, "tjänst", purpose=" ")


def test_other_driver_cannot_classify(db, gps_trip, make_employee):
    other = JournalService(db, make_employee("bo@example.se", role="manager"))

    with pytest.raises(AuthorizationError):
        other.classify(gps_trip.trip_id, "privat", purpose="Hem")


def test_review_flow_appends_history_in_order(driver_journal, admin_journal, gps_trip, db):
    driver_journal.classify(gps_trip.trip_id, "tjänst", purpose="Montage")
    admin_journal.request_info(gps_trip.trip_id, "Vilken kund?")
    driver_journal.classify(gps_trip.trip_id, "tjänst", purpose="Montage", customer="Acme AB")
    trip = admin_journal.approve(gps_trip.trip_id, "OK")
    db.commit()

    assert trip.status == "approved"
    assert trip.reviewed_by == "admin@example.se"
    assert trip.review_comment == "OK"
    assert change_types(trip) == ["created", "submitted", "info_requested", "submitted", "approved"]
    assert [change["sequence"] for change in trip.change_history] == [1, 2, 3, 4, 5]
    assert trip.change_history[2]["comment"] == "Vilken kund?"
    assert trip.change_history[2]["changed_by"] == "admin@example.se"


def test_approved_trip_cannot_be_edited(driver_journal, admin_journal, gps_trip):
    driver_journal.classify(gps_trip.trip_id, "privat", purpose="Hem")
    admin_journal.approve(gps_trip.trip_id)

    with pytest.raises(JournalTransitionError):
        driver_journal.classify(gps_trip.trip_id, "tjänst", purpose="Montage")
    with pytest.raises(JournalTransitionError):
        admin_journal.reject(gps_trip.trip_id)


def test_unclassified_trip_cannot_be_reviewed(admin_journal, gps_trip):
    with pytest.raises(JournalTransitionError, match="unclassified"):
        admin_journal.approve(gps_trip.trip_id)
    with pytest.raises(JournalTransitionError):
        admin_journal.request_info(gps_trip.trip_id, "Vad är detta?")


def test_request_info_needs_comment(admin_journal, gps_trip):
    with pytest.raises(ValueError, match="comment"):
        admin_journal.request_info(gps_trip.trip_id, "")


def test_only_admin_reviews(driver_journal, gps_trip):
    driver_journal.classify(gps_trip.trip_id, "privat", purpose="Hem")

    with pytest.raises(AuthorizationError):
        driver_journal.approve(gps_trip.trip_id)


def test_reject_draft_returns_trip_to_pool(driver_journal, admin_journal, gps_trip, project):
    driver_journal.classify(gps_trip.trip_id, "tjänst", purpose="Montage", project_code="P-100")

    trip = admin_journal.reject_draft(gps_trip.trip_id, "Fel fordon")

    assert trip.trip_type == "väntar"
    assert trip.status == "pending_review"
    assert trip.purpose is None
    assert trip.project_code is None
    assert trip.customer is None
    assert change_types(trip)[-1] == "draft_rejected"


def test_deleted_trip_hidden_from_lists_but_fetchable(driver_journal, admin_journal, gps_trip, db):
    admin_journal.soft_delete(gps_trip.trip_id, "Dubblett")
    db.commit()

    assert driver_journal.list_entries() == []
    assert admin_journal.list_entries() == []

    trip = admin_journal.get_entry(gps_trip.trip_id)
    assert trip.is_deleted
    assert trip.deleted_by == "admin@example.se"
    assert trip.change_history[-1]["change_type"] == "deleted"
    assert trip.change_history[-1]["comment"] == "Dubblett"

    with pytest.raises(JournalTransitionError):
        driver_journal.quick_classify(gps_trip.trip_id, "privat")


def test_restore_brings_trip_back(admin_journal, gps_trip):
    admin_journal.soft_delete(gps_trip.trip_id)
    admin_journal.restore(gps_trip.trip_id)

    assert [trip.trip_id for trip in admin_journal.list_entries()] == [gps_trip.trip_id]
    assert change_types(gps_trip) == ["created", "deleted", "restored"]

    with pytest.raises(JournalTransitionError):
        admin_journal.restore(gps_trip.trip_id)


def test_list_entries_filters(driver_journal, admin_journal, gps_trip):
    driver_journal.create_manual(vehicle_id="V-7", distance_km=3, start_time=datetime(2026, 3, 5, 9, 0))

    assert len(driver_journal.list_entries()) == 2
    assert len(driver_journal.list_entries(vehicle_id="V-12")) == 1
    assert len(driver_journal.list_entries(start_date=date(2026, 3, 3))) == 1
    assert len(driver_journal.list_entries(end_date=date(2026, 3, 2))) == 1


def test_suggestion_is_stored_without_touching_trip(driver_journal, gps_trip):
    classifier = StubClassifier({"trip_type": "tjänst", "purpose": "Montage", "confidence": 0.8})

    results = driver_journal.request_suggestions(classifier)

    assert results[gps_trip.trip_id]["trip_type"] == "tjänst"
    assert gps_trip.suggested_classification["purpose"] == "Montage"
    assert gps_trip.trip_type == "väntar"
    assert change_types(gps_trip) == ["created"]


def test_suggestion_failure_is_reported_per_trip(driver_journal, gps_trip):
    results = driver_journal.request_suggestions(StubClassifier(error="timeout"), [gps_trip.trip_id])

    assert results == {gps_trip.trip_id: {"error": "timeout"}}
    assert gps_trip.suggested_classification is None


def test_accept_suggestion_with_overrides(driver_journal, gps_trip):
    driver_journal.request_suggestions(StubClassifier({"trip_type": "tjänst", "purpose": "Montage"}))

    trip = driver_journal.accept_suggestion(gps_trip.trip_id, {"purpose": "Service"})

    assert trip.trip_type == "tjänst"
    assert trip.purpose == "Service"
    assert trip.status == "submitted"
    assert trip.suggested_classification is None
    assert trip.change_history[-1]["change_type"] == "ai_classified"
    assert trip.change_history[-1]["comment"] == "Förslag accepterat med ändringar"


def test_reject_suggestion_changes_nothing_else(driver_journal, gps_trip):
    driver_journal.request_suggestions(StubClassifier({"trip_type": "privat"}))

    trip = driver_journal.reject_suggestion(gps_trip.trip_id)

    assert trip.suggested_classification is None
    assert trip.trip_type == "väntar"
    assert trip.status == "pending_review"
    assert change_types(trip) == ["created"]


def test_accept_without_suggestion(driver_journal, gps_trip):
    with pytest.raises(JournalTransitionError):
        driver_journal.accept_suggestion(gps_trip.trip_id)
