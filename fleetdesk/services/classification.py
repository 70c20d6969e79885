# FleetDesk - Trip Classification
# History-based trip type suggestions and completeness checks

from collections import Counter
from math import radians, sin, cos, sqrt, atan2
from typing import Optional, Any, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.config import get_settings
from fleetdesk.models.driving_journal import DrivingJournalEntry


settings = get_settings()

EARTH_RADIUS_M = 6371e3

# Similarity thresholds for matching a trip against the driver's history
MAX_HOUR_DIFFERENCE = 2
MAX_DISTANCE_DIFFERENCE = 0.3
MAX_ENDPOINT_METERS = 500
MIN_CONFIDENCE = 0.6


class ClassificationError(Exception):
    """The classifier could not produce a suggestion for an entry."""
    pass


class TripClassifier(Protocol):
    """
    Anything that can propose a classification for one trip.

    Returns {trip_type, purpose?, project_code?, customer?, confidence?}
    or None when it has no opinion. Raises ClassificationError on failure.
    """

    def suggest(self, entry: DrivingJournalEntry) -> Optional[dict[str, Any]]:
        ...


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates, in meters."""
    phi1, phi2 = radians(lat1), radians(lat2)
    d_phi = radians(lat2 - lat1)
    d_lambda = radians(lon2 - lon1)

    a = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * atan2(sqrt(a), sqrt(1 - a))


def _point(location: Optional[dict[str, Any]]) -> Optional[tuple[float, float]]:
    if not location:
        return None
    lat, lon = location.get("latitude"), location.get("longitude")
    if lat is None or lon is None:
        return None
    return float(lat), float(lon)


def is_similar_trip(entry: DrivingJournalEntry, other: DrivingJournalEntry) -> bool:
    """
    Same time of day (within 2 hours), similar distance (within 30%),
    and starting or ending within 500 m of the other trip.
    """
    if abs(entry.start_time.hour - other.start_time.hour) > MAX_HOUR_DIFFERENCE:
        return False

    distance = entry.distance_km or 0
    other_distance = other.distance_km or 0
    if distance > 0 and other_distance > 0:
        if abs(distance - other_distance) / distance > MAX_DISTANCE_DIFFERENCE:
            return False

    start, other_start = _point(entry.start_location), _point(other.start_location)
    if start and other_start:
        start_meters = haversine_meters(*start, *other_start)
        end, other_end = _point(entry.end_location), _point(other.end_location)
        end_meters = haversine_meters(*end, *other_end) if end and other_end else float("inf")
        return start_meters < MAX_ENDPOINT_METERS or end_meters < MAX_ENDPOINT_METERS

    return True


def suggest_from_history(
    entry: DrivingJournalEntry,
    history: Sequence[DrivingJournalEntry],
) -> Optional[dict[str, Any]]:
    """
    Propose a classification from the most common type among similar
    trips. Needs at least 60% agreement. Business trips also get the most
    common purpose, project and customer.
    """
    similar = [trip for trip in history if trip.trip_type != "väntar" and is_similar_trip(entry, trip)]
    if not similar:
        return None

    type_counts = Counter(trip.trip_type for trip in similar)
    trip_type, count = type_counts.most_common(1)[0]
    confidence = count / len(similar)
    if confidence < MIN_CONFIDENCE:
        return None

    suggestion: dict[str, Any] = {
        "trip_type": trip_type,
        "confidence": round(confidence, 2),
        "reasoning": f"{len(similar)} tidigare liknande resor",
        "similar_trips_count": len(similar),
    }

    if trip_type == "tjänst":
        for key in ("purpose", "project_code", "customer"):
            values = Counter(getattr(trip, key) for trip in similar if getattr(trip, key))
            if values:
                suggestion[key] = values.most_common(1)[0][0]

    return suggestion


class HistoryClassifier:
    """
    Default classifier: compares a trip with the same driver's approved
    trips in the same vehicle.
    """

    def __init__(self, db: Session, history_limit: int = 500):
        self.db = db
        self.history_limit = history_limit

    def suggest(self, entry: DrivingJournalEntry) -> Optional[dict[str, Any]]:
        history = self.db.execute(
            select(DrivingJournalEntry)
            .where(
                DrivingJournalEntry.driver_email == entry.driver_email,
                DrivingJournalEntry.vehicle_id == entry.vehicle_id,
                DrivingJournalEntry.status == "approved",
                DrivingJournalEntry.is_deleted == False,  # noqa: E712
                DrivingJournalEntry.trip_id != entry.trip_id,
            )
            .order_by(DrivingJournalEntry.start_time.desc())
            .limit(self.history_limit)
        ).scalars().all()
        return suggest_from_history(entry, history)


def completeness_flags(entry: DrivingJournalEntry) -> list[str]:
    """Problems worth a reviewer's attention; empty when the trip looks complete."""
    flags = []

    if not entry.driver_name or not entry.driver_email:
        flags.append("Saknar förarenamn")

    if (entry.distance_km or 0) > settings.journal_max_distance_km:
        flags.append(f"Ovanligt lång resa (> {settings.journal_max_distance_km:g} km)")

    if (entry.duration_minutes or 0) > settings.journal_max_duration_minutes:
        hours = settings.journal_max_duration_minutes / 60
        flags.append(f"Ovanligt lång tid (> {hours:g} timmar)")

    return flags
