# FleetDesk - Driving Journal Service
# Trip recording, classification and the review state machine

from datetime import datetime, date, time, timedelta
from typing import Optional, Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.logging import get_logger
from fleetdesk.models.base import utcnow
from fleetdesk.models.driving_journal import DrivingJournalEntry
from fleetdesk.services.auth import AuthSession, AuthorizationError, require_admin_session
from fleetdesk.services.errors import NotFoundError
from fleetdesk.services.classification import (
    ClassificationError,
    TripClassifier,
    completeness_flags,
)
from fleetdesk.services.projects import resolve_project


logger = get_logger(__name__)

CLASSIFIED_TYPES = ("tjänst", "privat")

# Source states allowed for each review transition
APPROVABLE = ("pending_review", "submitted", "requires_info")
INFO_REQUESTABLE = ("pending_review", "submitted")
REJECTABLE = ("pending_review", "submitted", "requires_info")
DRAFT_REJECTABLE = ("pending_review", "submitted", "requires_info")
CLASSIFIABLE = ("pending_review", "submitted", "requires_info")


class JournalEntryNotFound(NotFoundError):
    pass


class JournalTransitionError(ValueError):
    """The requested transition is not allowed from the entry's current state."""
    pass


class JournalService:
    """
    Service for driving journal entries.

    Usage:
        journal = JournalService(db, session)

        trip = journal.create_manual(vehicle_id="V-12", distance_km=42,
                                     start_time=..., trip_type="tjänst",
                                     purpose="Kundbesök")
        journal.approve(trip.trip_id)          # admin
        db.commit()

    Every transition appends to the entry's change history. Listings never
    include soft-deleted entries; get_entry does. The caller owns the
    transaction.
    """

    def __init__(self, db: Session, session: AuthSession, ip_address: Optional[str] = None):
        self.db = db
        self.session = session
        self.ip_address = ip_address

    # Lookups

    def get_entry(self, trip_id: int) -> DrivingJournalEntry:
        """Fetch by id, including soft-deleted entries."""
        entry = self.db.get(DrivingJournalEntry, trip_id)
        if not entry:
            raise JournalEntryNotFound(f"Journal entry {trip_id} not found")
        if entry.driver_email != self.session.email and not self.session.is_manager:
            raise AuthorizationError("Cannot access another driver's journal entry")
        return entry

    def list_entries(
        self,
        driver_email: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        trip_type: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[DrivingJournalEntry]:
        """Filtered listing, newest first. Soft-deleted entries never appear."""
        if not self.session.is_manager:
            driver_email = self.session.email

        query = select(DrivingJournalEntry).where(DrivingJournalEntry.is_deleted == False)  # noqa: E712
        if driver_email:
            query = query.where(DrivingJournalEntry.driver_email == driver_email)
        if vehicle_id:
            query = query.where(DrivingJournalEntry.vehicle_id == vehicle_id)
        if trip_type:
            query = query.where(DrivingJournalEntry.trip_type == trip_type)
        if status:
            query = query.where(DrivingJournalEntry.status == status)
        if start_date:
            query = query.where(DrivingJournalEntry.start_time >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.where(
                DrivingJournalEntry.start_time < datetime.combine(end_date + timedelta(days=1), time.min)
            )

        return list(
            self.db.execute(
                query.order_by(DrivingJournalEntry.start_time.desc(), DrivingJournalEntry.trip_id.desc())
            ).scalars()
        )

    # Creation

    def record_gps_trip(
        self,
        vehicle_id: str,
        start_time: datetime,
        distance_km: float,
        end_time: Optional[datetime] = None,
        registration_number: Optional[str] = None,
        driver_email: Optional[str] = None,
        driver_name: Optional[str] = None,
        start_location: Optional[dict[str, Any]] = None,
        end_location: Optional[dict[str, Any]] = None,
    ) -> DrivingJournalEntry:
        """
        Store a trip reported by the GPS sync. It starts unclassified
        (väntar / pending_review) and is flagged if it looks incomplete.
        """
        require_admin_session(self.session, "import GPS trips")
        self._require_vehicle_and_distance(vehicle_id, distance_km)

        entry = DrivingJournalEntry(
            vehicle_id=vehicle_id.strip(),
            registration_number=registration_number,
            driver_email=driver_email,
            driver_name=driver_name,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=self._duration(start_time, end_time),
            distance_km=float(distance_km),
            start_location=start_location,
            end_location=end_location,
            trip_type="väntar",
            status="pending_review",
            is_manual=False,
        )
        self._flag_incomplete(entry)
        self.db.add(entry)
        entry.record_change("created", self.session.email, "GPS-synkad resa")
        self.db.flush()

        logger.info("journal_trip_recorded", trip_id=entry.trip_id, vehicle_id=entry.vehicle_id)
        return entry

    def create_manual(
        self,
        vehicle_id: str,
        distance_km: float,
        start_time: datetime,
        end_time: Optional[datetime] = None,
        trip_type: Optional[str] = None,
        purpose: Optional[str] = None,
        project_code: Optional[str] = None,
        customer: Optional[str] = None,
        notes: Optional[str] = None,
        registration_number: Optional[str] = None,
    ) -> DrivingJournalEntry:
        """
        Record a trip by hand for the caller.

        A trip given a type goes straight to submitted; one without a type
        joins the unclassified pool.

        Raises:
            ValueError: missing vehicle or distance, business trip without
                a purpose, or an unknown project
        """
        self._require_vehicle_and_distance(vehicle_id, distance_km)

        trip_type = trip_type or "väntar"
        self._check_trip_type(trip_type, allow_pending=True)
        purpose = (purpose or "").strip() or None
        if trip_type == "tjänst" and not purpose:
            raise ValueError("Purpose is required for a business trip")
        if end_time is not None and end_time < start_time:
            raise ValueError("End time cannot be before start time")

        entry = DrivingJournalEntry(
            vehicle_id=vehicle_id.strip(),
            registration_number=registration_number or "Okänt",
            driver_email=self.session.email,
            driver_name=self.session.full_name,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=self._duration(start_time, end_time),
            distance_km=float(distance_km),
            trip_type=trip_type,
            status="pending_review" if trip_type == "väntar" else "submitted",
            purpose=purpose,
            customer=(customer or "").strip() or None,
            notes=notes,
            start_location={"address": "Manuellt tillagd"},
            end_location={"address": "Manuellt tillagd"},
            is_manual=True,
        )
        self._set_project(entry, project_code)
        self._flag_incomplete(entry)
        self.db.add(entry)
        entry.record_change("created", self.session.email, "Manuellt skapad resa")
        self.db.flush()

        logger.info("journal_manual_trip", trip_id=entry.trip_id, driver=self.session.email, trip_type=trip_type)
        return entry

    # Driver classification

    def quick_classify(self, trip_id: int, trip_type: str) -> DrivingJournalEntry:
        """Set the type of an unclassified trip. Status is unchanged."""
        entry = self._get_live_entry(trip_id)
        self._require_driver_or_admin(entry)
        self._check_trip_type(trip_type)
        if entry.trip_type != "väntar":
            raise JournalTransitionError("Trip is already classified")

        entry.trip_type = trip_type
        entry.record_change("classified", self.session.email, f"Klassificerad som {trip_type}")
        self.db.flush()
        logger.info("journal_quick_classified", trip_id=trip_id, trip_type=trip_type)
        return entry

    def classify(
        self,
        trip_id: int,
        trip_type: str,
        purpose: Optional[str],
        project_code: Optional[str] = None,
        customer: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DrivingJournalEntry:
        """
        The driver's full edit: type and purpose, then submit for review.

        Raises:
            ValueError: väntar as type, missing purpose, unknown project
            JournalTransitionError: entry already approved or rejected
        """
        entry = self._get_live_entry(trip_id)
        self._require_driver_or_admin(entry)
        self._check_trip_type(trip_type)
        purpose = (purpose or "").strip()
        if not purpose:
            raise ValueError("Purpose is required")
        self._check_source_state(entry, CLASSIFIABLE, "edit")

        entry.trip_type = trip_type
        entry.purpose = purpose
        entry.customer = (customer or "").strip() or None
        if notes is not None:
            entry.notes = notes
        self._set_project(entry, project_code)
        entry.status = "submitted"
        entry.record_change("submitted", self.session.email)
        self.db.flush()
        logger.info("journal_submitted", trip_id=trip_id, trip_type=trip_type)
        return entry

    # Suggestions

    def request_suggestions(
        self,
        classifier: TripClassifier,
        trip_ids: Optional[Iterable[int]] = None,
    ) -> dict[int, dict[str, Any]]:
        """
        Ask the classifier about unclassified trips and store what it says
        in suggested_classification. Trip fields and history are untouched.

        Returns {trip_id: suggestion} plus {trip_id: {"error": ...}} for
        trips the classifier failed on. Trips it had no opinion on are
        left out.
        """
        if trip_ids is None:
            entries = self.list_entries(trip_type="väntar")
        else:
            entries = [self._get_live_entry(trip_id) for trip_id in trip_ids]

        results: dict[int, dict[str, Any]] = {}
        for entry in entries:
            if entry.status not in CLASSIFIABLE:
                continue
            try:
                suggestion = classifier.suggest(entry)
            except ClassificationError as e:
                logger.warning("journal_suggestion_failed", trip_id=entry.trip_id, error=str(e))
                results[entry.trip_id] = {"error": str(e)}
                continue

            if not suggestion:
                continue
            if suggestion.get("trip_type") not in CLASSIFIED_TYPES:
                results[entry.trip_id] = {"error": f"Invalid trip type {suggestion.get('trip_type')!r}"}
                continue

            entry.suggested_classification = {**suggestion, "timestamp": utcnow().isoformat()}
            results[entry.trip_id] = entry.suggested_classification

        self.db.flush()
        return results

    def accept_suggestion(
        self,
        trip_id: int,
        overrides: Optional[dict[str, Any]] = None,
    ) -> DrivingJournalEntry:
        """
        Take the stored suggestion (with any reviewer edits) and submit.
        """
        entry = self._get_live_entry(trip_id)
        self._require_driver_or_admin(entry)
        if not entry.suggested_classification:
            raise JournalTransitionError("Trip has no suggestion to accept")
        self._check_source_state(entry, CLASSIFIABLE, "accept a suggestion for")

        fields = {
            key: entry.suggested_classification.get(key)
            for key in ("trip_type", "purpose", "project_code", "customer")
        }
        for key, value in (overrides or {}).items():
            if key in fields:
                fields[key] = value

        self._check_trip_type(fields["trip_type"])

        entry.trip_type = fields["trip_type"]
        entry.purpose = (fields["purpose"] or "").strip() or None
        entry.customer = (fields["customer"] or "").strip() or None
        self._set_project(entry, fields["project_code"])
        entry.status = "submitted"
        entry.suggested_classification = None
        entry.record_change(
            "ai_classified",
            self.session.email,
            "Förslag accepterat med ändringar" if overrides else "Förslag accepterat",
        )
        self.db.flush()
        logger.info("journal_suggestion_accepted", trip_id=trip_id, trip_type=entry.trip_type)
        return entry

    def reject_suggestion(self, trip_id: int) -> DrivingJournalEntry:
        """Discard the suggestion. Nothing else changes and nothing is logged."""
        entry = self._get_live_entry(trip_id)
        self._require_driver_or_admin(entry)
        entry.suggested_classification = None
        self.db.flush()
        return entry

    # Admin review

    def approve(self, trip_id: int, comment: Optional[str] = None) -> DrivingJournalEntry:
        require_admin_session(self.session, "approve trips")
        entry = self._get_live_entry(trip_id)
        self._require_classified(entry, "approve")
        self._check_source_state(entry, APPROVABLE, "approve")

        self._stamp_review(entry, "approved", comment)
        entry.record_change("approved", self.session.email, comment)
        self.db.flush()
        logger.info("journal_approved", trip_id=trip_id, by=self.session.email)
        return entry

    def request_info(self, trip_id: int, comment: str) -> DrivingJournalEntry:
        require_admin_session(self.session, "request information")
        if not (comment or "").strip():
            raise ValueError("A comment is required when requesting information")
        entry = self._get_live_entry(trip_id)
        self._require_classified(entry, "request information on")
        self._check_source_state(entry, INFO_REQUESTABLE, "request information on")

        self._stamp_review(entry, "requires_info", comment.strip())
        entry.record_change("info_requested", self.session.email, comment.strip())
        self.db.flush()
        logger.info("journal_info_requested", trip_id=trip_id, by=self.session.email)
        return entry

    def reject(self, trip_id: int, comment: Optional[str] = None) -> DrivingJournalEntry:
        """Terminal rejection."""
        require_admin_session(self.session, "reject trips")
        entry = self._get_live_entry(trip_id)
        self._require_classified(entry, "reject")
        self._check_source_state(entry, REJECTABLE, "reject")

        self._stamp_review(entry, "rejected", comment)
        entry.record_change("rejected", self.session.email, comment)
        self.db.flush()
        logger.info("journal_rejected", trip_id=trip_id, by=self.session.email)
        return entry

    def reject_draft(self, trip_id: int, comment: Optional[str] = None) -> DrivingJournalEntry:
        """
        Send a classified trip back to the unclassified pool: type väntar,
        status pending_review, purpose/project/customer cleared.
        """
        require_admin_session(self.session, "reject drafts")
        entry = self._get_live_entry(trip_id)
        self._check_source_state(entry, DRAFT_REJECTABLE, "reject the draft of")

        entry.trip_type = "väntar"
        entry.status = "pending_review"
        entry.purpose = None
        entry.project_code = None
        entry.project_id = None
        entry.customer = None
        entry.suggested_classification = None
        entry.review_comment = comment or None
        entry.record_change("draft_rejected", self.session.email, comment)
        self.db.flush()
        logger.info("journal_draft_rejected", trip_id=trip_id, by=self.session.email)
        return entry

    def soft_delete(self, trip_id: int, comment: Optional[str] = None) -> DrivingJournalEntry:
        require_admin_session(self.session, "delete trips")
        entry = self.get_entry(trip_id)
        if entry.is_deleted:
            raise JournalTransitionError("Trip is already deleted")

        entry.soft_delete(self.session.email)
        entry.record_change("deleted", self.session.email, comment)
        self.db.flush()
        logger.info("journal_deleted", trip_id=trip_id, by=self.session.email)
        return entry

    def restore(self, trip_id: int, comment: Optional[str] = None) -> DrivingJournalEntry:
        require_admin_session(self.session, "restore trips")
        entry = self.get_entry(trip_id)
        if not entry.is_deleted:
            raise JournalTransitionError("Trip is not deleted")

        entry.restore()
        entry.record_change("restored", self.session.email, comment)
        self.db.flush()
        logger.info("journal_restored", trip_id=trip_id, by=self.session.email)
        return entry

    # Helpers

    def _get_live_entry(self, trip_id: int) -> DrivingJournalEntry:
        entry = self.get_entry(trip_id)
        if entry.is_deleted:
            raise JournalTransitionError("Trip has been deleted")
        return entry

    def _require_driver_or_admin(self, entry: DrivingJournalEntry) -> None:
        if entry.driver_email != self.session.email and not self.session.is_admin:
            raise AuthorizationError("Only the driver or an admin can classify this trip")

    def _require_classified(self, entry: DrivingJournalEntry, action: str) -> None:
        if entry.trip_type == "väntar":
            raise JournalTransitionError(f"Cannot {action} an unclassified trip")

    def _check_source_state(self, entry: DrivingJournalEntry, allowed: tuple[str, ...], action: str) -> None:
        if entry.status not in allowed:
            raise JournalTransitionError(f"Cannot {action} a trip that is {entry.status}")

    def _check_trip_type(self, trip_type: Optional[str], allow_pending: bool = False) -> None:
        allowed = CLASSIFIED_TYPES + (("väntar",) if allow_pending else ())
        if trip_type not in allowed:
            raise ValueError(f"Trip type must be one of: {', '.join(allowed)}")

    def _require_vehicle_and_distance(self, vehicle_id: Optional[str], distance_km: Optional[float]) -> None:
        if not (vehicle_id or "").strip() or not distance_km or distance_km <= 0:
            raise ValueError("Vehicle and distance are required")

    def _set_project(self, entry: DrivingJournalEntry, project_code: Optional[str]) -> None:
        project_code = (project_code or "").strip() or None
        if project_code is None:
            entry.project_code = None
            entry.project_id = None
            return

        project = resolve_project(self.db, project_code)
        if project is None:
            raise ValueError(f"Unknown project: {project_code}")
        entry.project_code = project.project_code
        entry.project_id = project.project_id
        if not entry.customer and project.customer:
            entry.customer = project.customer

    def _stamp_review(self, entry: DrivingJournalEntry, status: str, comment: Optional[str]) -> None:
        entry.status = status
        entry.reviewed_by = self.session.email
        entry.reviewed_at = utcnow()
        entry.review_comment = comment or None

    def _flag_incomplete(self, entry: DrivingJournalEntry) -> None:
        flags = completeness_flags(entry)
        entry.anomaly_flag = bool(flags)
        entry.anomaly_reason = ". ".join(flags) if flags else None

    @staticmethod
    def _duration(start_time: datetime, end_time: Optional[datetime]) -> Optional[float]:
        if end_time is None:
            return None
        return round((end_time - start_time).total_seconds() / 60, 1)
