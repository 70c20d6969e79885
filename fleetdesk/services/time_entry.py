# FleetDesk - Time Entry Service
# Clock in/out, breaks, project allocation and correction requests

from dataclasses import dataclass, field
from datetime import datetime, date, time, timedelta
from typing import Optional, Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.config import get_settings
from fleetdesk.logging import get_logger
from fleetdesk.models.approval_request import ApprovalRequest
from fleetdesk.models.base import utcnow
from fleetdesk.models.notification import Notification
from fleetdesk.models.time_entry import TimeEntry
from fleetdesk.services.allocation import (
    AllocationEditor,
    AllocationError,
    DEFAULT_CATEGORY,
    available_hours,
    compute_net_hours,
    round_hours,
)
from fleetdesk.services.audit import AuditService
from fleetdesk.services.auth import AuthSession, AuthorizationError
from fleetdesk.services.errors import NotFoundError
from fleetdesk.services.geolocation import GeolocationResolver
from fleetdesk.services.notifications import NotificationService
from fleetdesk.services.projects import resolve_project


settings = get_settings()
logger = get_logger(__name__)


class TimeEntryNotFound(NotFoundError):
    pass


@dataclass
class AllocationPrompt:
    """
    Returned by clock_out when the hours still have to be split.

    The entry stays active until allocate_projects succeeds.
    """

    entry: TimeEntry
    net_hours: float
    available_hours: float
    allocations: list[dict[str, Any]] = field(default_factory=list)

    @property
    def allocated_hours(self) -> float:
        return round_hours(sum(float(a.get("hours") or 0) for a in self.allocations))

    @property
    def remaining_hours(self) -> float:
        return round_hours(self.available_hours - self.allocated_hours)


@dataclass
class SweepResult:
    auto_closed: list[int] = field(default_factory=list)
    flagged: list[int] = field(default_factory=list)


def snapshot_times(entry: TimeEntry) -> dict[str, Any]:
    """The fields a time adjustment request can change, JSON-ready."""
    return {
        "clock_in_time": entry.clock_in_time.isoformat() if entry.clock_in_time else None,
        "clock_out_time": entry.clock_out_time.isoformat() if entry.clock_out_time else None,
        "total_break_minutes": entry.total_break_minutes,
        "total_hours": entry.total_hours,
    }


class TimeEntryService:
    """
    Service for the time entry workflow.

    Usage:
        service = TimeEntryService(db, session, client_ip)

        entry = service.clock_in("P-100", location={"latitude": 59.3, "longitude": 18.0})
        service.toggle_break()
        service.toggle_break()
        result = service.clock_out()
        if isinstance(result, AllocationPrompt):
            service.allocate_projects(entry.entry_id, rows, confirm=True)

        db.commit()

    Validation failures raise ValueError (AllocationError for allocation
    problems). The caller owns the transaction.
    """

    def __init__(
        self,
        db: Session,
        session: AuthSession,
        ip_address: Optional[str] = None,
        geolocation: Optional[GeolocationResolver] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.session = session
        self.audit = AuditService(db, session.email, ip_address)
        self.geolocation = geolocation
        self.clock = clock

    # Lookups

    def get_entry(self, entry_id: int) -> TimeEntry:
        """Get an entry the caller may see (own entries, or any for managers)."""
        entry = self.db.get(TimeEntry, entry_id)
        if not entry:
            raise TimeEntryNotFound(f"Time entry {entry_id} not found")
        if entry.employee_email != self.session.email and not self.session.is_manager:
            raise AuthorizationError("Cannot access another employee's time entry")
        return entry

    def get_active_entry(self, employee_email: Optional[str] = None) -> Optional[TimeEntry]:
        email = employee_email or self.session.email
        return self.db.execute(
            select(TimeEntry)
            .where(TimeEntry.employee_email == email, TimeEntry.status == "active")
            .order_by(TimeEntry.clock_in_time.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_entries(
        self,
        employee_email: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[TimeEntry]:
        """List entries, newest first. Employees only ever see their own."""
        if not self.session.is_manager:
            employee_email = self.session.email

        query = select(TimeEntry)
        if employee_email:
            query = query.where(TimeEntry.employee_email == employee_email)
        if start_date:
            query = query.where(TimeEntry.entry_date >= start_date)
        if end_date:
            query = query.where(TimeEntry.entry_date <= end_date)
        if status:
            query = query.where(TimeEntry.status == status)

        return list(
            self.db.execute(
                query.order_by(TimeEntry.clock_in_time.desc(), TimeEntry.entry_id.desc())
            ).scalars()
        )

    # Workflow

    def clock_in(
        self,
        project_id: Optional[str],
        location: Optional[dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> TimeEntry:
        """
        Start a new active entry for the caller.

        Raises:
            ValueError: no project given, or an entry is already active
        """
        project_key = str(project_id).strip() if project_id is not None else ""
        if not project_key:
            raise ValueError("You must select project before clocking in")

        if resolve_project(self.db, project_key) is None:
            raise ValueError(f"Unknown project: {project_key}")

        active = self.get_active_entry()
        if active is not None:
            if active.clock_out_time is not None:
                raise ValueError(f"Allocate your hours for entry {active.entry_id} first")
            raise ValueError("You are already clocked in")

        now = self.clock()
        entry = TimeEntry(
            employee_email=self.session.email,
            entry_date=now.date(),
            clock_in_time=now,
            status="active",
            breaks=[],
            total_break_minutes=0,
            project_allocations=[
                {"project_id": project_key, "hours": 0, "category": DEFAULT_CATEGORY, "notes": None}
            ],
            clock_in_location=self._resolve_location(location),
            notes=notes.strip() if notes else None,
        )

        self.db.add(entry)
        self.db.flush()
        self.audit.log_insert(entry)

        logger.info("clock_in", employee=self.session.email, entry_id=entry.entry_id, project=project_key)
        return entry

    def toggle_break(self) -> Optional[TimeEntry]:
        """
        Start or end a break on the caller's active entry.

        Returns None (and does nothing) when the caller is not clocked in.
        """
        entry = self.get_active_entry()
        if entry is None or entry.clock_out_time is not None:
            return None

        now = self.clock()
        if entry.break_started_at is None:
            entry.break_started_at = now
            logger.info("break_started", employee=self.session.email, entry_id=entry.entry_id)
        else:
            self._close_break(entry, now)
            logger.info(
                "break_ended",
                employee=self.session.email,
                entry_id=entry.entry_id,
                total_break_minutes=entry.total_break_minutes,
            )

        self.db.flush()
        return entry

    def clock_out(
        self,
        location: Optional[dict[str, Any]] = None,
        split: bool = False,
    ) -> TimeEntry | AllocationPrompt:
        """
        Clock the caller out of their active entry.

        With a single allocation and no split requested, the net hours go
        straight onto that allocation and the entry is completed. Otherwise
        an AllocationPrompt is returned and the entry stays active.

        Raises:
            ValueError: the caller is not clocked in, or is clocked out
                with hours still to allocate
        """
        entry = self.get_active_entry()
        if entry is None:
            raise ValueError("You are not clocked in")
        if entry.clock_out_time is not None:
            raise ValueError(f"Allocate your hours for entry {entry.entry_id} first")

        old_state = self.audit.capture_state(entry)
        now = self.clock()

        if entry.break_started_at is not None:
            self._close_break(entry, now)

        entry.clock_out_time = now
        entry.clock_out_location = self._resolve_location(location)
        net_hours = compute_net_hours(entry.clock_in_time, now, entry.total_break_minutes)
        entry.total_hours = net_hours

        allocations = list(entry.project_allocations or [])
        if len(allocations) == 1 and not split:
            allocation = dict(allocations[0])
            allocation["hours"] = net_hours
            entry.project_allocations = [allocation]
            entry.status = "completed"
            self.db.flush()
            self.audit.log_update(entry, old_state, context="clock out")
            logger.info("clock_out", employee=self.session.email, entry_id=entry.entry_id, total_hours=net_hours)
            return entry

        self.db.flush()
        self.audit.log_update(entry, old_state, context="clock out")
        logger.info(
            "clock_out_needs_allocation",
            employee=self.session.email,
            entry_id=entry.entry_id,
            total_hours=net_hours,
        )
        return self.allocation_prompt(entry)

    def allocation_prompt(self, entry: TimeEntry) -> AllocationPrompt:
        """The figures the allocation editor starts from."""
        if entry.total_hours is None:
            raise ValueError("Entry has no clock-out time yet")
        return AllocationPrompt(
            entry=entry,
            net_hours=entry.total_hours,
            available_hours=available_hours(entry.total_hours),
            allocations=list(entry.project_allocations or []),
        )

    def allocate_projects(
        self,
        entry_id: int,
        allocations: list[dict[str, Any]],
        confirm: bool = False,
    ) -> TimeEntry:
        """
        Save the project split for a clocked-out entry and complete it.

        Raises:
            OverAllocationError: more than the available hours allocated
            NoValidAllocationError: no row has a project and hours
            AllocationConfirmationRequired: the split leaves hours over
                and confirm is False
            AllocationError: unknown project or category
            ValueError: the entry cannot be allocated in its current state
        """
        entry = self.get_entry(entry_id)
        if entry.employee_email != self.session.email and not self.session.is_admin:
            raise AuthorizationError("Only the employee or an admin can allocate this entry")
        if entry.clock_out_time is None:
            raise ValueError("Clock out before allocating hours")
        if entry.status == "pending_review":
            raise ValueError("Entry has a pending adjustment request")

        net_hours = compute_net_hours(entry.clock_in_time, entry.clock_out_time, entry.total_break_minutes)
        editor = AllocationEditor(available_hours(net_hours), allocations)
        rows = editor.validate(confirm=confirm)

        for row in rows:
            if resolve_project(self.db, row["project_id"]) is None:
                raise AllocationError(f"Unknown project: {row['project_id']}")

        old_state = self.audit.capture_state(entry)
        entry.project_allocations = rows
        entry.total_hours = net_hours
        entry.status = "completed"
        self.db.flush()
        self.audit.log_update(entry, old_state, context="project allocation")

        allocated = round_hours(sum(row["hours"] for row in rows))
        if abs(allocated - net_hours) > settings.allocation_tolerance_hours:
            logger.warning(
                "allocation_mismatch",
                entry_id=entry.entry_id,
                allocated=allocated,
                total_hours=net_hours,
            )
        logger.info("projects_allocated", entry_id=entry.entry_id, allocations=len(rows), allocated=allocated)
        return entry

    def request_adjustment(
        self,
        entry_id: int,
        clock_in: time,
        clock_out: time,
        total_break_minutes: float,
        reason: str,
    ) -> ApprovalRequest:
        """
        Ask an admin to correct a completed entry's times.

        Times are times of day on the entry's date; a clock-out earlier
        than the clock-in is taken to be on the following day.

        Raises:
            ValueError: missing reason, negative break, or the entry is
                active or already under review
        """
        if not (reason or "").strip():
            raise ValueError("A reason is required for a time adjustment")
        if total_break_minutes is None or total_break_minutes < 0:
            raise ValueError("Break minutes cannot be negative")

        entry = self.get_entry(entry_id)
        if entry.employee_email != self.session.email and not self.session.is_admin:
            raise AuthorizationError("Only the employee or an admin can request an adjustment")
        if entry.status == "active":
            raise ValueError("Clock out before requesting an adjustment")
        if entry.status == "pending_review":
            raise ValueError("This entry already has a pending adjustment request")

        new_in = datetime.combine(entry.entry_date, clock_in)
        new_out = datetime.combine(entry.entry_date, clock_out)
        if new_out < new_in:
            new_out += timedelta(days=1)

        requested = {
            "clock_in_time": new_in.isoformat(),
            "clock_out_time": new_out.isoformat(),
            "total_break_minutes": float(total_break_minutes),
            "total_hours": compute_net_hours(new_in, new_out, total_break_minutes),
        }

        request = ApprovalRequest(
            type="time_adjustment",
            requester_email=self.session.email,
            related_entity_id=entry.entry_id,
            related_entity_type="TimeEntry",
            original_data=snapshot_times(entry),
            requested_data=requested,
            reason=reason.strip(),
            status="pending",
        )
        self.db.add(request)

        old_state = self.audit.capture_state(entry)
        entry.status = "pending_review"
        self.db.flush()
        self.audit.log_insert(request)
        self.audit.log_update(entry, old_state, context=f"adjustment request {request.request_id}")

        logger.info("adjustment_requested", entry_id=entry.entry_id, request_id=request.request_id)
        return request

    # Scheduled checks

    def sweep_long_running(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Close or flag entries that have been active too long.

        At auto_clock_out_hours the entry is clocked out at exactly that
        point and completed with an anomaly. At overtime_warning_hours it
        is only flagged (once).
        """
        now = now or self.clock()
        result = SweepResult()

        entries = self.db.execute(
            select(TimeEntry).where(TimeEntry.status == "active", TimeEntry.clock_out_time.is_(None))
        ).scalars().all()

        for entry in entries:
            hours_open = (now - entry.clock_in_time).total_seconds() / 3600

            if hours_open >= settings.auto_clock_out_hours:
                old_state = self.audit.capture_state(entry)
                cutoff = entry.clock_in_time + timedelta(hours=settings.auto_clock_out_hours)
                if entry.break_started_at is not None:
                    self._close_break(entry, max(cutoff, entry.break_started_at))

                entry.clock_out_time = cutoff
                entry.total_hours = compute_net_hours(entry.clock_in_time, cutoff, entry.total_break_minutes)
                allocations = list(entry.project_allocations or [])
                if len(allocations) == 1:
                    allocation = dict(allocations[0])
                    allocation["hours"] = entry.total_hours
                    entry.project_allocations = [allocation]
                entry.status = "completed"
                entry.anomaly_flag = True
                limit = f"{settings.auto_clock_out_hours:g}"
                entry.anomaly_reason = (
                    f"Automatisk utstämpling efter {limit} timmar. Kontrollera att tiden är korrekt."
                )
                note = f"[System] Automatiskt utstämplad efter {limit} timmar."
                entry.notes = f"{entry.notes}\n{note}" if entry.notes else note

                self.db.flush()
                self.audit.log_update(entry, old_state, context="auto clock-out")
                result.auto_closed.append(entry.entry_id)

            elif hours_open >= settings.overtime_warning_hours and not entry.anomaly_flag:
                entry.anomaly_flag = True
                entry.anomaly_reason = (
                    f"Lång arbetsdag ({round(hours_open)} timmar). Glöm inte att stämpla ut."
                )
                result.flagged.append(entry.entry_id)

        self.db.flush()
        if result.auto_closed or result.flagged:
            logger.info(
                "long_running_sweep",
                checked=len(entries),
                auto_closed=result.auto_closed,
                flagged=result.flagged,
            )
        return result

    def notify_forgotten_clock_outs(self, now: Optional[datetime] = None) -> int:
        """
        Remind employees who have been clocked in for over a day, and tell
        every admin how many such entries there are.

        An entry whose reminder is still unread is skipped, so repeated
        runs do not pile up notifications. Returns the number created.
        """
        now = now or self.clock()
        cutoff = now - timedelta(hours=settings.forgot_clock_out_hours)

        reminded = select(Notification.related_entity_id).where(
            Notification.type == "forgot_clock_out",
            Notification.related_entity_type == "TimeEntry",
            Notification.related_entity_id.is_not(None),
            Notification.is_read == False,  # noqa: E712
        )
        pending = self.db.execute(
            select(TimeEntry).where(
                TimeEntry.status == "active",
                TimeEntry.clock_out_time.is_(None),
                TimeEntry.clock_in_time < cutoff,
                TimeEntry.entry_id.not_in(reminded),
            )
        ).scalars().all()

        if not pending:
            return 0

        notifications = NotificationService(self.db)
        created = 0
        for entry in pending:
            notifications.notify(
                recipient_email=entry.employee_email,
                type="forgot_clock_out",
                title="Glömt att stämpla ut?",
                message=(
                    f"Du har en aktiv tidrapportering från {entry.clock_in_time.date().isoformat()} "
                    "som inte har stämplats ut."
                ),
                priority="high",
                related_entity_id=entry.entry_id,
                related_entity_type="TimeEntry",
            )
            created += 1

        created += len(
            notifications.notify_admins(
                type="system",
                title="Utestående tidrapporter",
                message=f"Det finns {len(pending)} utestående tidrapport(er) som behöver granskas.",
            )
        )

        self.db.flush()
        logger.info("forgotten_clock_outs", pending=len(pending), notifications=created)
        return created

    # Helpers

    def _close_break(self, entry: TimeEntry, end: datetime) -> None:
        start = entry.break_started_at
        duration = round(max((end - start).total_seconds(), 0) / 60, 2)
        breaks = list(entry.breaks or [])
        breaks.append({
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "duration_minutes": duration,
        })
        entry.breaks = breaks
        entry.total_break_minutes = round(sum(float(b["duration_minutes"]) for b in breaks), 2)
        entry.break_started_at = None

    def _resolve_location(self, location: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
        if not location:
            return None
        resolver = self.geolocation or GeolocationResolver()
        return resolver.resolve(location)


def run_scheduled_checks() -> SweepResult:
    """
    One pass of the periodic job: remind about forgotten clock-outs, then
    close or flag long-running entries. Uses its own session.
    """
    from fleetdesk.database import get_db_context
    from fleetdesk.services.auth import SYSTEM_SESSION

    with get_db_context() as db:
        service = TimeEntryService(db, SYSTEM_SESSION)
        service.notify_forgotten_clock_outs()
        result = service.sweep_long_running()
        db.commit()
    return result
