# FleetDesk - Allocation Rules
# Net-hours arithmetic, the lunch deduction and the project allocation editor

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Any, Iterable

from fleetdesk.config import get_settings
from fleetdesk.models.time_entry import ALLOCATION_CATEGORIES


settings = get_settings()

DEFAULT_CATEGORY = "interntid"


class AllocationError(ValueError):
    """Raised when a set of allocations cannot be saved."""
    pass


class OverAllocationError(AllocationError):
    """More hours allocated than are available."""

    def __init__(self, allocated: float, available: float):
        self.allocated = round_hours(allocated)
        self.available = round_hours(available)
        self.excess = round_hours(allocated - available)
        super().__init__(
            f"Allocated {self.allocated:.2f}h but only {self.available:.2f}h available "
            f"({self.excess:.2f}h too many)"
        )


class NoValidAllocationError(AllocationError):
    def __init__(self):
        super().__init__("At least one allocation needs a project and more than 0 hours")


class AllocationConfirmationRequired(Exception):
    """
    The allocations do not add up to the available hours.

    Not an error: saving is allowed once the caller confirms.
    """

    def __init__(self, allocated: float, available: float):
        self.allocated = round_hours(allocated)
        self.available = round_hours(available)
        self.remaining = round_hours(available - allocated)
        super().__init__(
            f"{self.remaining:.2f}h of {self.available:.2f}h left unallocated; confirm to save anyway"
        )


def round_hours(value: float) -> float:
    return round(float(value) + 0.0, 2)


def compute_raw_hours(clock_in: datetime, clock_out: datetime) -> float:
    """Elapsed hours between clock-in and clock-out, unrounded."""
    return (clock_out - clock_in).total_seconds() / 3600


def compute_net_hours(
    clock_in: datetime,
    clock_out: datetime,
    total_break_minutes: float = 0,
) -> float:
    """
    Net worked hours: elapsed time minus breaks, never negative,
    rounded to 2 decimals.
    """
    raw = compute_raw_hours(clock_in, clock_out)
    net = raw - float(total_break_minutes or 0) / 60
    return round_hours(max(net, 0.0))


def available_hours(
    net_hours: float,
    threshold: Optional[float] = None,
    deduction: Optional[float] = None,
) -> float:
    """
    Hours offered for project allocation.

    A day of `threshold` hours or more (8 by default) is assumed to
    include an unpaid lunch, so `deduction` (1 by default) is taken off.
    Only the allocation view uses this; stored totals are not adjusted.
    """
    threshold = settings.lunch_threshold_hours if threshold is None else threshold
    deduction = settings.lunch_deduction_hours if deduction is None else deduction
    net_hours = round_hours(net_hours)
    if net_hours >= threshold:
        return round_hours(max(net_hours - deduction, 0.0))
    return net_hours


@dataclass
class AllocationRow:
    project_id: str = ""
    hours: float = 0.0
    category: str = DEFAULT_CATEGORY
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AllocationRow":
        category = data.get("category") or DEFAULT_CATEGORY
        if category not in ALLOCATION_CATEGORIES:
            raise AllocationError(f"Unknown allocation category: {category}")
        hours = float(data.get("hours") or 0)
        if hours < 0:
            raise AllocationError("Allocated hours cannot be negative")
        project_id = data.get("project_id")
        return cls(
            project_id=str(project_id).strip() if project_id is not None else "",
            hours=hours,
            category=category,
            notes=data.get("notes") or None,
        )

    @property
    def is_valid(self) -> bool:
        return bool(self.project_id) and self.hours > 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["hours"] = round_hours(self.hours)
        return data


class AllocationEditor:
    """
    Editing session for splitting an entry's hours across projects.

    Usage:
        editor = AllocationEditor(available_hours(entry.total_hours))
        editor.add_row("P-100")                 # pre-filled with all remaining hours
        editor.update_row(0, "hours", 5)
        editor.add_row("P-200")                 # pre-filled with what is left
        allocations = editor.validate(confirm=False)

    allocated_hours and remaining_hours always reflect the current rows.
    Changing the hours on row i resets row i+1 (only) to whatever is
    left after rows 0..i.
    """

    def __init__(
        self,
        available: float,
        rows: Optional[Iterable[dict[str, Any]]] = None,
        tolerance: Optional[float] = None,
    ):
        self.available = round_hours(available)
        self.tolerance = settings.allocation_tolerance_hours if tolerance is None else tolerance
        self.rows: list[AllocationRow] = [AllocationRow.from_dict(r) for r in rows or []]

    @property
    def allocated_hours(self) -> float:
        return round_hours(sum(row.hours for row in self.rows))

    @property
    def remaining_hours(self) -> float:
        return round_hours(self.available - self.allocated_hours)

    def add_row(
        self,
        project_id: str = "",
        category: str = DEFAULT_CATEGORY,
        notes: Optional[str] = None,
    ) -> AllocationRow:
        """Append a row pre-filled with the remaining hours (never negative)."""
        row = AllocationRow.from_dict({
            "project_id": project_id,
            "hours": max(self.remaining_hours, 0.0),
            "category": category,
            "notes": notes,
        })
        self.rows.append(row)
        return row

    def remove_row(self, index: int) -> AllocationRow:
        self._check_index(index)
        return self.rows.pop(index)

    def update_row(self, index: int, field: str, value: Any) -> AllocationRow:
        """
        Change one field of one row.

        Editing hours cascades to the next row only.
        """
        self._check_index(index)
        row = self.rows[index]

        if field == "hours":
            hours = float(value or 0)
            if hours < 0:
                raise AllocationError("Allocated hours cannot be negative")
            row.hours = hours
            if index + 1 < len(self.rows):
                allocated_through = sum(r.hours for r in self.rows[: index + 1])
                self.rows[index + 1].hours = round_hours(max(self.available - allocated_through, 0.0))
        elif field == "project_id":
            row.project_id = str(value).strip() if value is not None else ""
        elif field == "category":
            if value not in ALLOCATION_CATEGORIES:
                raise AllocationError(f"Unknown allocation category: {value}")
            row.category = value
        elif field == "notes":
            row.notes = value or None
        else:
            raise AllocationError(f"Unknown allocation field: {field}")

        return row

    def valid_rows(self) -> list[AllocationRow]:
        return [row for row in self.rows if row.is_valid]

    def validate(self, confirm: bool = False) -> list[dict[str, Any]]:
        """
        Check the rows and return the ones to persist.

        Raises:
            OverAllocationError: more hours than available (always blocks)
            NoValidAllocationError: no row has both a project and hours
            AllocationConfirmationRequired: the rows do not add up and
                confirm is False
        """
        if self.allocated_hours > self.available:
            raise OverAllocationError(self.allocated_hours, self.available)

        valid = self.valid_rows()
        if not valid:
            raise NoValidAllocationError()

        valid_total = round_hours(sum(row.hours for row in valid))
        if round_hours(abs(self.available - valid_total)) > self.tolerance and not confirm:
            raise AllocationConfirmationRequired(valid_total, self.available)

        return [row.to_dict() for row in valid]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.rows):
            raise IndexError(f"No allocation row {index}")
