# FleetDesk - Reporting
# Pure aggregation over already-filtered time entries and trips

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Iterable, Any

from fleetdesk.config import get_settings


settings = get_settings()


def _number(value: Any) -> float:
    return float(value or 0)


def _rounded(totals: dict) -> dict:
    return {key: round(value, 2) for key, value in totals.items()}


def hours_by_employee(entries: Iterable[Any]) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for entry in entries:
        totals[entry.employee_email] += _number(entry.total_hours)
    return _rounded(totals)


def hours_by_day(entries: Iterable[Any]) -> dict[date, float]:
    totals: dict[date, float] = defaultdict(float)
    for entry in entries:
        totals[entry.entry_date] += _number(entry.total_hours)
    return dict(sorted(_rounded(totals).items()))


def hours_by_category(entries: Iterable[Any]) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for entry in entries:
        for allocation in entry.project_allocations or []:
            totals[allocation.get("category") or "interntid"] += _number(allocation.get("hours"))
    return _rounded(totals)


def hours_by_project(entries: Iterable[Any]) -> dict[str, float]:
    """Allocated hours keyed by the allocation's project key."""
    totals: dict[str, float] = defaultdict(float)
    for entry in entries:
        for allocation in entry.project_allocations or []:
            totals[str(allocation.get("project_id"))] += _number(allocation.get("hours"))
    return _rounded(totals)


def _live(trips: Iterable[Any]) -> list[Any]:
    return [trip for trip in trips if not getattr(trip, "is_deleted", False)]


def distance_by_driver(trips: Iterable[Any]) -> dict[str, float]:
    """Kilometers per driver; deleted trips are ignored."""
    totals: dict[str, float] = defaultdict(float)
    for trip in _live(trips):
        totals[trip.driver_email or "okänd"] += _number(trip.distance_km)
    return _rounded(totals)


def distance_by_vehicle(trips: Iterable[Any]) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for trip in _live(trips):
        totals[trip.vehicle_id] += _number(trip.distance_km)
    return _rounded(totals)


def trip_type_counts(trips: Iterable[Any]) -> dict[str, int]:
    counts: dict[str, int] = defaultdict(int)
    for trip in _live(trips):
        counts[trip.trip_type] += 1
    return dict(counts)


def budget_percentage(used: float, budget: Optional[float]) -> tuple[float, float]:
    """
    Budget consumption as (bar, text): the bar value is clamped to 0..100,
    the text value is not. No budget gives (0, 0).
    """
    if not budget:
        return 0.0, 0.0
    percentage = round(_number(used) / budget * 100, 1)
    return min(max(percentage, 0.0), 100.0), percentage


def estimated_cost(hours: float, hourly_rate: Optional[float]) -> Optional[float]:
    if hourly_rate is None:
        return None
    return round(_number(hours) * hourly_rate, 2)


def vehicle_cost(distance_km: float, rate_per_km: Optional[float] = None) -> float:
    rate = settings.vehicle_cost_per_km if rate_per_km is None else rate_per_km
    return round(_number(distance_km) * rate, 2)


@dataclass
class ProjectSummary:
    project_code: str
    name: str
    total_hours: float
    budget_hours: Optional[float]
    budget_bar_percentage: float
    budget_percentage: float
    over_budget: bool
    labour_cost: Optional[float]
    distance_km: float
    vehicle_cost: float
    total_cost: float
    hours_by_employee: dict[str, float] = field(default_factory=dict)
    hours_by_category: dict[str, float] = field(default_factory=dict)


def project_summary(
    project: Any,
    entries: Iterable[Any],
    trips: Iterable[Any] = (),
    keys: Optional[set[str]] = None,
) -> ProjectSummary:
    """
    Hours, budget use and costs for one project.

    entries are time entries; only allocations whose project key is in
    `keys` (default: the project code and id) count. trips are the
    journal trips already filtered to this project.
    """
    keys = keys or {project.project_code, str(project.project_id)}

    per_employee: dict[str, float] = defaultdict(float)
    per_category: dict[str, float] = defaultdict(float)
    for entry in entries:
        for allocation in entry.project_allocations or []:
            if str(allocation.get("project_id")) not in keys:
                continue
            hours = _number(allocation.get("hours"))
            per_employee[entry.employee_email] += hours
            per_category[allocation.get("category") or "interntid"] += hours

    total_hours = round(sum(per_employee.values()), 2)
    bar, text = budget_percentage(total_hours, project.budget_hours)
    labour = estimated_cost(total_hours, project.hourly_rate)
    distance = round(sum(_number(trip.distance_km) for trip in _live(trips)), 2)
    vehicle = vehicle_cost(distance)

    return ProjectSummary(
        project_code=project.project_code,
        name=project.name,
        total_hours=total_hours,
        budget_hours=project.budget_hours,
        budget_bar_percentage=bar,
        budget_percentage=text,
        over_budget=bool(project.budget_hours) and total_hours > project.budget_hours,
        labour_cost=labour,
        distance_km=distance,
        vehicle_cost=vehicle,
        total_cost=round((labour or 0) + vehicle, 2),
        hours_by_employee=_rounded(per_employee),
        hours_by_category=_rounded(per_category),
    )
