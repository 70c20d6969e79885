# FleetDesk - Report Routes
# Manager reports over time entries and driving journal trips

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.dependencies import require_manager
from fleetdesk.models.driving_journal import DrivingJournalEntry
from fleetdesk.models.time_entry import TimeEntry
from fleetdesk.services import reporting
from fleetdesk.services.auth import AuthSession


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/time")
def time_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee_email: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    manager: AuthSession = Depends(require_manager),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Hours per employee, day, category and project for the period."""
    query = select(TimeEntry)
    if start_date:
        query = query.where(TimeEntry.entry_date >= start_date)
    if end_date:
        query = query.where(TimeEntry.entry_date <= end_date)
    if employee_email:
        query = query.where(TimeEntry.employee_email == employee_email)
    if status:
        query = query.where(TimeEntry.status == status)

    entries = db.execute(query).scalars().all()

    return {
        "entries": len(entries),
        "total_hours": round(sum(float(e.total_hours or 0) for e in entries), 2),
        "anomalies": sum(1 for e in entries if e.anomaly_flag),
        "by_employee": reporting.hours_by_employee(entries),
        "by_day": {day.isoformat(): hours for day, hours in reporting.hours_by_day(entries).items()},
        "by_category": reporting.hours_by_category(entries),
        "by_project": reporting.hours_by_project(entries),
    }


@router.get("/journal")
def journal_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    driver_email: Optional[str] = Query(None),
    vehicle_id: Optional[str] = Query(None),
    trip_type: Optional[str] = Query(None),
    manager: AuthSession = Depends(require_manager),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Kilometers per driver and vehicle, trip counts per type, and vehicle cost."""
    query = select(DrivingJournalEntry).where(DrivingJournalEntry.is_deleted == False)  # noqa: E712
    if start_date:
        query = query.where(DrivingJournalEntry.start_time >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.where(
            DrivingJournalEntry.start_time < datetime.combine(end_date + timedelta(days=1), time.min)
        )
    if driver_email:
        query = query.where(DrivingJournalEntry.driver_email == driver_email)
    if vehicle_id:
        query = query.where(DrivingJournalEntry.vehicle_id == vehicle_id)
    if trip_type:
        query = query.where(DrivingJournalEntry.trip_type == trip_type)

    trips = db.execute(query).scalars().all()
    total_km = round(sum(float(t.distance_km or 0) for t in trips), 2)
    business_km = round(sum(float(t.distance_km or 0) for t in trips if t.trip_type == "tjänst"), 2)

    return {
        "trips": len(trips),
        "total_km": total_km,
        "business_km": business_km,
        "business_cost": reporting.vehicle_cost(business_km),
        "by_driver": reporting.distance_by_driver(trips),
        "by_vehicle": reporting.distance_by_vehicle(trips),
        "by_trip_type": reporting.trip_type_counts(trips),
    }
