"""Views for the doctor dashboard."""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Sequence

from pydantic import BaseModel

from .models import Appointment, BackendDoctor, BookingStatus, DoctorStats


def status_label(status: str) -> str:
    try:
        return BookingStatus(status).label
    except ValueError:
        return status


def status_color(status: str) -> str:
    try:
        return BookingStatus(status).color
    except ValueError:
        return "gray"


def _naive(dt: datetime) -> datetime:
    return dt.replace(tzinfo=None) if dt.tzinfo else dt


def today_appointments(appointments: Sequence[Appointment], now: datetime | None = None) -> list[Appointment]:
    now = now or datetime.now()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    return [a for a in appointments if start <= _naive(a.appointment_datetime) < end]


def upcoming_appointments(appointments: Sequence[Appointment], now: datetime | None = None,
                          days: int = 7) -> list[Appointment]:
    """Appointments from now through the next ``days`` days, soonest first."""
    now = now or datetime.now()
    horizon = now + timedelta(days=days)
    upcoming = [a for a in appointments if now <= _naive(a.appointment_datetime) <= horizon]
    return sorted(upcoming, key=lambda a: _naive(a.appointment_datetime))


class DashboardView(BaseModel):
    profile: BackendDoctor | None = None
    stats: DoctorStats | None = None
    today: list[Appointment]
    upcoming: list[Appointment]
    total: int


def build_dashboard(appointments: Sequence[Appointment], profile: BackendDoctor | None = None,
                    stats: DoctorStats | None = None, now: datetime | None = None) -> DashboardView:
    return DashboardView(
        profile=profile,
        stats=stats,
        today=today_appointments(appointments, now),
        upcoming=upcoming_appointments(appointments, now),
        total=len(appointments),
    )
