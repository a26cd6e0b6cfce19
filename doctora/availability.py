"""Weekly schedules of bookable slots.

Two sources: the demo weekly templates in :mod:`doctora.catalog`, whose open
slots are decided by a seed derived from ``"{doctor_id}-{ISO date}"``, and the
backend's availability periods, sliced into 30-minute slots.
"""
from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from .catalog import DEFAULT_TEMPLATE_ID, WEEKLY_TEMPLATES
from .models import AvailabilityPeriod, AvailabilitySlot, DayAvailability, DaySchedule

WEEKDAYS_TH = ["จันทร์", "อังคาร", "พุธ", "พฤหัสบดี", "ศุกร์", "เสาร์", "อาทิตย์"]

SLOT_MINUTES = 30


def date_seed(doctor_id: int | str, day: date) -> int:
    """Stable number in [0, 100) for a doctor and a calendar day."""
    h = 0
    for ch in f"{doctor_id}-{day.isoformat()}":
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:  # signed 32-bit
        h -= 0x100000000
    return abs(h) % 100


def weekly_schedule(doctor_id: int | str, week_dates: Sequence[date]) -> list[DaySchedule]:
    """One :class:`DaySchedule` per date, in the order given.

    Unknown doctors get the default template.
    """
    template = WEEKLY_TEMPLATES.get(doctor_id) or WEEKLY_TEMPLATES[DEFAULT_TEMPLATE_ID]
    schedule = []
    for day in week_dates:
        seed = date_seed(doctor_id, day)
        slots = []
        for tpl in template.get(day.weekday(), []):
            available = tpl.threshold is None or seed > tpl.threshold
            slots.append(AvailabilitySlot(
                slot_id=tpl.slot_id,
                time=tpl.time,
                available=available,
                conflicting_appointment_id=None if available else tpl.conflicting_appointment_id,
            ))
        schedule.append(DaySchedule(day=day, weekday=WEEKDAYS_TH[day.weekday()], slots=slots))
    return schedule


def slots_from_periods(periods: Iterable[AvailabilityPeriod]) -> list[AvailabilitySlot]:
    """Slice availability periods into 30-minute slots; a trailing partial slot is dropped."""
    slots: list[AvailabilitySlot] = []
    anchor = date(2000, 1, 1)
    for period in periods:
        start = datetime.combine(anchor, datetime.strptime(period.start_time[:5], "%H:%M").time())
        end = datetime.combine(anchor, datetime.strptime(period.end_time[:5], "%H:%M").time())
        step = timedelta(minutes=SLOT_MINUTES)
        while start + step <= end:
            slots.append(AvailabilitySlot(
                slot_id=len(slots) + 1,
                time=f"{start:%H:%M}-{start + step:%H:%M}",
                available=period.is_active,
            ))
            start += step
    return slots


def schedule_from_backend(availability: Sequence[DayAvailability], week_dates: Sequence[date]) -> list[DaySchedule]:
    """Same shape as :func:`weekly_schedule`, built from backend availability."""
    by_day = {a.day_of_week: a for a in availability}
    schedule = []
    for day in week_dates:
        day_avail = by_day.get(day.isoweekday())
        slots = slots_from_periods(day_avail.slots) if day_avail else []
        schedule.append(DaySchedule(day=day, weekday=WEEKDAYS_TH[day.weekday()], slots=slots))
    return schedule


def start_of_week(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_dates(start: date) -> list[date]:
    return [start + timedelta(days=i) for i in range(7)]


def can_go_previous(view_start: date, today: date) -> bool:
    """The previous week may be shown only if it still contains today or later."""
    return view_start - timedelta(days=1) >= today
