"""Demo reference data: departments, doctors and their weekly clinic templates.

Served in OFFLINE_MODE and used as the fallback schedule source when the
backend has no availability for a doctor.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, timedelta

from .models import Doctor

DEPARTMENTS = [
    "กระดูกและข้อ", "กุมารเวชกรรม", "นรีเวชกรรม", "ผิวหนัง",
    "ศัลยกรรมตกแต่ง", "ศัลยกรรมทั่วไป", "สุขภาพเพศชาย", "สมองและไขสันหลัง",
    "หลอดเลือด", "หัวใจและทรวงอก", "ศัลยกรรมเด็ก", "มะเร็งเต้านม",
    "สุขภาพจิต", "บุคคลข้ามเพศ", "หู คอ จมูก", "เวชศาสตร์นิวเคลียร์", "โรคหัวใจ",
]


# landing page banner, rotated every CAROUSEL_INTERVAL seconds
LANDING_SLIDES = [
    "จองคิวพบแพทย์ออนไลน์ ง่ายและรวดเร็ว",
    "เลือกแพทย์เองหรือให้ระบบเลือกแพทย์ที่ว่างให้",
    "รับใบยืนยันการนัดหมายทันทีหลังจอง",
]


@dataclass(frozen=True)
class SlotTemplate:
    slot_id: int
    time: str
    # slot is open when the date seed is above this; None means always open
    threshold: int | None = None
    conflicting_appointment_id: int | None = None


# weekday (Monday = 0) -> slots; missing weekdays have no clinic
WEEKLY_TEMPLATES: dict[int, dict[int, list[SlotTemplate]]] = {
    1: {
        0: [
            SlotTemplate(1, "09:00-10:00"),
            SlotTemplate(2, "10:00-11:00", 30, 123),
            SlotTemplate(3, "13:00-14:00"),
        ],
        1: [
            SlotTemplate(4, "09:00-10:00", 20, 456),
            SlotTemplate(5, "13:00-14:00"),
        ],
        2: [SlotTemplate(6, "09:00-10:00", 40, 789)],
        4: [
            SlotTemplate(7, "09:00-10:00"),
            SlotTemplate(8, "13:00-14:00", 30, 101),
        ],
    },
    2: {
        0: [SlotTemplate(9, "10:00-11:00"), SlotTemplate(10, "14:00-15:00")],
        1: [SlotTemplate(11, "10:00-11:00", 50, 789)],
        2: [SlotTemplate(12, "10:00-11:00"), SlotTemplate(13, "14:00-15:00")],
        4: [SlotTemplate(14, "10:00-11:00")],
    },
}
DEFAULT_TEMPLATE_ID = 1

_DOCTORS = [
    dict(
        id=1, name="นพ. กฤต อินทรจินดา", department="กระดูกและข้อ", gender="ชาย",
        education="แพทยศาสตรดุษฎีบัณฑิต มหาวิทยาลัยมหิดล", languages=["ไทย", "อังกฤษ"],
        specialties="แพทย์เชี่ยวชาญด้านกระดูกและข้อ",
        available_times=["9:00-10:00", "10:00-11:00", "13:00-14:00"], next_available_time="9:00-10:00",
    ),
    dict(
        id=2, name="นพ.รีโม", department="หัวใจและทรวงอก", gender="ชาย",
        education="แพทยศาสตรดุษฎีบัณฑิต จุฬาลงกรณ์มหาวิทยาลัย", languages=["ไทย", "อังกฤษ", "ญี่ปุ่น"],
        specialties="แพทย์เชี่ยวชาญด้านหัวใจและทรวงอก",
        available_times=["10:00-11:00", "14:00-15:00"], next_available_time="10:00-11:00",
    ),
    dict(
        id=3, name="นพ.อิง", department="นรีเวชกรรม", gender="หญิง",
        education="แพทยศาสตรดุษฎีบัณฑิต มหาวิทยาลัยศิริราช", languages=["ไทย", "อังกฤษ"],
        specialties="แพทย์เชี่ยวชาญด้านนรีเวชกรรม",
        available_times=["11:00-12:00", "15:00-16:00"], next_available_time="11:00-12:00",
    ),
    dict(
        id=4, name="นพ.ก้อง", department="กุมารเวชกรรม", gender="ชาย",
        education="แพทยศาสตรดุษฎีบัณฑิต มหาวิทยาลัยรามาธิบดี", languages=["ไทย", "อังกฤษ"],
        specialties="แพทย์เชี่ยวชาญด้านกุมารเวชกรรม",
        available_times=["9:00-10:00", "12:00-13:00"], next_available_time="12:00-13:00",
    ),
    dict(
        id=5, name="นพ.ฟิล์ม", department="กุมารเวชกรรม", gender="ชาย",
        education="แพทยศาสตรดุษฎีบัณฑิต มหาวิทยาลัยเชียงใหม่", languages=["ไทย", "อังกฤษ"],
        specialties="แพทย์เชี่ยวชาญด้านกุมารเวชกรรม",
        available_times=["9:00-10:00", "12:00-13:00"], next_available_time="12:00-13:00",
    ),
]


def demo_doctors(today: date | None = None) -> list[Doctor]:
    """Demo doctors, with available dates drawn from the next seven days' schedule."""
    from .availability import weekly_schedule  # circular: availability reads the templates

    today = today or date.today()
    window = [today + timedelta(days=i) for i in range(7)]
    doctors = []
    for raw in _DOCTORS:
        schedule = weekly_schedule(raw["id"], window)
        open_days = [d.day for d in schedule if any(s.available for s in d.slots)]
        doctors.append(Doctor(available_dates=open_days, **raw))
    return doctors


def find_doctor(doctor_id: int, today: date | None = None) -> Doctor | None:
    return next((d for d in demo_doctors(today) if d.id == doctor_id), None)
