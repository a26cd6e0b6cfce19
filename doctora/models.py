from __future__ import annotations
import re
import uuid
from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _Camel(BaseModel):
    """Backend payloads are camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Booking workflow ----------------------------------------------------------

SLOT_LABEL = r"^\d{1,2}:\d{2}-\d{1,2}:\d{2}$"


class SelectionType(str, Enum):
    AUTO = "auto"      # assign a doctor for me
    MANUAL = "manual"  # I want to pick the doctor


class BookingDraft(BaseModel):
    """In-progress selection threaded across the booking steps.

    Unknown keys are kept so that a step never drops fields written by a newer
    or different step.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: int = 1
    flow_id: str = Field(default_factory=lambda: uuid.uuid4().hex, alias="flowId")
    department: str = Field("", alias="depart")
    selection_type: SelectionType | None = Field(None, alias="bookingType")
    selected_doctor_id: int | None = Field(None, alias="selectedDoctorId")
    selected_doctor_name: str = Field("", alias="selectedDoctor")
    selected_date: date | None = Field(None, alias="selectedDate")
    selected_time: str = Field("", alias="selectedTime")
    illness_description: str = Field("", alias="symptoms")
    # upload-only, never written to the store
    attachments: list[str] = Field(default_factory=list, exclude=True)

    @field_validator("selected_date", mode="before")
    @classmethod
    def _date_part(cls, v):
        # ISO datetimes are accepted, only the calendar day is kept
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if v == "":
            return None
        return v

    @field_validator("department", "selected_doctor_name", "selected_time", "illness_description", mode="before")
    @classmethod
    def _none_is_blank(cls, v):
        return "" if v is None else v

    @field_validator("selected_time")
    @classmethod
    def _slot_label(cls, v: str) -> str:
        if v and not re.fullmatch(SLOT_LABEL, v):
            raise ValueError("time slot must look like 9:00-10:00")
        return v


class ConfirmedBooking(BaseModel):
    """What a confirmation already committed, kept until its receipt exists."""

    owner_email: str
    queue_number: str
    history_id: str
    appointment_id: int | None = None


GENDERS = ("male", "female", "other")


class PatientRecord(BaseModel):
    """Identity details collected on the patient form."""

    model_config = ConfigDict(populate_by_name=True)

    prefix: str = ""
    first_name: str = Field(..., min_length=1, alias="firstName")
    last_name: str = Field(..., min_length=1, alias="lastName")
    gender: str = ""
    date_of_birth: date = Field(..., alias="dob")
    nationality: str = ""
    national_id: str = Field(..., pattern=r"^[0-9]{13}$", alias="citizenId")
    phone: str = Field(..., pattern=r"^[0-9]{9,10}$")
    email: str | None = None
    consent_given: bool = Field(False, alias="consent")

    @field_validator("gender")
    @classmethod
    def _known_gender(cls, v: str) -> str:
        if v and v not in GENDERS:
            raise ValueError(f"gender must be one of {', '.join(GENDERS)}")
        return v

    @field_validator("email")
    @classmethod
    def _looks_like_email(cls, v: str | None) -> str | None:
        if v and not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", v):
            raise ValueError("invalid email address")
        return v or None

    @field_validator("consent_given")
    @classmethod
    def _consent_required(cls, v: bool) -> bool:
        if not v:
            raise ValueError("consent is required before submitting")
        return v

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.prefix, self.first_name, self.last_name) if p)


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def color(self) -> str:
        return _STATUS_COLORS[self]

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_COLORS = {
    BookingStatus.PENDING: "yellow",
    BookingStatus.CONFIRMED: "green",
    BookingStatus.COMPLETED: "blue",
    BookingStatus.CANCELLED: "red",
}

_STATUS_LABELS = {
    BookingStatus.PENDING: "รอการยืนยัน",
    BookingStatus.CONFIRMED: "ยืนยันแล้ว",
    BookingStatus.COMPLETED: "เสร็จสิ้น",
    BookingStatus.CANCELLED: "ยกเลิกแล้ว",
}


class HistoryEntry(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    queue_number: str
    patient_name: str
    doctor_name: str = ""
    department: str = ""
    appointment_type: str = ""
    illness_description: str = ""
    date: str = ""
    time: str = ""
    status: BookingStatus = BookingStatus.PENDING
    status_color: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    owner_email: str
    appointment_id: int | None = None

    @model_validator(mode="after")
    def _default_color(self) -> "HistoryEntry":
        if not self.status_color:
            self.status_color = self.status.color
        return self


# Schedules and doctors ------------------------------------------------------

class AvailabilitySlot(BaseModel):
    slot_id: int
    time: str  # "09:00-10:00"
    available: bool
    conflicting_appointment_id: int | None = None


class DaySchedule(BaseModel):
    day: date
    weekday: str
    slots: list[AvailabilitySlot] = Field(default_factory=list)

    @property
    def has_clinic(self) -> bool:
        return bool(self.slots)


class Doctor(BaseModel):
    """Doctor as shown on the search and detail pages."""

    id: int
    name: str
    department: str
    gender: str = ""
    education: str = ""
    languages: list[str] = Field(default_factory=list)
    specialties: str = ""
    available_times: list[str] = Field(default_factory=list)
    available_dates: list[date] = Field(default_factory=list)
    next_available_time: str | None = None


# Backend payloads ------------------------------------------------------------

class Role(str, Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class LoginForm(BaseModel):
    email: str
    password: str = Field(..., min_length=1)


class RegisterForm(BaseModel):
    email: str
    password: str
    confirm_password: str
    first_name: str = ""
    last_name: str = ""

    @model_validator(mode="after")
    def _passwords(self) -> "RegisterForm":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if len(self.password) < 6:
            raise ValueError("Password must be at least 6 characters")
        return self

    def payload(self) -> dict:
        return {
            "email": self.email,
            "password": self.password,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": Role.PATIENT.value,
        }


class LoginResponse(_Camel):
    token: str
    type: str = "Bearer"
    id: int
    email: str
    first_name: str = ""
    last_name: str = ""
    role: Role


class User(_Camel):
    id: int
    email: str
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""
    role: Role
    phone: str | None = None
    created_at: datetime | None = None


class SpecialtyRef(_Camel):
    id: int
    name: str


class Specialty(_Camel):
    id: int
    name: str
    description: str = ""
    doctor_count: int | None = None


class BackendDoctor(_Camel):
    id: int
    doctor_name: str
    email: str = ""
    specialty: SpecialtyRef
    license_number: str = ""
    experience_years: int = 0
    consultation_fee: float = 0
    room_number: str = ""
    is_active: bool = True
    bio: str | None = None
    education: str | None = None
    phone: str | None = None
    languages: list[str] = Field(default_factory=list)
    available_times: list[str] = Field(default_factory=list)
    next_available_time: str | None = None

    def as_doctor(self) -> Doctor:
        return Doctor(
            id=self.id,
            name=self.doctor_name,
            department=self.specialty.name,
            education=self.education or "",
            languages=self.languages,
            specialties=self.bio or "",
            available_times=self.available_times,
            next_available_time=self.next_available_time,
        )


class DoctorPage(_Camel):
    doctors: list[BackendDoctor] = Field(default_factory=list)
    current_page: int = 0
    total_items: int = 0
    total_pages: int = 0
    has_next: bool = False
    has_previous: bool = False


class DoctorStats(_Camel):
    total_doctors: int = 0
    active_doctors: int = 0
    average_experience: float = 0
    average_consultation_fee: float = 0


class AvailabilityPeriod(_Camel):
    start_time: str  # "HH:MM"
    end_time: str
    is_active: bool = True


class DayAvailability(_Camel):
    day_of_week: int  # ISO, 1 = Monday
    day_name: str = ""
    slots: list[AvailabilityPeriod] = Field(default_factory=list)


class AppointmentPatient(_Camel):
    id: int
    email: str = ""
    first_name: str = ""
    last_name: str = ""


class AppointmentDoctor(_Camel):
    id: int
    doctor_name: str
    specialty: SpecialtyRef


class Appointment(_Camel):
    id: int
    doctor: AppointmentDoctor
    patient: AppointmentPatient | None = None
    appointment_datetime: datetime
    duration_minutes: int = 30
    # kept loose, the backend also knows NO_SHOW
    status: str = BookingStatus.PENDING.value
    notes: str | None = None
    doctor_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateAppointmentRequest(_Camel):
    doctor_id: int
    appointment_date_time: datetime
    duration_minutes: int = 30
    notes: str | None = None
    patient_info: dict | None = None


class PatientInfoAck(_Camel):
    queue_number: str | None = None


class BookingResult(_Camel):
    appointment: Appointment
    patient_info: PatientInfoAck | None = None


class SmartSelection(_Camel):
    doctor: BackendDoctor | None = None
    available_hours: float | None = None


class SpecialtyIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please enter a specialty name")
        return v.strip()


class DoctorCreate(_Camel):
    doctor_name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    specialty_id: int
    license_number: str
    experience_years: int = 0
    consultation_fee: float = 0
    room_number: str = ""
    bio: str = ""


def slot_start(label: str) -> time:
    """Start time of a slot label such as ``"9:00-10:00"``."""
    start = label.split("-", 1)[0].strip()
    hour, minute = start.split(":")
    return time(int(hour), int(minute))
