"""Async client for the doctora REST backend.
Bearer-token auth; every call opens a short-lived HTTP/2 connection.
"""
from __future__ import annotations
from datetime import date

import httpx

from . import config
from .errors import AuthenticationError, BackendError, ConfigurationError, ConnectivityError
from .logging_config import get_logger
from .models import (
    Appointment,
    BackendDoctor,
    BookingResult,
    CreateAppointmentRequest,
    DayAvailability,
    DoctorCreate,
    DoctorPage,
    DoctorStats,
    LoginForm,
    LoginResponse,
    RegisterForm,
    SmartSelection,
    Specialty,
    SpecialtyIn,
    User,
)

logger = get_logger(__name__)

_BASE_URL = config.API_BASE_URL


def _auth_headers(token: str | None, required: bool) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    elif required:
        raise AuthenticationError("No authentication token found. Please login first.")
    return headers


def _payload(resp: httpx.Response, context: str):
    """Decode a JSON response or raise the matching error."""
    body = resp.text
    content_type = resp.headers.get("content-type", "")
    if "<!DOCTYPE html" in body[:200] or "<html" in body[:200].lower():
        logger.error("backend.html_response", context=context, status=resp.status_code, url=str(resp.request.url))
        raise ConfigurationError(
            f"{context}: API request was answered by a web page instead of the backend. "
            f"Check that the backend is running at {_BASE_URL} and the endpoint exists.",
            resp.status_code,
        )

    if not resp.is_success:
        message = f"{context} failed with status {resp.status_code}"
        if "json" in content_type:
            try:
                message = resp.json().get("message") or message
            except (ValueError, AttributeError):
                pass
        logger.warning("backend.error", context=context, status=resp.status_code, message=message)
        if resp.status_code in (401, 403):
            raise AuthenticationError(message, resp.status_code)
        raise BackendError(message, resp.status_code)

    if not body.strip():
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise ConnectivityError(f"{context}: backend returned a non-JSON response", resp.status_code) from exc


def _items(data, key: str) -> list:
    """Items of a wrapped list payload (``{"doctors": [...]}``); a bare list is accepted too."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key) or []
    return []


def _unwrap(data, key: str, context: str) -> dict:
    if not isinstance(data, dict):
        raise BackendError(f"{context}: backend returned no {key}", 502)
    return data.get(key, data)


async def _request(method: str, path: str, context: str, *, token: str | None = None,
                   auth: bool = False, **kwargs):
    headers = _auth_headers(token, auth)
    try:
        async with httpx.AsyncClient(http2=True, timeout=config.HTTP_TIMEOUT) as client:
            resp = await client.request(method, f"{_BASE_URL}{path}", headers=headers, **kwargs)
    except httpx.TimeoutException as exc:
        logger.error("backend.timeout", context=context, path=path)
        raise ConnectivityError(f"{context}: backend did not answer in time") from exc
    except httpx.TransportError as exc:
        logger.error("backend.unreachable", context=context, path=path, error=str(exc))
        raise ConnectivityError("Cannot connect to server. Please check if backend is running.") from exc
    logger.debug("backend.response", method=method, path=path, status=resp.status_code)
    return _payload(resp, context)


# Auth ----------------------------------------------------------------------

async def login(form: LoginForm) -> LoginResponse:
    data = await _request("POST", "/api/auth/login", "Login", json=form.model_dump())
    return LoginResponse.model_validate(data)


async def register(form: RegisterForm) -> str:
    """Create a patient account; returns the backend's message."""
    data = await _request("POST", "/api/auth/register", "Registration", json=form.payload())
    return data.get("message", "") if isinstance(data, dict) else ""


async def current_user(token: str) -> User:
    return User.model_validate(await _request("GET", "/api/users/me", "Fetching user", token=token, auth=True))


# Doctors & specialties ----------------------------------------------------------

async def list_doctors(page: int = 0, size: int = 10, name: str | None = None, specialty: int | None = None,
                       min_fee: float | None = None, max_fee: float | None = None,
                       include_inactive: bool = False, token: str | None = None) -> DoctorPage:
    params = {"page": page, "size": size, "name": name, "specialty": specialty,
              "minFee": min_fee, "maxFee": max_fee}
    if include_inactive:
        params["includeInactive"] = "true"
    params = {k: v for k, v in params.items() if v is not None}
    data = await _request("GET", "/api/doctors", "Loading doctors", token=token, params=params)
    return DoctorPage.model_validate(data if isinstance(data, dict) else {})


async def get_doctor(doctor_id: int) -> BackendDoctor:
    return BackendDoctor.model_validate(await _request("GET", f"/api/doctors/{doctor_id}", "Loading doctor"))


async def search_doctors(name: str) -> list[BackendDoctor]:
    data = await _request("GET", "/api/doctors/search", "Searching doctors", params={"name": name})
    return [BackendDoctor.model_validate(d) for d in _items(data, "doctors")]


async def doctors_by_specialty(specialty_id: int, page: int = 0, size: int = 10) -> list[BackendDoctor]:
    data = await _request("GET", f"/api/doctors/specialty/{specialty_id}", "Loading doctors by specialty",
                          params={"page": page, "size": size})
    return [BackendDoctor.model_validate(d) for d in _items(data, "doctors")]


async def smart_select(specialty: str, on_date: date) -> SmartSelection:
    """Ask the backend to pick a doctor of ``specialty`` free on ``on_date``."""
    data = await _request("GET", "/api/doctors/smart-select", "Selecting doctor",
                          params={"specialty": specialty, "date": on_date.isoformat()})
    return SmartSelection.model_validate(data if isinstance(data, dict) else {})


async def doctor_availability(doctor_id: int) -> list[DayAvailability]:
    data = await _request("GET", f"/api/availabilities/doctor/{doctor_id}", "Loading availability")
    return [DayAvailability.model_validate(d) for d in _items(data, "schedule")]


async def doctor_stats() -> DoctorStats:
    data = await _request("GET", "/api/doctors/stats", "Loading doctor statistics")
    return DoctorStats.model_validate(data if isinstance(data, dict) else {})


async def my_doctor_profile(token: str) -> BackendDoctor:
    data = await _request("GET", "/api/doctors/profile/my", "Loading doctor profile", token=token, auth=True)
    return BackendDoctor.model_validate(data)


async def list_specialties(with_count: bool = False) -> list[Specialty]:
    path = "/api/specialties/with-count" if with_count else "/api/specialties"
    data = await _request("GET", path, "Loading specialties")
    return [Specialty.model_validate(s) for s in _items(data, "specialties")]


# Appointments ------------------------------------------------------------------

async def create_appointment(req: CreateAppointmentRequest, token: str) -> BookingResult:
    """Not retried: a second POST would book twice."""
    data = await _request("POST", "/api/appointments", "Creating appointment", token=token, auth=True,
                          json=req.model_dump(mode="json", by_alias=True, exclude_none=True))
    if not isinstance(data, dict):
        raise BackendError("Creating appointment: backend returned no appointment", 502)
    if "appointment" not in data:
        data = {"appointment": data}
    result = BookingResult.model_validate(data)
    logger.info("appointment.created", appointment_id=result.appointment.id)
    return result


async def my_appointments(token: str) -> list[Appointment]:
    data = await _request("GET", "/api/appointments/my", "Loading appointments", token=token, auth=True)
    return [Appointment.model_validate(a) for a in _items(data, "appointments")]


async def cancel_appointment(appointment_id: int, token: str) -> None:
    await _request("PUT", f"/api/appointments/{appointment_id}/cancel", "Cancelling appointment",
                   token=token, auth=True)


async def doctor_appointments(token: str) -> list[Appointment]:
    data = await _request("GET", "/api/appointments/doctor/my", "Loading doctor appointments",
                          token=token, auth=True)
    return [Appointment.model_validate(a) for a in _items(data, "appointments")]


# Admin ---------------------------------------------------------------------------

async def create_specialty(spec: SpecialtyIn, token: str) -> Specialty:
    data = await _request("POST", "/api/admin/specialties", "Creating specialty", token=token, auth=True,
                          json=spec.model_dump())
    return Specialty.model_validate(_unwrap(data, "specialty", "Saving specialty"))


async def update_specialty(specialty_id: int, spec: SpecialtyIn, token: str) -> Specialty:
    data = await _request("PUT", f"/api/admin/specialties/{specialty_id}", "Updating specialty",
                          token=token, auth=True, json=spec.model_dump())
    return Specialty.model_validate(_unwrap(data, "specialty", "Saving specialty"))


async def delete_specialty(specialty_id: int, token: str) -> None:
    await _request("DELETE", f"/api/admin/specialties/{specialty_id}", "Deleting specialty", token=token, auth=True)


async def create_doctor(doctor: DoctorCreate, token: str) -> BackendDoctor:
    data = await _request("POST", "/api/admin/doctors", "Creating doctor", token=token, auth=True,
                          json=doctor.model_dump(by_alias=True))
    return BackendDoctor.model_validate(_unwrap(data, "doctor", "Creating doctor"))


async def set_doctor_status(doctor_id: int, active: bool, token: str) -> None:
    await _request("PUT", f"/api/admin/doctors/{doctor_id}/status", "Updating doctor status",
                   token=token, auth=True, json={"active": active})
