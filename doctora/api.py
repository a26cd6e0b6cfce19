from __future__ import annotations
from contextlib import asynccontextmanager
from datetime import date
from functools import lru_cache
from typing import Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, ValidationError

from . import client as backend
from . import config
from .availability import can_go_previous, schedule_from_backend, start_of_week, week_dates, weekly_schedule
from .catalog import DEPARTMENTS, LANDING_SLIDES, demo_doctors, find_doctor
from .confirmation import ConfirmationService
from .dashboard import build_dashboard
from .draft import BookingFlow, Step
from .errors import (
    AuthenticationError,
    BackendError,
    ConnectivityError,
    DoctoraError,
    FlowViolation,
    NoDoctorAvailable,
    ReceiptError,
)
from .filters import FilterCriteria, filter_doctors
from .history import HistoryLedger
from .logging_config import get_logger, setup_structured_logging
from .models import (
    SLOT_LABEL,
    BookingStatus,
    DoctorCreate,
    LoginForm,
    PatientRecord,
    RegisterForm,
    SelectionType,
    SpecialtyIn,
)
from .receipt import ReceiptExporter
from .storage import FileStore, MemoryStore
from .timers import AutoAdvance, Carousel

setup_structured_logging(config.LOG_LEVEL)
logger = get_logger(__name__)

# HTTPBearer so Swagger-UI can attach the Authorization header globally
auth_scheme = HTTPBearer(auto_error=False)

carousel = Carousel(LANDING_SLIDES, interval=config.CAROUSEL_INTERVAL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    carousel.start()
    logger.info("api.startup", offline=config.offline_mode())
    yield
    carousel.stop()
    for sid in list(_finish_timers):
        _end_session(sid)


app = FastAPI(title="doctora booking service", lifespan=lifespan)

_sessions: dict[str, MemoryStore] = {}
# finish-screen redirects waiting to fire, by session id
_finish_timers: dict[str, AutoAdvance] = {}


def _end_session(sid: str) -> None:
    """Drop a session's state; the tab starts over on the landing page."""
    timer = _finish_timers.pop(sid, None)
    if timer is not None:
        timer.cancel()
    _sessions.pop(sid, None)


def _finish_redirect(sid: str) -> None:
    _finish_timers.pop(sid, None)
    _sessions.pop(sid, None)
    logger.info("flow.finish_redirect", session=sid)


# Dependencies ----------------------------------------------------------------

def bearer_token(credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)) -> Optional[str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


def require_token(token: Optional[str] = Depends(bearer_token)) -> str:
    if not token:
        raise HTTPException(status_code=401, detail="กรุณาเข้าสู่ระบบก่อนทำการจอง")
    return token


def session_id(x_session_id: str = Header(..., description="Browser tab / session identifier")) -> str:
    return x_session_id


def session_store(sid: str = Depends(session_id)) -> MemoryStore:
    # any request from the tab means it navigated away from the finish screen
    timer = _finish_timers.pop(sid, None)
    if timer is not None:
        timer.cancel()
    return _sessions.setdefault(sid, MemoryStore())


@lru_cache
def durable_store() -> MemoryStore:
    return FileStore(config.STORAGE_DIR)


def receipt_exporter() -> ReceiptExporter:
    return ReceiptExporter(config.RECEIPT_DIR)


# Error mapping ---------------------------------------------------------------

@app.exception_handler(FlowViolation)
async def _flow_violation(request: Request, exc: FlowViolation):
    return JSONResponse(status_code=409, content={
        "message": str(exc), "missing": exc.missing, "redirect_to": exc.redirect_to,
    })


@app.exception_handler(ValidationError)
async def _invalid_fields(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={
        "message": "ข้อมูลไม่ถูกต้อง",
        "detail": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
    })


@app.exception_handler(NoDoctorAvailable)
async def _no_doctor(request: Request, exc: NoDoctorAvailable):
    return JSONResponse(status_code=409, content={"message": str(exc)})


@app.exception_handler(AuthenticationError)
async def _auth_failed(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"message": exc.message})


@app.exception_handler(ConnectivityError)
async def _unreachable(request: Request, exc: ConnectivityError):
    return JSONResponse(status_code=503, content={"message": exc.message, "retry": True})


@app.exception_handler(BackendError)
async def _backend_failed(request: Request, exc: BackendError):
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    return JSONResponse(status_code=status, content={"message": exc.message, "retry": True})


@app.exception_handler(ReceiptError)
async def _receipt_failed(request: Request, exc: ReceiptError):
    return JSONResponse(status_code=500, content={"message": str(exc), "retry": True})


@app.exception_handler(DoctoraError)
async def _doctora_error(request: Request, exc: DoctoraError):
    return JSONResponse(status_code=400, content={"message": str(exc)})


@app.exception_handler(Exception)
async def _unexpected(request: Request, exc: Exception):
    logger.exception("api.unhandled", path=request.url.path)
    return JSONResponse(status_code=500, content={
        "message": "เกิดข้อผิดพลาดในการจอง กรุณาลองใหม่อีกครั้ง", "retry": True,
    })


# Auth ------------------------------------------------------------------------

@app.post("/auth/login")
async def login(form: LoginForm):
    resp = await backend.login(form)
    return resp.model_dump(by_alias=True)


@app.post("/auth/register")
async def register(form: RegisterForm):
    return {"message": await backend.register(form)}


@app.get("/health")
async def health():
    """Report whether the backend answers."""
    if config.offline_mode():
        return {"backend": "offline"}
    try:
        await backend.list_specialties()
    except BackendError as exc:
        return {"backend": "disconnected", "message": exc.message}
    return {"backend": "connected"}


@app.get("/landing")
async def landing():
    return {"slide": carousel.current, "index": carousel.index, "interval": carousel.interval}


# Departments & doctors ---------------------------------------------------------

@app.get("/departments")
async def departments():
    if config.offline_mode():
        return [{"id": i + 1, "name": name} for i, name in enumerate(DEPARTMENTS)]
    return [s.model_dump(by_alias=True) for s in await backend.list_specialties(with_count=True)]


@app.get("/doctors")
async def doctors(
    search: str = Query(""),
    gender: str = Query(""),
    department: str = Query(""),
    time_slot: str = Query(""),
    on_date: Optional[date] = Query(None),
    available_only: bool = Query(False),
):
    """Doctor list narrowed by every filter given."""
    if config.offline_mode():
        pool = demo_doctors()
    else:
        page = await backend.list_doctors(size=100, name=search.strip() or None)
        pool = [d.as_doctor() for d in page.doctors]
    criteria = FilterCriteria(search=search, gender=gender, department=department, time_slot=time_slot,
                              on_date=on_date, available_only=available_only)
    return [d.model_dump(mode="json") for d in filter_doctors(pool, criteria)]


@app.get("/departments/{department_id}/doctors")
async def department_doctors(department_id: int):
    if config.offline_mode():
        if not 1 <= department_id <= len(DEPARTMENTS):
            raise HTTPException(status_code=404, detail="Department not found")
        name = DEPARTMENTS[department_id - 1]
        return [d.model_dump(mode="json") for d in demo_doctors() if d.department == name]
    return [d.as_doctor().model_dump(mode="json") for d in await backend.doctors_by_specialty(department_id, size=100)]


@app.get("/doctors/search")
async def search_doctors(name: str = Query(..., min_length=1)):
    if config.offline_mode():
        return [d.model_dump(mode="json") for d in filter_doctors(demo_doctors(), FilterCriteria(search=name))]
    return [d.as_doctor().model_dump(mode="json") for d in await backend.search_doctors(name)]


@app.get("/doctors/{doctor_id}")
async def doctor_detail(doctor_id: int):
    if config.offline_mode():
        doctor = find_doctor(doctor_id)
        if doctor is None:
            raise HTTPException(status_code=404, detail="Doctor not found")
        return doctor.model_dump(mode="json")
    return (await backend.get_doctor(doctor_id)).as_doctor().model_dump(mode="json")


@app.get("/doctors/{doctor_id}/schedule")
async def doctor_schedule(doctor_id: int, anchor: Optional[date] = Query(None, description="Any day of the week to show")):
    today = date.today()
    view_start = start_of_week(anchor or today)
    days = week_dates(view_start)
    schedule = []
    if not config.offline_mode():
        schedule = schedule_from_backend(await backend.doctor_availability(doctor_id), days)
    if not any(d.slots for d in schedule):
        schedule = weekly_schedule(doctor_id, days)
    return {
        "week_start": view_start.isoformat(),
        "can_go_previous": can_go_previous(view_start, today),
        "days": [d.model_dump(mode="json") for d in schedule],
    }


# Booking flow ------------------------------------------------------------------

class DepartmentChoice(BaseModel):
    department: str
    selection_type: Optional[SelectionType] = None


class DoctorChoice(BaseModel):
    doctor_id: int
    doctor_name: str
    department: Optional[str] = None
    selected_date: Optional[date] = None
    selected_time: Optional[str] = Field(None, pattern=SLOT_LABEL)


class TimeChoice(BaseModel):
    selected_date: Optional[date] = None
    selected_time: Optional[str] = Field(None, pattern=SLOT_LABEL)
    illness_description: Optional[str] = None
    attachments: list[str] = []


class ConfirmRequest(BaseModel):
    owner_email: Optional[str] = None


def _draft_json(flow: BookingFlow) -> dict:
    return flow.draft.model_dump(mode="json", by_alias=True)


@app.get("/flow/draft")
async def get_draft(store: MemoryStore = Depends(session_store)):
    return _draft_json(BookingFlow(store))


@app.post("/flow/department")
async def choose_department(choice: DepartmentChoice, store: MemoryStore = Depends(session_store)):
    flow = BookingFlow(store)
    flow.choose_department(choice.department, choice.selection_type)
    return {"draft": _draft_json(flow), "next": flow.next_after_department()}


@app.post("/flow/doctor")
async def choose_doctor(choice: DoctorChoice, store: MemoryStore = Depends(session_store)):
    flow = BookingFlow(store)
    flow.choose_doctor(choice.doctor_id, choice.doctor_name, choice.department,
                       choice.selected_date, choice.selected_time)
    return {"draft": _draft_json(flow), "next": Step.PATIENT_INFO_CHOSEN.value}


@app.post("/flow/booking")
async def choose_time(choice: TimeChoice, store: MemoryStore = Depends(session_store)):
    flow = BookingFlow(store)
    flow.choose_time(choice.selected_date, choice.selected_time, choice.illness_description, choice.attachments)
    return {"draft": _draft_json(flow), "next": Step.PATIENT_INFO_CHOSEN.value}


@app.post("/flow/patient")
async def submit_patient(record: PatientRecord, store: MemoryStore = Depends(session_store)):
    BookingFlow(store).submit_patient(record)
    return {"next": Step.CONFIRMED.value}


@app.get("/flow/back")
async def back(step: Step = Query(...), store: MemoryStore = Depends(session_store)):
    flow = BookingFlow(store)
    return {"step": flow.back(step).value, "draft": _draft_json(flow)}


@app.delete("/flow", status_code=204)
async def reset_flow(sid: str = Depends(session_id)):
    _end_session(sid)
    return None


@app.post("/flow/confirm")
async def confirm(
    req: Optional[ConfirmRequest] = Body(None),
    store: MemoryStore = Depends(session_store),
    durable: MemoryStore = Depends(durable_store),
    exporter: ReceiptExporter = Depends(receipt_exporter),
    token: Optional[str] = Depends(bearer_token),
    sid: str = Depends(session_id),
):
    owner = req.owner_email if req else None
    if not config.offline_mode():
        if not token:
            raise AuthenticationError("กรุณาเข้าสู่ระบบก่อนทำการจอง")
        if not owner:
            owner = (await backend.current_user(token)).email
    if not owner:
        raise HTTPException(status_code=422, detail="owner_email is required in offline mode")

    done = await ConfirmationService(store, durable, exporter).confirm(owner, token)

    timer = AutoAdvance(lambda: _finish_redirect(sid), delay=config.FINISH_REDIRECT_DELAY)
    _finish_timers[sid] = timer
    timer.start()
    return {
        "queue_number": done.queue_number,
        "receipt": done.receipt.path.name,
        "receipt_mode": done.receipt.mode,
        "history_id": done.history_entry.id if done.history_entry else None,
        "next": done.next_step.value,
        "redirect_after": config.FINISH_REDIRECT_DELAY,
    }


@app.get("/receipts/{filename}")
async def download_receipt(filename: str, exporter: ReceiptExporter = Depends(receipt_exporter)):
    path = exporter.directory / filename
    if "/" in filename or not path.is_file():
        raise HTTPException(status_code=404, detail="Receipt not found")
    return FileResponse(path, media_type="application/pdf", filename=filename)


# History ---------------------------------------------------------------------------

class StatusChange(BaseModel):
    owner_email: str
    status: BookingStatus


@app.get("/history")
async def history(owner_email: str = Query(...), durable: MemoryStore = Depends(durable_store)):
    return [e.model_dump(mode="json") for e in HistoryLedger(durable).load(owner_email)]


@app.patch("/history/{entry_id}")
async def change_status(entry_id: str, change: StatusChange, durable: MemoryStore = Depends(durable_store)):
    entry = HistoryLedger(durable).update_status(change.owner_email, entry_id, change.status)
    if entry is None:
        raise HTTPException(status_code=404, detail="No booking with that id")
    return entry.model_dump(mode="json")


@app.post("/history/refresh")
async def refresh_history(owner_email: str = Query(...), token: str = Depends(require_token),
                          durable: MemoryStore = Depends(durable_store)):
    changed = HistoryLedger(durable).refresh_from_backend(owner_email, await backend.my_appointments(token))
    return {"updated": changed}


@app.get("/appointments")
async def my_appointments(token: str = Depends(require_token)):
    return [a.model_dump(mode="json", by_alias=True) for a in await backend.my_appointments(token)]


@app.post("/appointments/{appointment_id}/cancel")
async def cancel_appointment(appointment_id: int, token: str = Depends(require_token)):
    await backend.cancel_appointment(appointment_id, token)
    return {"message": "cancelled", "appointment_id": appointment_id}


# Doctor dashboard ------------------------------------------------------------------

@app.get("/doctor/dashboard")
async def doctor_dashboard(token: str = Depends(require_token)):
    profile = await backend.my_doctor_profile(token)
    appointments = await backend.doctor_appointments(token)
    stats = await backend.doctor_stats()
    return build_dashboard(appointments, profile, stats).model_dump(mode="json", by_alias=True)


# Admin -------------------------------------------------------------------------------

@app.get("/admin/doctors")
async def admin_doctors(token: str = Depends(require_token)):
    page = await backend.list_doctors(size=100, include_inactive=True, token=token)
    return [d.model_dump(by_alias=True) for d in page.doctors]


@app.post("/admin/doctors", status_code=201)
async def admin_create_doctor(doctor: DoctorCreate, token: str = Depends(require_token)):
    return (await backend.create_doctor(doctor, token)).model_dump(by_alias=True)


@app.put("/admin/doctors/{doctor_id}/status")
async def admin_doctor_status(doctor_id: int, active: bool = Body(..., embed=True),
                              token: str = Depends(require_token)):
    await backend.set_doctor_status(doctor_id, active, token)
    return {"doctor_id": doctor_id, "active": active}


@app.post("/admin/specialties", status_code=201)
async def admin_create_specialty(spec: SpecialtyIn, token: str = Depends(require_token)):
    return (await backend.create_specialty(spec, token)).model_dump(by_alias=True)


@app.put("/admin/specialties/{specialty_id}")
async def admin_update_specialty(specialty_id: int, spec: SpecialtyIn, token: str = Depends(require_token)):
    return (await backend.update_specialty(specialty_id, spec, token)).model_dump(by_alias=True)


@app.delete("/admin/specialties/{specialty_id}", status_code=204)
async def admin_delete_specialty(specialty_id: int, token: str = Depends(require_token)):
    await backend.delete_specialty(specialty_id, token)
    return None
