"""The confirmation step: turn a finished draft into a booking.

Order matters: the doctor is resolved, the appointment created, a queue
number assigned, history recorded and the receipt written. The draft and the
patient record are cleared only once the receipt exists; if no receipt can be
produced the flow stays on the confirmation step, and the next attempt
reuses what was already committed instead of booking again.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime

from . import client as backend
from . import config
from .availability import weekly_schedule
from .catalog import demo_doctors
from .draft import BookingFlow, Step
from .errors import FlowViolation, NoDoctorAvailable
from .history import HistoryLedger
from .logging_config import get_logger
from .models import (
    Appointment,
    BookingDraft,
    BookingStatus,
    ConfirmedBooking,
    CreateAppointmentRequest,
    HistoryEntry,
    PatientRecord,
    SelectionType,
    slot_start,
)
from .queue_numbers import QueueCounter
from .receipt import ReceiptExporter, ReceiptResult, build_content, selection_label
from .storage import MemoryStore

logger = get_logger(__name__)


@dataclass
class Confirmation:
    queue_number: str
    receipt: ReceiptResult
    history_entry: HistoryEntry | None
    appointment: Appointment | None = None
    next_step: Step = Step.FINISHED


class ConfirmationService:
    def __init__(self, session: MemoryStore, durable: MemoryStore, exporter: ReceiptExporter,
                 offline: bool | None = None):
        self.flow = BookingFlow(session)
        self.queue = QueueCounter(durable)
        self.history = HistoryLedger(durable)
        self.exporter = exporter
        self.offline = config.offline_mode() if offline is None else offline

    async def resolve_doctor(self, draft: BookingDraft) -> BookingDraft:
        """Make sure the draft names a doctor, picking one for automatic selection."""
        if draft.selected_doctor_id:
            return draft
        if draft.selection_type == SelectionType.MANUAL:
            raise FlowViolation(Step.CONFIRMED.value, ["selected_doctor"], Step.DEPARTMENT_CHOSEN.value)

        if self.offline:
            doctor_id, name = _pick_demo_doctor(draft)
        else:
            picked = await backend.smart_select(draft.department, draft.selected_date)
            if picked.doctor is None:
                raise NoDoctorAvailable("ขออภัย ไม่มีแพทย์ว่างในวันที่เลือก กรุณาเลือกวันอื่น")
            doctor_id, name = picked.doctor.id, picked.doctor.doctor_name
        logger.info("confirm.doctor_assigned", doctor_id=doctor_id, department=draft.department)
        return self.flow.drafts.merge(selected_doctor_id=doctor_id, selected_doctor_name=name)

    async def confirm(self, owner_email: str, token: str | None = None) -> Confirmation:
        """Book and write the receipt.

        A retry after a failed receipt finds the earlier commit in the session
        and only renders the receipt again.
        """
        self.flow.require(Step.CONFIRMED)
        committed = self.flow.drafts.load_confirmed()
        if committed is not None:
            logger.info("confirm.retry_receipt", queue_number=committed.queue_number)
            entry = self.history.get(committed.owner_email, committed.history_id)
            return await self._finish(committed.queue_number, entry, None)

        draft = await self.resolve_doctor(self.flow.draft)
        patient = self.flow.drafts.load_patient()

        appointment = None
        server_queue = None
        if not self.offline:
            result = await backend.create_appointment(_appointment_request(draft, patient), token)
            appointment = result.appointment
            if result.patient_info is not None:
                server_queue = result.patient_info.queue_number

        queue_number = server_queue or self.queue.next_queue_number()

        entry = self.history.append(HistoryEntry(
            queue_number=queue_number,
            patient_name=patient.full_name,
            doctor_name=draft.selected_doctor_name or (appointment.doctor.doctor_name if appointment else ""),
            department=draft.department,
            appointment_type=selection_label(draft.selection_type),
            illness_description=draft.illness_description,
            date=draft.selected_date.isoformat(),
            time=draft.selected_time,
            status=_status_of(appointment),
            owner_email=owner_email,
            appointment_id=appointment.id if appointment else None,
            created_at=appointment.created_at if appointment and appointment.created_at else datetime.now(),
        ))
        self.flow.drafts.save_confirmed(ConfirmedBooking(
            owner_email=owner_email,
            queue_number=queue_number,
            history_id=entry.id,
            appointment_id=entry.appointment_id,
        ))
        return await self._finish(queue_number, entry, appointment)

    async def _finish(self, queue_number: str, entry: HistoryEntry | None,
                      appointment: Appointment | None) -> Confirmation:
        receipt = await self.exporter.export(
            build_content(queue_number, self.flow.drafts.load_patient(), self.flow.draft))
        self.flow.reset()
        logger.info("confirm.finished", queue_number=queue_number, receipt_mode=receipt.mode)
        return Confirmation(queue_number, receipt, entry, appointment)


def _appointment_request(draft: BookingDraft, patient: PatientRecord) -> CreateAppointmentRequest:
    return CreateAppointmentRequest(
        doctor_id=draft.selected_doctor_id,
        appointment_date_time=datetime.combine(draft.selected_date, slot_start(draft.selected_time)),
        notes=draft.illness_description or None,
        patient_info=patient.model_dump(mode="json", by_alias=True),
    )


def _status_of(appointment: Appointment | None) -> BookingStatus:
    if appointment is None:
        return BookingStatus.PENDING
    try:
        return BookingStatus(appointment.status)
    except ValueError:
        return BookingStatus.PENDING


def _pick_demo_doctor(draft: BookingDraft) -> tuple[int, str]:
    for doctor in demo_doctors(draft.selected_date):
        if doctor.department != draft.department:
            continue
        day = weekly_schedule(doctor.id, [draft.selected_date])[0]
        if any(slot.available for slot in day.slots):
            return doctor.id, doctor.name
    raise NoDoctorAvailable("ขออภัย ไม่มีแพทย์ว่างในวันที่เลือก กรุณาเลือกวันอื่น")
