"""Booking draft persistence and the step-by-step booking flow.

The draft lives in the session store under ``bookingDraft``. Every step
reads the whole draft, merges the fields it owns and writes the result back
in one call, so fields from earlier steps (and keys this code does not know
about) survive forward and backward navigation.
"""
from __future__ import annotations
from datetime import date
from enum import Enum

from pydantic import ValidationError

from .errors import FlowViolation
from .logging_config import get_logger
from .models import BookingDraft, ConfirmedBooking, PatientRecord, SelectionType
from .storage import CONFIRMED_KEY, DRAFT_KEY, PATIENT_KEY, MemoryStore

logger = get_logger(__name__)


class Step(str, Enum):
    DEPARTMENT_CHOSEN = "department"
    TIME_AND_ILLNESS_CHOSEN = "booking"
    PATIENT_INFO_CHOSEN = "patient"
    CONFIRMED = "confirm"
    FINISHED = "finish"


FLOW_START = Step.DEPARTMENT_CHOSEN
_ORDER = list(Step)


class DraftStore:
    """Typed access to the draft and patient record in a session store."""

    def __init__(self, store: MemoryStore):
        self.store = store

    def load(self) -> BookingDraft:
        raw = self.store.get_json(DRAFT_KEY, {})
        if not isinstance(raw, dict):
            logger.warning("draft.not_an_object", found=type(raw).__name__)
            raw = {}
        try:
            return BookingDraft.model_validate(raw)
        except ValidationError as exc:
            # drop just the broken fields and default-fill them
            bad = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
            logger.warning("draft.invalid_fields", fields=sorted(bad))
            cleaned = {k: v for k, v in raw.items() if k not in bad}
            try:
                return BookingDraft.model_validate(cleaned)
            except ValidationError:
                return BookingDraft()

    def save(self, draft: BookingDraft) -> BookingDraft:
        self.store.set_json(DRAFT_KEY, draft.model_dump(mode="json", by_alias=True))
        return draft

    def merge(self, **fields) -> BookingDraft:
        """Read, overlay ``fields`` and write back as one document."""
        current = self.load().model_dump(by_alias=False)
        merged = BookingDraft.model_validate({**_by_alias(current), **_by_alias(fields)})
        return self.save(merged)

    def load_patient(self) -> PatientRecord | None:
        raw = self.store.get_json(PATIENT_KEY)
        if not raw:
            return None
        try:
            return PatientRecord.model_validate(raw)
        except ValidationError:
            logger.warning("patient.invalid_record")
            return None

    def save_patient(self, record: PatientRecord) -> None:
        self.store.set_json(PATIENT_KEY, record.model_dump(mode="json", by_alias=True))

    def load_confirmed(self) -> ConfirmedBooking | None:
        raw = self.store.get_json(CONFIRMED_KEY)
        if not raw:
            return None
        try:
            return ConfirmedBooking.model_validate(raw)
        except ValidationError:
            logger.warning("confirmation.invalid_record")
            return None

    def save_confirmed(self, record: ConfirmedBooking) -> None:
        self.store.set_json(CONFIRMED_KEY, record.model_dump(mode="json"))

    def clear(self) -> None:
        self.store.remove(DRAFT_KEY)
        self.store.remove(PATIENT_KEY)
        self.store.remove(CONFIRMED_KEY)


def _by_alias(fields: dict) -> dict:
    out = {}
    for name, value in fields.items():
        info = BookingDraft.model_fields.get(name)
        out[info.alias if info and info.alias else name] = value
    return out


def missing_for(step: Step, draft: BookingDraft, patient: PatientRecord | None) -> list[str]:
    """Fields that earlier steps should have written before ``step`` is shown."""
    missing = []
    if step in (Step.DEPARTMENT_CHOSEN,):
        return missing
    if not draft.department:
        missing.append("department")
    if step == Step.TIME_AND_ILLNESS_CHOSEN:
        return missing
    if not draft.selected_date:
        missing.append("selected_date")
    if not draft.selected_time:
        missing.append("selected_time")
    if draft.selection_type == SelectionType.MANUAL and not draft.selected_doctor_id:
        missing.append("selected_doctor")
    if step == Step.PATIENT_INFO_CHOSEN:
        return missing
    if patient is None:
        missing.append("patient")
    return missing


class BookingFlow:
    """The booking wizard for one session.

    Entering a step whose inputs are missing raises :class:`FlowViolation`
    pointing back to the start of the flow.
    """

    def __init__(self, store: MemoryStore):
        self.drafts = DraftStore(store)

    @property
    def draft(self) -> BookingDraft:
        return self.drafts.load()

    def require(self, step: Step) -> BookingDraft:
        draft = self.drafts.load()
        missing = missing_for(step, draft, self.drafts.load_patient() if step == Step.CONFIRMED else None)
        if missing:
            logger.info("flow.redirect", step=step.value, missing=missing)
            raise FlowViolation(step.value, missing, FLOW_START.value)
        return draft

    def choose_department(self, department: str, selection_type: SelectionType | None = None) -> BookingDraft:
        fields: dict = {"department": department}
        if selection_type is not None:
            fields["selection_type"] = selection_type
        draft = self.drafts.merge(**fields)
        logger.info("flow.department", department=department, selection=draft.selection_type)
        return draft

    def next_after_department(self) -> str:
        """Manual selection goes through the doctor list first."""
        draft = self.drafts.load()
        return "doctors" if draft.selection_type == SelectionType.MANUAL else Step.TIME_AND_ILLNESS_CHOSEN.value

    def choose_doctor(self, doctor_id: int, doctor_name: str, department: str | None = None,
                      selected_date: date | None = None, selected_time: str | None = None) -> BookingDraft:
        fields: dict = {"selected_doctor_id": doctor_id, "selected_doctor_name": doctor_name}
        if department:
            fields["department"] = department
        if selected_date:
            fields["selected_date"] = selected_date
        if selected_time:
            fields["selected_time"] = selected_time
        return self.drafts.merge(**fields)

    def choose_time(self, selected_date: date | None = None, selected_time: str | None = None,
                    illness_description: str | None = None, attachments: list[str] | None = None) -> BookingDraft:
        self.require(Step.TIME_AND_ILLNESS_CHOSEN)
        fields: dict = {}
        if selected_date is not None:
            fields["selected_date"] = selected_date
        if selected_time is not None:
            fields["selected_time"] = selected_time
        if illness_description is not None:
            fields["illness_description"] = illness_description
        draft = self.drafts.merge(**fields)
        if attachments:
            logger.info("flow.attachments", count=len(attachments))
        return draft

    def submit_patient(self, record: PatientRecord) -> PatientRecord:
        self.require(Step.PATIENT_INFO_CHOSEN)
        self.drafts.save_patient(record)
        logger.info("flow.patient_saved")
        return record

    def back(self, step: Step) -> Step:
        """Previous step; nothing is cleared."""
        idx = _ORDER.index(step)
        return _ORDER[max(idx - 1, 0)]

    def reset(self) -> None:
        self.drafts.clear()
