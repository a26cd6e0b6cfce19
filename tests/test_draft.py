from datetime import date

import pytest

from doctora.draft import BookingFlow, DraftStore, Step
from doctora.errors import FlowViolation
from doctora.models import ConfirmedBooking, SelectionType
from doctora.storage import DRAFT_KEY


def test_scenario_department_then_booking(session):
    flow = BookingFlow(session)
    flow.choose_department("กระดูกและข้อ", SelectionType.AUTO)
    draft = flow.choose_time(date(2025, 9, 23), "9:00-10:00")

    assert draft.department == "กระดูกและข้อ"
    assert draft.selection_type is SelectionType.AUTO
    assert draft.selected_time == "9:00-10:00"
    assert draft.selected_date == date(2025, 9, 23)
    stored = session.get_json(DRAFT_KEY)
    assert stored["depart"] == "กระดูกและข้อ"
    assert stored["bookingType"] == "auto"
    assert stored["selectedDate"] == "2025-09-23"
    assert stored["selectedTime"] == "9:00-10:00"


def test_fields_survive_back_and_forth(session, patient):
    flow = BookingFlow(session)
    flow.choose_department("กุมารเวชกรรม", SelectionType.AUTO)
    flow.choose_time(date(2025, 9, 23), "10:00-11:00", "ไข้สูง")
    before = flow.draft

    assert flow.back(Step.PATIENT_INFO_CHOSEN) is Step.TIME_AND_ILLNESS_CHOSEN
    assert flow.back(Step.TIME_AND_ILLNESS_CHOSEN) is Step.DEPARTMENT_CHOSEN
    assert flow.back(Step.DEPARTMENT_CHOSEN) is Step.DEPARTMENT_CHOSEN
    assert flow.draft == before

    # re-entering the booking step and changing only the time keeps the rest
    after = flow.choose_time(selected_time="13:00-14:00")
    assert after.illness_description == "ไข้สูง"
    assert after.department == "กุมารเวชกรรม"
    assert after.selected_date == date(2025, 9, 23)
    assert after.flow_id == before.flow_id
    flow.submit_patient(patient)
    assert flow.draft.selected_time == "13:00-14:00"


def test_unknown_keys_are_preserved(session):
    session.set_json(DRAFT_KEY, {"depart": "ผิวหนัง", "promoCode": "SPRING"})
    draft = BookingFlow(session).choose_time(selected_time="9:00-10:00")
    assert draft.department == "ผิวหนัง"
    assert session.get_json(DRAFT_KEY)["promoCode"] == "SPRING"


def test_corrupt_fields_are_default_filled(session):
    session.set_json(DRAFT_KEY, {"depart": "ผิวหนัง", "selectedDate": "not-a-date", "bookingType": "weird"})
    draft = DraftStore(session).load()
    assert draft.department == "ผิวหนัง"
    assert draft.selected_date is None
    assert draft.selection_type is None


def test_non_object_draft_reads_as_empty(session):
    session.set_raw(DRAFT_KEY, "[1, 2, 3]")
    assert DraftStore(session).load().department == ""


def test_iso_datetime_is_reduced_to_a_day(session):
    session.set_json(DRAFT_KEY, {"selectedDate": "2025-09-23T00:00:00.000Z"})
    assert DraftStore(session).load().selected_date == date(2025, 9, 23)


def test_booking_step_requires_department(session):
    with pytest.raises(FlowViolation) as exc:
        BookingFlow(session).choose_time(date(2025, 9, 23), "9:00-10:00")
    assert exc.value.redirect_to == Step.DEPARTMENT_CHOSEN.value
    assert exc.value.missing == ["department"]


def test_patient_step_requires_date_and_time(session, patient):
    flow = BookingFlow(session)
    flow.choose_department("กระดูกและข้อ", SelectionType.AUTO)
    with pytest.raises(FlowViolation) as exc:
        flow.submit_patient(patient)
    assert exc.value.missing == ["selected_date", "selected_time"]


def test_manual_selection_needs_a_doctor(session, patient):
    flow = BookingFlow(session)
    flow.choose_department("กระดูกและข้อ", SelectionType.MANUAL)
    assert flow.next_after_department() == "doctors"
    flow.choose_time(date(2025, 9, 23), "9:00-10:00")
    with pytest.raises(FlowViolation):
        flow.submit_patient(patient)
    flow.choose_doctor(1, "นพ. กฤต อินทรจินดา")
    flow.submit_patient(patient)
    assert flow.require(Step.CONFIRMED).selected_doctor_id == 1


def test_reset_clears_draft_and_patient(session, patient):
    flow = BookingFlow(session)
    flow.choose_department("กระดูกและข้อ", SelectionType.AUTO)
    flow.choose_time(date(2025, 9, 23), "9:00-10:00")
    flow.submit_patient(patient)
    flow.reset()
    assert flow.draft.department == ""
    assert flow.drafts.load_patient() is None


def test_stored_free_text_time_is_dropped(session):
    session.set_json(DRAFT_KEY, {"depart": "ผิวหนัง", "selectedTime": "morning"})
    draft = DraftStore(session).load()
    assert draft.selected_time == ""
    assert draft.department == "ผิวหนัง"


def test_reset_forgets_a_committed_confirmation(session):
    drafts = DraftStore(session)
    drafts.save_confirmed(ConfirmedBooking(owner_email="a@b.co", queue_number="001", history_id="x"))
    assert drafts.load_confirmed().queue_number == "001"
    BookingFlow(session).reset()
    assert drafts.load_confirmed() is None
