from datetime import date

import pytest
from pydantic import ValidationError

from doctora.models import (
    BackendDoctor,
    BookingDraft,
    BookingStatus,
    HistoryEntry,
    PatientRecord,
    RegisterForm,
    slot_start,
)


def _patient(**overrides):
    data = dict(first_name="สมชาย", last_name="ใจดี", date_of_birth=date(1990, 4, 1),
                national_id="1234567890123", phone="0812345678", consent_given=True)
    data.update(overrides)
    return PatientRecord(**data)


def test_thirteen_digit_citizen_id_is_accepted():
    assert _patient(national_id="1234567890123").national_id == "1234567890123"


@pytest.mark.parametrize("bad", ["12345", "12345678901234", "123456789012a"])
def test_short_or_malformed_citizen_id_is_rejected(bad):
    with pytest.raises(ValidationError):
        _patient(national_id=bad)


def test_phone_length():
    assert _patient(phone="021234567").phone == "021234567"
    with pytest.raises(ValidationError):
        _patient(phone="12345678")


def test_consent_is_required():
    with pytest.raises(ValidationError, match="consent"):
        _patient(consent_given=False)


def test_form_aliases_are_accepted():
    record = PatientRecord.model_validate({
        "prefix": "นาง", "firstName": "มาลี", "lastName": "ดีงาม", "gender": "female",
        "dob": "1985-01-31", "citizenId": "1100000000001", "phone": "0899999999",
        "email": "", "consent": True,
    })
    assert record.full_name == "นาง มาลี ดีงาม"
    assert record.email is None


def test_bad_email_and_gender():
    with pytest.raises(ValidationError):
        _patient(email="not-an-email")
    with pytest.raises(ValidationError):
        _patient(gender="unknown")


def test_register_form_passwords():
    assert RegisterForm(email="a@b.co", password="secret1", confirm_password="secret1").payload()["role"] == "PATIENT"
    with pytest.raises(ValidationError, match="Passwords do not match"):
        RegisterForm(email="a@b.co", password="secret1", confirm_password="secret2")
    with pytest.raises(ValidationError, match="at least 6"):
        RegisterForm(email="a@b.co", password="abc", confirm_password="abc")


def test_history_entry_color_follows_status():
    entry = HistoryEntry(queue_number="001", patient_name="x", owner_email="a@b.co", status=BookingStatus.CANCELLED)
    assert entry.status_color == "red"


def test_backend_doctor_maps_to_doctor():
    doc = BackendDoctor.model_validate({
        "id": 3, "doctorName": "นพ.อิง", "specialty": {"id": 4, "name": "นรีเวชกรรม"}, "bio": "สูตินรีแพทย์",
    })
    view = doc.as_doctor()
    assert (view.name, view.department, view.specialties) == ("นพ.อิง", "นรีเวชกรรม", "สูตินรีแพทย์")


def test_slot_start():
    assert slot_start("9:00-10:00").hour == 9
    assert slot_start("13:30-14:00").minute == 30


@pytest.mark.parametrize("label", ["9:00-10:00", "13:30-14:00", ""])
def test_draft_time_slot_labels(label):
    assert BookingDraft(selected_time=label).selected_time == label


def test_draft_rejects_free_text_time():
    with pytest.raises(ValidationError, match="time slot"):
        BookingDraft(selected_time="morning")
