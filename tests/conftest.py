import json
import pathlib
from datetime import date

import pytest

from doctora.models import PatientRecord
from doctora.storage import FileStore, MemoryStore

FIX = pathlib.Path(__file__).parent / "fixtures"


def load_fixture(name: str):
    return json.loads((FIX / name).read_text(encoding="utf-8"))


@pytest.fixture
def session():
    return MemoryStore()


@pytest.fixture
def durable(tmp_path):
    return FileStore(tmp_path / "store")


@pytest.fixture
def offline(monkeypatch):
    monkeypatch.setenv("OFFLINE_MODE", "1")


@pytest.fixture
def patient():
    return PatientRecord(
        prefix="นาย",
        first_name="สมชาย",
        last_name="ใจดี",
        gender="male",
        date_of_birth=date(1990, 4, 1),
        nationality="ไทย",
        national_id="1234567890123",
        phone="0812345678",
        email="somchai@example.com",
        consent_given=True,
    )
