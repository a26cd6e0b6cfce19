from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from doctora.history import HistoryLedger
from doctora.models import Appointment, BookingStatus, HistoryEntry
from doctora.storage import history_key

from conftest import load_fixture

OWNER = "somchai@example.com"


def _entry(queue, created, **kw):
    return HistoryEntry(queue_number=queue, patient_name="นาย สมชาย ใจดี", owner_email=OWNER,
                        created_at=created, **kw)


def test_load_is_newest_first(durable):
    ledger = HistoryLedger(durable)
    ledger.append(_entry("001", datetime(2025, 9, 20, 9)))
    ledger.append(_entry("003", datetime(2025, 9, 22, 9)))
    ledger.append(_entry("002", datetime(2025, 9, 21, 9)))

    assert [e.queue_number for e in ledger.load(OWNER)] == ["003", "002", "001"]
    assert ledger.load("other@example.com") == []


def test_new_entries_start_pending_and_yellow(durable):
    entry = HistoryLedger(durable).append(_entry("001", datetime(2025, 9, 20)))
    assert entry.status is BookingStatus.PENDING
    assert entry.status_color == "yellow"


def test_update_status_touches_exactly_one_entry(durable):
    ledger = HistoryLedger(durable)
    a = ledger.append(_entry("001", datetime(2025, 9, 20)))
    b = ledger.append(_entry("002", datetime(2025, 9, 21)))

    updated = ledger.update_status(OWNER, a.id, BookingStatus.CANCELLED)
    assert updated.status_color == "red"

    by_id = {e.id: e for e in ledger.load(OWNER)}
    assert by_id[a.id].status is BookingStatus.CANCELLED
    assert by_id[a.id].status_color == "red"
    assert by_id[b.id].status is BookingStatus.PENDING
    assert by_id[b.id].status_color == "yellow"


def test_update_unknown_id_changes_nothing(durable):
    ledger = HistoryLedger(durable)
    ledger.append(_entry("001", datetime(2025, 9, 20)))
    before = durable.get_raw(history_key(OWNER))

    assert ledger.update_status(OWNER, "missing", BookingStatus.COMPLETED) is None
    assert durable.get_raw(history_key(OWNER)) == before


def test_corrupt_history_reads_as_empty(durable):
    durable.set_raw(history_key(OWNER), "{broken")
    assert HistoryLedger(durable).load(OWNER) == []
    durable.set_json(history_key(OWNER), {"not": "a list"})
    assert HistoryLedger(durable).load(OWNER) == []


def test_invalid_items_are_skipped(durable):
    good = _entry("001", datetime(2025, 9, 20)).model_dump(mode="json")
    durable.set_json(history_key(OWNER), [good, {"queue_number": "002"}])
    assert [e.queue_number for e in HistoryLedger(durable).load(OWNER)] == ["001"]


def test_refresh_copies_backend_statuses(durable):
    ledger = HistoryLedger(durable)
    synced = ledger.append(_entry("042", datetime(2025, 9, 20), appointment_id=321,
                                  status=BookingStatus.CONFIRMED))
    ledger.append(_entry("043", datetime(2025, 9, 21), appointment_id=400))
    local = ledger.append(_entry("044", datetime(2025, 9, 22)))
    appointments = [Appointment.model_validate(a) for a in load_fixture("my_appointments.json")["appointments"]]

    assert ledger.refresh_from_backend(OWNER, appointments) == 1

    by_id = {e.id: e for e in ledger.load(OWNER)}
    assert by_id[synced.id].status is BookingStatus.CANCELLED
    assert by_id[local.id].status is BookingStatus.PENDING
    # NO_SHOW has no local counterpart
    assert [e.status for e in by_id.values() if e.appointment_id == 400] == [BookingStatus.PENDING]


def test_concurrent_appends_through_separate_ledgers(durable):
    def add(n):
        HistoryLedger(durable).append(_entry(f"{n:03d}", datetime(2025, 9, 20)))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(add, range(30)))
    assert len(HistoryLedger(durable).load(OWNER)) == 30
