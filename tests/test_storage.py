from concurrent.futures import ThreadPoolExecutor

from doctora.queue_numbers import QueueCounter, format_queue_number
from doctora.storage import QUEUE_KEY, FileStore


def test_file_store_round_trip_and_corrupt_value(tmp_path):
    store = FileStore(tmp_path)
    store.set_json("bookingHistory_a@b.com", [{"x": 1}])
    assert FileStore(tmp_path).get_json("bookingHistory_a@b.com") == [{"x": 1}]
    store.set_raw("broken", "{not json")
    assert store.get_json("broken", []) == []
    assert store.get_json("missing", "default") == "default"
    assert not list(tmp_path.glob(".tmp-*"))


def test_queue_numbers_are_consecutive(durable):
    counter = QueueCounter(durable)
    issued = [counter.next_queue_number() for _ in range(5)]
    assert issued == ["001", "002", "003", "004", "005"]
    assert [int(q) for q in issued] == list(range(1, 6))


def test_queue_counter_survives_restart(durable):
    QueueCounter(durable).next_queue_number()
    assert QueueCounter(durable).next_queue_number() == "002"


def test_queue_width_grows_past_999(durable):
    durable.set_json(QUEUE_KEY, 999)
    assert QueueCounter(durable).next_queue_number() == "1000"
    assert format_queue_number(42) == "042"


def test_unreadable_counter_restarts(durable):
    durable.set_json(QUEUE_KEY, "abc")
    assert QueueCounter(durable).next_queue_number() == "001"


def test_counters_sharing_a_store_never_repeat(durable):
    def issue(_):
        return QueueCounter(durable).next_queue_number()

    with ThreadPoolExecutor(max_workers=8) as pool:
        issued = list(pool.map(issue, range(40)))
    assert sorted(issued) == [format_queue_number(n) for n in range(1, 41)]
