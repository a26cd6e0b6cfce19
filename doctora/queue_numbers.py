"""Locally issued queue numbers.

A single counter per installation. The backend's queue number, when it sends
one, wins over this; see :mod:`doctora.confirmation`.
"""
from __future__ import annotations

from .logging_config import get_logger
from .storage import QUEUE_KEY, MemoryStore

logger = get_logger(__name__)

QUEUE_WIDTH = 3


def format_queue_number(n: int) -> str:
    """Zero-pad to three digits; larger numbers keep all their digits."""
    return str(n).zfill(QUEUE_WIDTH)


class QueueCounter:
    def __init__(self, store: MemoryStore):
        self.store = store

    def last_issued(self) -> int:
        raw = self.store.get_json(QUEUE_KEY, 0)
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning("queue.counter_reset", stored=raw)
            return 0

    def next_queue_number(self) -> str:
        with self.store.lock:
            n = self.last_issued() + 1
            self.store.set_json(QUEUE_KEY, n)
        logger.info("queue.issued", queue_number=n)
        return format_queue_number(n)
