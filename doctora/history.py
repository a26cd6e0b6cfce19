"""Per-user booking history kept in the durable local store."""
from __future__ import annotations
from typing import Iterable

from pydantic import ValidationError

from .logging_config import get_logger
from .models import Appointment, BookingStatus, HistoryEntry
from .storage import MemoryStore, history_key

logger = get_logger(__name__)


class HistoryLedger:
    def __init__(self, store: MemoryStore):
        self.store = store

    def _read(self, owner_email: str) -> list[HistoryEntry]:
        raw = self.store.get_json(history_key(owner_email), [])
        if not isinstance(raw, list):
            logger.warning("history.corrupt", owner=owner_email)
            return []
        entries = []
        for item in raw:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError:
                logger.warning("history.skip_invalid_entry", owner=owner_email)
        return entries

    def _write(self, owner_email: str, entries: Iterable[HistoryEntry]) -> None:
        self.store.set_json(history_key(owner_email), [e.model_dump(mode="json") for e in entries])

    def load(self, owner_email: str) -> list[HistoryEntry]:
        """Newest first; empty when nothing (readable) is stored."""
        return sorted(self._read(owner_email), key=lambda e: e.created_at, reverse=True)

    def get(self, owner_email: str, entry_id: str) -> HistoryEntry | None:
        return next((e for e in self._read(owner_email) if e.id == entry_id), None)

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        with self.store.lock:
            entries = self._read(entry.owner_email)
            entries.append(entry)
            self._write(entry.owner_email, entries)
        logger.info("history.appended", owner=entry.owner_email, queue_number=entry.queue_number)
        return entry

    def update_status(self, owner_email: str, entry_id: str, status: BookingStatus) -> HistoryEntry | None:
        """Set one entry's status and color. Unknown ids leave the list untouched."""
        with self.store.lock:
            entries = self._read(owner_email)
            updated = None
            for i, entry in enumerate(entries):
                if entry.id == entry_id:
                    updated = entry.model_copy(update={"status": status, "status_color": status.color})
                    entries[i] = updated
                    break
            if updated is None:
                logger.warning("history.entry_not_found", owner=owner_email, entry_id=entry_id)
                return None
            self._write(owner_email, entries)
        return updated

    def refresh_from_backend(self, owner_email: str, appointments: Iterable[Appointment]) -> int:
        """Copy backend statuses onto entries that carry an appointment id.

        Returns the number of entries whose status changed.
        """
        known = {}
        for appt in appointments:
            try:
                known[appt.id] = BookingStatus(appt.status)
            except ValueError:
                continue
        changed = 0
        with self.store.lock:
            for entry in self._read(owner_email):
                status = known.get(entry.appointment_id) if entry.appointment_id is not None else None
                if status is not None and status != entry.status:
                    self.update_status(owner_email, entry.id, status)
                    changed += 1
        return changed
