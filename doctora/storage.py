"""Key-value stores for client-owned state.

``MemoryStore`` plays the role of per-tab session storage (drafts, patient
data); ``FileStore`` is the durable per-installation store (history, queue
counter). Values are JSON documents.
"""
from __future__ import annotations
import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any

from .logging_config import get_logger

logger = get_logger(__name__)

DRAFT_KEY = "bookingDraft"
PATIENT_KEY = "patientData"
QUEUE_KEY = "lastQueue"
CONFIRMED_KEY = "confirmedBooking"


def history_key(owner_email: str) -> str:
    return f"bookingHistory_{owner_email}"


class MemoryStore:
    """Session-scoped store; values are serialized so callers never share objects."""

    def __init__(self):
        self._data: dict[str, str] = {}
        # read-modify-write callers (history, queue counter) hold this too
        self.lock = threading.RLock()

    def get_raw(self, key: str) -> str | None:
        return self._data.get(key)

    def set_raw(self, key: str, raw: str) -> None:
        with self.lock:
            self._data[key] = raw

    def remove(self, key: str) -> None:
        with self.lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self.lock:
            self._data.clear()

    def get_json(self, key: str, default: Any = None) -> Any:
        return _decode(key, self.get_raw(key), default)

    def set_json(self, key: str, value: Any) -> None:
        self.set_raw(key, json.dumps(value, ensure_ascii=False))


class FileStore(MemoryStore):
    """Durable store, one file per key under ``root``; writes replace the file atomically."""

    def __init__(self, root: str | Path):
        super().__init__()
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / (re.sub(r"[^\w.@-]", "_", key) + ".json")

    def get_raw(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_raw(self, key: str, raw: str) -> None:
        path = self._path(key)
        with self.lock:
            fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(raw)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise

    def remove(self, key: str) -> None:
        with self.lock:
            self._path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        with self.lock:
            for path in self.root.glob("*.json"):
                path.unlink()


def _decode(key: str, raw: str | None, default: Any) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("store.corrupt_value", key=key)
        return default
