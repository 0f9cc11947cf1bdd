"""Local history of past analyses, persisted in a key-value store.

The store boundary is deliberately small (``get``/``set`` of strings under a
key) so the same ``HistoryStore`` works on a JSON file, in memory, or on any
other backend a front end provides.

Persistence model
-----------------
* The whole history is one JSON array under ``Config.history_key``.
* Every mutation rewrites that array in a single ``set`` call.
* Missing or corrupt data degrades to an empty history; it never raises.
"""

import json
import logging
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from sciscan.models import AnalysisRecord, HistoryEntry

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[HistoryEntry])


# ---------------------------------------------------------------------------
# Key-value stores
# ---------------------------------------------------------------------------


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Dict-backed store; contents are lost with the process."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStore:
    """String values kept in one JSON object on disk.

    Writes go to a temporary file in the same directory which then replaces
    the original, so a crash mid-write leaves the previous contents intact.
    An unreadable file behaves like an empty store.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Storage file %s is unreadable: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Storage file %s does not hold an object", self.path)
            return {}
        return data

    def get(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


# ---------------------------------------------------------------------------
# History store
# ---------------------------------------------------------------------------


class HistoryStore:
    """Owns the persisted list of ``HistoryEntry`` objects, newest first.

    Create one per application run and call ``load()`` once at start-up;
    ``entries`` is then kept in sync after every mutation.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "sciscan_history",
        date_format: str = "%d/%m/%Y",
        max_entries: int | None = None,
    ) -> None:
        self._store = store
        self.key = key
        self.date_format = date_format
        self.max_entries = max_entries
        self._entries: list[HistoryEntry] = []
        self._last_id = 0

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def load(self) -> list[HistoryEntry]:
        """Read the persisted history; missing or corrupt data yields ``[]``."""
        raw = self._store.get(self.key)
        if raw is None:
            self._entries = []
            return []
        try:
            entries = _ENTRIES.validate_json(raw)
        except ValidationError as e:
            logger.error("Failed to load history under %r: %s", self.key, e)
            entries = []
        self._entries = entries
        return list(entries)

    def get(self, entry_id: str) -> HistoryEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def append(self, record: AnalysisRecord) -> HistoryEntry:
        """Stamp *record* with a new id and today's date and persist it first."""
        entry = HistoryEntry(
            id=self._next_id(),
            date=datetime.now().strftime(self.date_format),
            record=record,
        )
        entries = [entry, *self._entries]
        if self.max_entries is not None:
            entries = entries[: self.max_entries]
        self._save(entries)
        logger.info("Saved analysis %s to history (%d entries)", entry.id, len(entries))
        return entry

    def remove(self, entry_id: str) -> None:
        """Delete the entry with *entry_id*; unknown ids are a no-op."""
        entries = [e for e in self._entries if e.id != entry_id]
        if len(entries) == len(self._entries):
            logger.debug("History entry %s not found; nothing removed", entry_id)
        self._save(entries)

    def _save(self, entries: list[HistoryEntry]) -> None:
        payload = json.dumps(
            [e.to_json_dict() for e in entries], ensure_ascii=False
        )
        self._store.set(self.key, payload)
        self._entries = entries

    def _next_id(self) -> str:
        # Millisecond timestamps, bumped when two saves share a millisecond.
        candidate = time.time_ns() // 1_000_000
        known = {e.id for e in self._entries}
        candidate = max(candidate, self._last_id + 1)
        while str(candidate) in known:
            candidate += 1
        self._last_id = candidate
        return str(candidate)
