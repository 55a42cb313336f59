"""
Durable Storage - Key-value areas that hold the user's settings.

Two named scopes exist, "sync" and "local". Which one backs the settings is
decided once, when DurableStorage is created: "sync" if the platform offers
a usable one, "local" otherwise. Firefox for Android, for instance, has no
sync area.

Every area reports its own writes as a change dict:
  {key: {"oldValue": ..., "newValue": ...}}
and DurableStorage fans those out to on_changed listeners together with
the area name.

Backends:
  MemoryArea  - process memory, lost on exit
  SqliteArea  - one row per top-level key, values stored as JSON
"""

import json
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from loguru import logger

from searchcycle.services.events import Subscription, SubscriptionRegistry

SYNC = "sync"
LOCAL = "local"

_MISSING = object()


class StorageUnavailable(Exception):
    """The durable area could not be read or written."""


class StorageArea(ABC):
    """A named key-value scope with change reporting."""

    def __init__(self, name: str):
        self.name = name
        self._reporter: Optional[Callable[[dict, str], None]] = None

    def attach(self, reporter: Callable[[dict, str], None]) -> None:
        """Route this area's change dicts to `reporter(changes, area_name)`."""
        self._reporter = reporter

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def get(self) -> dict:
        """Return every stored key."""
        ...

    @abstractmethod
    async def set(self, items: Mapping[str, Any]) -> None:
        """Replace the given top-level keys, leaving the others untouched."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""
        ...

    def close(self) -> None:
        pass

    def _report(self, before: Mapping[str, Any], after: Mapping[str, Any]) -> None:
        changes = {}
        for key in set(before) | set(after):
            old = before.get(key, _MISSING)
            new = after.get(key, _MISSING)
            if old == new:
                continue
            change = {}
            if old is not _MISSING:
                change["oldValue"] = old
            if new is not _MISSING:
                change["newValue"] = new
            changes[key] = change

        if changes and self._reporter is not None:
            self._reporter(changes, self.name)


class MemoryArea(StorageArea):
    """Area kept in process memory."""

    def __init__(self, name: str = LOCAL, available: bool = True):
        super().__init__(name)
        self._data: dict[str, str] = {}
        self._available = available

    @property
    def available(self) -> bool:
        return self._available

    def _snapshot(self) -> dict:
        return {key: json.loads(raw) for key, raw in self._data.items()}

    async def get(self) -> dict:
        return self._snapshot()

    async def set(self, items: Mapping[str, Any]) -> None:
        before = self._snapshot()
        try:
            encoded = {key: json.dumps(value) for key, value in items.items()}
        except (TypeError, ValueError) as e:
            raise StorageUnavailable(f"Value is not JSON-serializable: {e}") from e
        self._data.update(encoded)
        self._report(before, self._snapshot())

    async def clear(self) -> None:
        before = self._snapshot()
        self._data.clear()
        self._report(before, {})


class SqliteArea(StorageArea):
    """
    Area persisted in a SQLite database.

    Several areas may share one database file; rows are keyed by
    (area, key) so scopes never see each other's data.

    get/set/clear run their sqlite3 calls directly on the event loop.
    The record is a handful of small rows on a local file, so each call
    is expected to be short.
    """

    def __init__(self, name: str, db_path: Path):
        super().__init__(name)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_database()
        logger.debug(f"SqliteArea '{name}' opened at {self.db_path}")

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS storage (
                area TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (area, key)
            )
        """)
        self._conn.commit()

    def _read(self) -> dict:
        cursor = self._conn.execute(
            "SELECT key, value FROM storage WHERE area = ?", (self.name,)
        )
        return {key: json.loads(value) for key, value in cursor.fetchall()}

    async def get(self) -> dict:
        try:
            return self._read()
        except (sqlite3.Error, ValueError) as e:
            raise StorageUnavailable(f"Could not read area '{self.name}': {e}") from e

    async def set(self, items: Mapping[str, Any]) -> None:
        try:
            before = self._read()
            rows = [(self.name, key, json.dumps(value)) for key, value in items.items()]
            self._conn.executemany("""
                INSERT INTO storage (area, key, value)
                VALUES (?, ?, ?)
                ON CONFLICT(area, key) DO UPDATE SET value = excluded.value
            """, rows)
            self._conn.commit()
            after = self._read()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StorageUnavailable(f"Could not write area '{self.name}': {e}") from e

        self._report(before, after)

    async def clear(self) -> None:
        try:
            before = self._read()
            self._conn.execute("DELETE FROM storage WHERE area = ?", (self.name,))
            self._conn.commit()
        except (sqlite3.Error, ValueError) as e:
            raise StorageUnavailable(f"Could not clear area '{self.name}': {e}") from e

        self._report(before, {})

    def close(self) -> None:
        self._conn.close()


class DurableStorage:
    """
    The platform's storage, as seen by the settings store.

    Args:
        local: The always-present local area
        sync: Optional sync area; used when present and available
        others: Further areas (e.g. "session", "managed") whose changes
            are reported to listeners but never hold settings

    The area choice is made here and kept for the object's lifetime.
    """

    def __init__(self, local: StorageArea, sync: Optional[StorageArea] = None,
                 others: Sequence[StorageArea] = ()):
        self.on_changed = SubscriptionRegistry("storage.changed")
        self.areas = {area.name: area for area in others}
        self.areas[LOCAL] = local
        if sync is not None:
            self.areas[SYNC] = sync

        for area in self.areas.values():
            area.attach(self._dispatch)

        if sync is not None and sync.available:
            self.area = sync
        else:
            self.area = local
        logger.debug(f"Settings stored in '{self.area.name}' area")

    def _dispatch(self, changes: dict, area_name: str) -> None:
        self.on_changed.emit(changes, area_name)

    def add_listener(self, callback: Callable[[dict, str], None]) -> Subscription:
        """Listen to changes in any area: callback(changes, area_name)."""
        return self.on_changed.add(callback)

    def close(self) -> None:
        self.on_changed.clear()
        closed = set()
        for area in self.areas.values():
            if id(area) not in closed:
                closed.add(id(area))
                area.close()
