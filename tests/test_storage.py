"""
Tests for durable storage areas and sync/local selection.

Uses real SQLite databases.
"""

import asyncio
from unittest.mock import MagicMock

from searchcycle.services.storage import LOCAL, SYNC, DurableStorage, MemoryArea, SqliteArea


class TestSqliteArea:
    """Test the SQLite-backed area."""

    def test_set_and_get(self, tmp_db):
        area = SqliteArea(LOCAL, tmp_db)

        asyncio.run(area.set({"enabledEngines": ["google"], "floatButton": {"enabled": True}}))

        assert asyncio.run(area.get()) == {
            "enabledEngines": ["google"],
            "floatButton": {"enabled": True},
        }
        area.close()

    def test_set_replaces_top_level_keys_only(self, tmp_db):
        area = SqliteArea(LOCAL, tmp_db)

        async def scenario():
            await area.set({"floatButton": {"enabled": True}, "extra": {"a": 1}})
            await area.set({"extra": {"b": 2}})
            return await area.get()

        assert asyncio.run(scenario()) == {"floatButton": {"enabled": True}, "extra": {"b": 2}}
        area.close()

    def test_persists_across_connections(self, tmp_db):
        area = SqliteArea(LOCAL, tmp_db)
        asyncio.run(area.set({"enabledEngines": ["goo"]}))
        area.close()

        reopened = SqliteArea(LOCAL, tmp_db)
        assert asyncio.run(reopened.get()) == {"enabledEngines": ["goo"]}
        reopened.close()

    def test_areas_in_one_file_are_separate(self, tmp_db):
        local = SqliteArea(LOCAL, tmp_db)
        sync = SqliteArea(SYNC, tmp_db)

        asyncio.run(sync.set({"enabledEngines": ["bing"]}))

        assert asyncio.run(local.get()) == {}
        asyncio.run(local.clear())
        assert asyncio.run(sync.get()) == {"enabledEngines": ["bing"]}
        local.close()
        sync.close()

    def test_creates_parent_directory(self, tmp_path):
        area = SqliteArea(LOCAL, tmp_path / "nested" / "dir" / "storage.db")
        assert (tmp_path / "nested" / "dir" / "storage.db").exists()
        area.close()


class TestChangeReporting:
    """Test change dicts reported by areas."""

    def test_memory_area_reports_diff(self):
        area = MemoryArea(LOCAL)
        reporter = MagicMock()
        area.attach(reporter)

        asyncio.run(area.set({"extra": {"ecosiaEliminateNotifications": False}}))

        reporter.assert_called_once_with(
            {"extra": {"newValue": {"ecosiaEliminateNotifications": False}}}, LOCAL
        )

    def test_clear_reports_removed_keys(self, tmp_db):
        area = SqliteArea(SYNC, tmp_db)
        asyncio.run(area.set({"enabledEngines": ["goo"]}))
        reporter = MagicMock()
        area.attach(reporter)

        asyncio.run(area.clear())

        reporter.assert_called_once_with({"enabledEngines": {"oldValue": ["goo"]}}, SYNC)
        area.close()


class TestDurableStorage:
    """Test one-time area selection and listener fan-out."""

    def test_prefers_sync(self):
        storage = DurableStorage(MemoryArea(LOCAL), MemoryArea(SYNC))
        assert storage.area.name == SYNC

    def test_falls_back_to_local_without_sync(self):
        storage = DurableStorage(MemoryArea(LOCAL))
        assert storage.area.name == LOCAL

    def test_falls_back_to_local_when_sync_unavailable(self):
        storage = DurableStorage(MemoryArea(LOCAL), MemoryArea(SYNC, available=False))
        assert storage.area.name == LOCAL

    def test_choice_is_not_reprobed(self):
        sync = MemoryArea(SYNC)
        storage = DurableStorage(MemoryArea(LOCAL), sync)
        sync._available = False
        assert storage.area is sync

    def test_listeners_get_area_name(self):
        storage = DurableStorage(MemoryArea(LOCAL), MemoryArea(SYNC))
        listener = MagicMock()
        storage.add_listener(listener)

        asyncio.run(storage.areas[LOCAL].set({"k": 1}))

        listener.assert_called_once_with({"k": {"newValue": 1}}, LOCAL)

    def test_close_clears_listeners(self):
        storage = DurableStorage(MemoryArea(LOCAL))
        storage.add_listener(MagicMock())
        storage.close()
        assert len(storage.on_changed) == 0
