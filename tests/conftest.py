"""
Shared test fixtures for the searchcycle test suite.

Provides temporary SQLite storage, config files, and a recording channel
that use real file I/O (no mocking of the filesystem).
"""

import asyncio
import sqlite3

import pytest
import toml

from searchcycle.services.storage import LOCAL, SYNC, DurableStorage, MemoryArea, SqliteArea


@pytest.fixture
def tmp_db(tmp_path):
    """Create a real SQLite database with SqliteArea-compatible schema."""
    db_path = tmp_path / "storage.db"
    conn = sqlite3.connect(str(db_path))
    conn.execute("""
        CREATE TABLE IF NOT EXISTS storage (
            area TEXT NOT NULL,
            key TEXT NOT NULL,
            value TEXT NOT NULL,
            PRIMARY KEY (area, key)
        )
    """)
    conn.commit()
    conn.close()
    return db_path


@pytest.fixture
def memory_storage():
    """Storage with in-memory local and sync areas (sync selected)."""
    return DurableStorage(MemoryArea(LOCAL), MemoryArea(SYNC))


@pytest.fixture
def sqlite_storage(tmp_db):
    """Storage with both areas in one real SQLite file."""
    storage = DurableStorage(SqliteArea(LOCAL, tmp_db), SqliteArea(SYNC, tmp_db))
    yield storage
    storage.close()


@pytest.fixture
def tmp_config(tmp_path):
    """Create a real config TOML file using in-memory storage."""
    config_path = tmp_path / "config.toml"
    data = {
        "storage": {"backend": "memory", "sync_enabled": True},
        "locale": {"languages": ["en-US"]},
    }
    config_path.write_text(toml.dumps(data))
    return config_path


class RecordingChannel:
    """MessageChannel that records requests and answers from a dict."""

    def __init__(self, answers=None, delay=0.0):
        self.answers = answers or {}
        self.delay = delay
        self.requests = []

    async def request(self, message):
        self.requests.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.answers.get(message.type)


@pytest.fixture
def recording_channel():
    return RecordingChannel()
