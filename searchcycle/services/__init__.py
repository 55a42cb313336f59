# searchcycle Services Package
"""
Backend services for searchcycle.

Services handle persistence, change notification, and messaging with
page scripts.
"""

from .settings import Settings, SettingsStore, compute_defaults
from .storage import DurableStorage, MemoryArea, SqliteArea, StorageUnavailable

__all__ = [
    "Settings",
    "SettingsStore",
    "compute_defaults",
    "DurableStorage",
    "MemoryArea",
    "SqliteArea",
    "StorageUnavailable",
]
