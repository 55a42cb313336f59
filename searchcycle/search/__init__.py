"""
Search package - Engine catalog and per-navigation query resolution.

Matches a visited URL to a known engine, reads the query the user typed,
and works out which engine comes next in their rotation.
"""

from .registry import (
    ALL_ENGINES,
    EngineNotFound,
    SearchEngine,
    get_by_id,
    is_supported,
    match_by_url,
)
from .resolver import QueryResolver, extract_query
from .rotation import CurrentState, next_engine

__all__ = [
    "ALL_ENGINES",
    "EngineNotFound",
    "SearchEngine",
    "get_by_id",
    "is_supported",
    "match_by_url",
    "QueryResolver",
    "extract_query",
    "CurrentState",
    "next_engine",
]
