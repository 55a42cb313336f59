"""
Rotation - Which engine comes next when the user cycles a query.

The enabled-engine list doubles as the cycling order. CurrentState is
derived per navigation and never stored.
"""

from dataclasses import dataclass
from typing import Sequence

from searchcycle.search.registry import SearchEngine, get_by_id


@dataclass(frozen=True)
class CurrentState:
    """Snapshot of the page the user is looking at."""
    keyword: str
    current_engine: SearchEngine
    next_engine: SearchEngine


def next_engine(current: SearchEngine, enabled_ids: Sequence[str]) -> SearchEngine:
    """
    Get the engine following `current` in rotation order.

    Wraps around at the end of the list. If `current` is not enabled
    (user opened a disabled engine directly), rotation starts from the top.

    Raises:
        ValueError: If the rotation is empty
        EngineNotFound: If an id in the rotation is unknown
    """
    if not enabled_ids:
        raise ValueError("Rotation is empty")

    ids = list(enabled_ids)
    try:
        index = ids.index(current.id)
    except ValueError:
        return get_by_id(ids[0])

    return get_by_id(ids[(index + 1) % len(ids)])
