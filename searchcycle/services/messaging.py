"""
Messaging - Contract between the background context and page scripts.

Two message shapes cross the boundary:
  getQueryStringFromPage   → background asks the page for its live query
  getEnabledEnginesFromBg  → background pushes the ordered engine list

The transport itself belongs to the host. Anything implementing
MessageChannel can carry these messages; LocalChannel dispatches to
in-process handlers and is what the app uses when no host channel is given.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Union

from loguru import logger

from searchcycle.search.registry import SearchEngine, get_by_id

GET_QUERY_STRING = "getQueryStringFromPage"
ENABLED_ENGINES_CHANGED = "getEnabledEnginesFromBg"


class ChannelUnavailable(Exception):
    """The other side of the channel cannot be reached."""


@dataclass(frozen=True)
class GetQueryStringFromPage:
    """Request the page's current query text. Response is a str."""
    type: str = field(default=GET_QUERY_STRING, init=False)


@dataclass(frozen=True)
class EnabledEnginesChanged:
    """Push the ordered list of enabled engines to the page."""
    engines: tuple[SearchEngine, ...]
    type: str = field(default=ENABLED_ENGINES_CHANGED, init=False)


Message = Union[GetQueryStringFromPage, EnabledEnginesChanged]


def encode_message(message: Message) -> dict:
    """Convert a message to its wire form: {"type": ..., "data": ...}."""
    if isinstance(message, GetQueryStringFromPage):
        return {"type": message.type, "data": ""}
    if isinstance(message, EnabledEnginesChanged):
        return {"type": message.type, "data": [e.id for e in message.engines]}
    raise TypeError(f"Not a message: {message!r}")


def decode_message(payload: dict) -> Message:
    """
    Parse a wire payload back into a message.

    Raises:
        ValueError: Unknown message type
        EngineNotFound: An engine id in the payload is not in the catalog
    """
    msg_type = payload.get("type") if isinstance(payload, dict) else None
    if msg_type == GET_QUERY_STRING:
        return GetQueryStringFromPage()
    if msg_type == ENABLED_ENGINES_CHANGED:
        return EnabledEnginesChanged(
            engines=tuple(get_by_id(eid) for eid in payload.get("data") or [])
        )
    raise ValueError(f"Unknown message type: {msg_type!r}")


class MessageChannel(Protocol):
    """Opaque request/response transport to another extension context."""

    async def request(self, message: Message) -> Any:
        ...


Handler = Callable[[Message], Union[Any, Awaitable[Any]]]


class LocalChannel:
    """In-process channel routing messages to handlers by message type."""

    def __init__(self):
        self._handlers: dict[str, Handler] = {}

    def register(self, msg_type: str, handler: Handler) -> None:
        """Register the handler answering `msg_type`, replacing any previous one."""
        self._handlers[msg_type] = handler

    def unregister(self, msg_type: str) -> None:
        self._handlers.pop(msg_type, None)

    async def request(self, message: Message) -> Any:
        handler = self._handlers.get(message.type)
        if handler is None:
            raise ChannelUnavailable(f"No receiver for {message.type}")

        logger.debug(f"Dispatching {message.type}")
        result = handler(message)
        if inspect.isawaitable(result):
            result = await result
        return result
