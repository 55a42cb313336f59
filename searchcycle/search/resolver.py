"""
Query Resolver - Recover the search text from a results page.

The URL is the primary source: each engine names its query parameter
differently (`q`, `query`, `text`, `p`, `MT`, `search`), so the key always
comes from the engine record.

Some engines (StartPage) rewrite or hide the parameter after the page loads.
For those the page script is asked for the live value first, and the URL
result is used whenever the page cannot answer.
"""

import asyncio
import urllib.parse
from typing import Optional, Sequence

from loguru import logger

from searchcycle.search.registry import SearchEngine, match_by_url
from searchcycle.search.rotation import CurrentState, next_engine
from searchcycle.services.messaging import (
    ChannelUnavailable,
    GetQueryStringFromPage,
    MessageChannel,
)


def extract_query(engine: SearchEngine, url: str) -> str:
    """
    Read the query text for `engine` out of `url`.

    Returns:
        The decoded value of the engine's query parameter ("" if absent).
        Repeated keys resolve to their first value.
    """
    query_string = urllib.parse.urlsplit(str(url)).query
    params = urllib.parse.parse_qs(query_string, keep_blank_values=True)
    values = params.get(engine.query_key)
    return values[0] if values else ""


class QueryResolver:
    """Resolve the active query, asking the page script when needed."""

    def __init__(self, channel: Optional[MessageChannel] = None, timeout: float = 1.0):
        self.channel = channel
        self.timeout = timeout

    async def resolve(self, engine: SearchEngine, url: str) -> str:
        """
        Get the authoritative query for a page.

        For engines flagged query_need_content_script the page is asked
        first; any failure to get a non-empty answer falls back to the URL.
        """
        from_url = extract_query(engine, url)
        if not engine.query_need_content_script or self.channel is None:
            return from_url

        try:
            from_page = await asyncio.wait_for(
                self.channel.request(GetQueryStringFromPage()),
                timeout=self.timeout,
            )
        except ChannelUnavailable:
            logger.debug(f"Page script unavailable for {engine.id}, using URL query")
            return from_url
        except asyncio.TimeoutError:
            logger.warning(f"Page script for {engine.id} did not answer within {self.timeout}s")
            return from_url
        except Exception:
            logger.exception(f"Page script request failed for {engine.id}, using URL query")
            return from_url

        if isinstance(from_page, str) and from_page:
            return from_page
        return from_url

    async def current_state(self, url: str, enabled_engines: Sequence[str]) -> Optional[CurrentState]:
        """
        Derive the navigation state for `url`.

        Returns:
            CurrentState, or None if the URL is not a supported engine
        """
        engine = match_by_url(url)
        if engine is None:
            return None

        keyword = await self.resolve(engine, url)
        return CurrentState(
            keyword=keyword,
            current_engine=engine,
            next_engine=next_engine(engine, enabled_engines),
        )
