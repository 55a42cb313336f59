"""
Tests for query extraction and page-script resolution.

Uses a recording channel stub in place of the page script.
"""

import asyncio

from searchcycle.search.registry import get_by_id
from searchcycle.search.resolver import QueryResolver, extract_query
from searchcycle.services.messaging import (
    GET_QUERY_STRING,
    ChannelUnavailable,
    GetQueryStringFromPage,
)

from conftest import RecordingChannel


class TestExtractQuery:
    """Test URL-based extraction with per-engine keys."""

    def test_startpage_uses_query_key(self):
        engine = get_by_id("startpage")
        assert extract_query(engine, "https://s7-us4.startpage.com/sp/search?query=cats") == "cats"

    def test_wikipedia_uses_search_key(self):
        engine = get_by_id("enwiki")
        url = "https://en.wikipedia.org/w/index.php?search=owls&title=Special:Search"
        assert extract_query(engine, url) == "owls"

    def test_goo_uses_uppercase_key(self):
        engine = get_by_id("goo")
        url = "https://search.goo.ne.jp/web.jsp?MT=%E7%8C%AB&IE=UTF-8&OE=UTF-8"
        assert extract_query(engine, url) == "猫"

    def test_plus_and_percent_decoding(self):
        engine = get_by_id("google")
        url = "https://www.google.com/search?q=red+pandas%20%26%20otters"
        assert extract_query(engine, url) == "red pandas & otters"

    def test_missing_key_returns_empty(self):
        engine = get_by_id("bing")
        assert extract_query(engine, "https://www.bing.com/images") == ""

    def test_other_engines_key_is_ignored(self):
        """A `q` parameter means nothing to StartPage."""
        engine = get_by_id("startpage")
        assert extract_query(engine, "https://www.startpage.com/sp/search?q=cats") == ""

    def test_first_value_wins(self):
        engine = get_by_id("duckduckgo")
        assert extract_query(engine, "https://duckduckgo.com/?q=one&q=two") == "one"


class TestResolve:
    """Test the page-script preferred path and URL fallback."""

    STARTPAGE_URL = "https://www.startpage.com/sp/search?query=cats"

    def test_prefers_page_answer(self):
        channel = RecordingChannel(answers={GET_QUERY_STRING: "cats and dogs"})
        resolver = QueryResolver(channel)

        result = asyncio.run(resolver.resolve(get_by_id("startpage"), self.STARTPAGE_URL))

        assert result == "cats and dogs"
        assert channel.requests == [GetQueryStringFromPage()]

    def test_falls_back_without_channel(self):
        resolver = QueryResolver()
        result = asyncio.run(resolver.resolve(get_by_id("startpage"), self.STARTPAGE_URL))
        assert result == "cats"

    def test_falls_back_when_channel_unavailable(self):
        class DeadChannel:
            async def request(self, message):
                raise ChannelUnavailable("tab closed")

        resolver = QueryResolver(DeadChannel())
        result = asyncio.run(resolver.resolve(get_by_id("startpage"), self.STARTPAGE_URL))
        assert result == "cats"

    def test_falls_back_on_empty_answer(self):
        channel = RecordingChannel(answers={GET_QUERY_STRING: ""})
        resolver = QueryResolver(channel)
        result = asyncio.run(resolver.resolve(get_by_id("startpage"), self.STARTPAGE_URL))
        assert result == "cats"

    def test_falls_back_on_timeout(self):
        channel = RecordingChannel(answers={GET_QUERY_STRING: "late"}, delay=1.0)
        resolver = QueryResolver(channel, timeout=0.01)
        result = asyncio.run(resolver.resolve(get_by_id("startpage"), self.STARTPAGE_URL))
        assert result == "cats"

    def test_falls_back_on_transport_error(self):
        class DisconnectedChannel:
            async def request(self, message):
                raise ConnectionError("port disconnected")

        resolver = QueryResolver(DisconnectedChannel())
        result = asyncio.run(resolver.resolve(get_by_id("startpage"), self.STARTPAGE_URL))
        assert result == "cats"

    def test_plain_engines_never_ask_the_page(self, recording_channel):
        resolver = QueryResolver(recording_channel)
        result = asyncio.run(resolver.resolve(get_by_id("duckduckgo"), "https://duckduckgo.com/?q=owls"))
        assert result == "owls"
        assert recording_channel.requests == []


class TestCurrentState:
    """Test per-navigation state derivation."""

    ROTATION = ["duckduckgo", "startpage", "google"]

    def test_unsupported_url(self):
        resolver = QueryResolver()
        assert asyncio.run(resolver.current_state("https://example.com", self.ROTATION)) is None

    def test_keyword_and_next_engine(self):
        resolver = QueryResolver()
        state = asyncio.run(resolver.current_state("https://duckduckgo.com/?q=owls", self.ROTATION))
        assert state.keyword == "owls"
        assert state.current_engine.id == "duckduckgo"
        assert state.next_engine.id == "startpage"

    def test_last_engine_wraps_around(self):
        resolver = QueryResolver()
        state = asyncio.run(resolver.current_state("https://www.google.com/search?q=x", self.ROTATION))
        assert state.next_engine.id == "duckduckgo"
