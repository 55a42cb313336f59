"""
Engine Registry - Static catalog of supported search engines.

Each engine carries a hostname fingerprint: the minimal substring that
identifies its domain across regional mirrors. StartPage, for example,
serves from hosts like s7-us4.startpage.com, so its fingerprint is
"startpage.com" rather than "www.startpage.com".

Fingerprints must stay disjoint. When two fingerprints could both occur in
one hostname, declaration order below decides the match.
"""

import urllib.parse
from dataclasses import dataclass
from typing import Optional


class EngineNotFound(LookupError):
    """Raised when an engine id is not part of the catalog."""

    def __init__(self, engine_id: str):
        super().__init__(f"Unknown engine: {engine_id!r}")
        self.engine_id = engine_id


@dataclass(frozen=True)
class SearchEngine:
    """A search engine the extension can cycle through."""
    id: str
    name: str
    hostname: str  # fingerprint, matched as a substring
    query_key: str  # `q` in ?q=
    query_url: str  # template with a single {} placeholder
    query_need_content_script: bool = False
    icon_url: str = ""

    def build_query_url(self, query: str) -> str:
        """Return the search URL for `query` on this engine."""
        return self.query_url.format(urllib.parse.quote_plus(query))


ALL_ENGINES: tuple[SearchEngine, ...] = (
    SearchEngine(
        id="duckduckgo",
        name="DuckDuckGo",
        hostname="duckduckgo.com",
        query_key="q",
        query_url="https://duckduckgo.com/?q={}",
        icon_url="img/engines/duckduckgo.svg",
    ),
    SearchEngine(
        id="ecosia",
        name="Ecosia",
        hostname="www.ecosia.org",
        query_key="q",
        query_url="https://www.ecosia.org/search?q={}",
        icon_url="img/engines/ecosia.svg",
    ),
    SearchEngine(
        id="startpage",
        name="StartPage",
        hostname="startpage.com",
        query_key="query",
        query_url="https://www.startpage.com/sp/search?query={}",
        query_need_content_script=True,
        icon_url="img/engines/startpage.svg",
    ),
    SearchEngine(
        id="bing",
        name="Bing",
        hostname="www.bing.com",
        query_key="q",
        query_url="https://www.bing.com/search?q={}",
        icon_url="img/engines/bing.svg",
    ),
    SearchEngine(
        id="google",
        name="Google",
        hostname="www.google.com",
        query_key="q",
        query_url="https://www.google.com/search?q={}",
        icon_url="img/engines/google.svg",
    ),
    SearchEngine(
        id="yandex-en",
        name="Yandex",
        hostname="yandex.com",
        query_key="text",
        query_url="https://yandex.com/search/?text={}",
        icon_url="img/engines/yandex-en.svg",
    ),
    SearchEngine(
        id="yandex-ru",
        name="Яндекс",
        hostname="yandex.ru",
        query_key="text",
        query_url="https://yandex.ru/search/?text={}",
        icon_url="img/engines/yandex-ru.svg",
    ),
    SearchEngine(
        id="yahoo-us",
        name="Yahoo!",
        hostname="search.yahoo.com",
        query_key="p",
        query_url="https://search.yahoo.com/search?p={}",
        icon_url="img/engines/yahoo-us.svg",
    ),
    SearchEngine(
        id="yahoo-jp",
        name="Yahoo! JAPAN",
        hostname="search.yahoo.co.jp",
        query_key="p",
        query_url="https://search.yahoo.co.jp/search?p={}",
        icon_url="img/engines/yahoo-jp.svg",
    ),
    SearchEngine(
        id="goo",
        name="goo",
        hostname="search.goo.ne.jp",
        query_key="MT",
        query_url="https://search.goo.ne.jp/web.jsp?MT={}&IE=UTF-8&OE=UTF-8",
        icon_url="img/engines/goo.svg",
    ),
    SearchEngine(
        id="enwiki",
        name="English Wikipedia (Not recommended)",
        hostname="en.wikipedia.org",
        query_key="search",
        query_url="https://en.wikipedia.org/w/index.php?search={}&title=Special:Search&fulltext=1&ns0=1",
        icon_url="img/engines/wikipedia.svg",
    ),
)

_ENGINES_BY_ID = {engine.id: engine for engine in ALL_ENGINES}


def all_engines() -> list[SearchEngine]:
    """Get all engines in declaration order"""
    return list(ALL_ENGINES)


def engine_ids() -> frozenset[str]:
    return frozenset(_ENGINES_BY_ID)


def get_by_id(engine_id: str) -> SearchEngine:
    """
    Look up an engine by id.

    Raises:
        EngineNotFound: If the id is not in the catalog. This means a stale
            or corrupted reference, so callers should not substitute.
    """
    try:
        return _ENGINES_BY_ID[engine_id]
    except KeyError:
        raise EngineNotFound(engine_id) from None


def _hostname_of(url: str) -> str:
    try:
        return urllib.parse.urlsplit(str(url)).hostname or ""
    except ValueError:
        return ""


def match_by_url(url: str) -> Optional[SearchEngine]:
    """
    Find the engine serving `url`.

    Args:
        url: Full page URL

    Returns:
        The first engine whose fingerprint occurs in the URL's hostname,
        or None if the URL belongs to no known engine.
    """
    hostname = _hostname_of(url)
    if not hostname:
        return None

    for engine in ALL_ENGINES:
        if engine.hostname in hostname:
            return engine
    return None


def is_supported(url: str) -> bool:
    return match_by_url(url) is not None
