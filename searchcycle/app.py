"""
searchcycle - Application context

Creates storage, settings and query resolution from config and hands them
back as one App object. Nothing here is a module-level singleton: the host
calls create_app() once and passes the App to whatever needs it.

Usage:
    app = await create_app()
    state = await app.on_navigation("https://duckduckgo.com/?q=owls")
    ...
    app.close()
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from loguru import logger

from searchcycle.search.registry import get_by_id
from searchcycle.search.resolver import QueryResolver
from searchcycle.search.rotation import CurrentState
from searchcycle.services.events import Subscription
from searchcycle.services.messaging import (
    ChannelUnavailable,
    EnabledEnginesChanged,
    LocalChannel,
    MessageChannel,
)
from searchcycle.services.settings import SettingsStore
from searchcycle.services.storage import (
    LOCAL,
    SYNC,
    DurableStorage,
    MemoryArea,
    SqliteArea,
    StorageArea,
)
from searchcycle.utils.helpers import detect_locale_tags, load_config


def build_storage(config: Dict[str, Any]) -> DurableStorage:
    """Create the storage areas described by the [storage] config section."""
    storage_config = config.get("storage", {})
    backend = storage_config.get("backend", "sqlite")
    sync_enabled = storage_config.get("sync_enabled", True)

    if backend == "memory":
        local: StorageArea = MemoryArea(LOCAL)
        sync: Optional[StorageArea] = MemoryArea(SYNC) if sync_enabled else None
    elif backend == "sqlite":
        db_path = Path(storage_config["path"]).expanduser()
        local = SqliteArea(LOCAL, db_path)
        sync = SqliteArea(SYNC, db_path) if sync_enabled else None
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    return DurableStorage(local, sync)


class App:
    """Handle to one running searchcycle context."""

    def __init__(self, storage: DurableStorage, settings: SettingsStore,
                 resolver: QueryResolver, channel: MessageChannel):
        self.storage = storage
        self.settings = settings
        self.resolver = resolver
        self.channel = channel
        self._subscriptions: list[Subscription] = []
        self._pending: set[asyncio.Task] = set()

    def start(self) -> None:
        """Start pushing rotation changes to page scripts."""
        self._subscriptions.append(self.settings.subscribe(self._on_settings_changed))

    async def on_navigation(self, url: str) -> Optional[CurrentState]:
        """
        Work out the keyword and next engine for a newly visited page.

        Returns:
            CurrentState, or None if the page isn't a supported engine
        """
        settings = await self.settings.load()
        return await self.resolver.current_state(url, settings.enabled_engines)

    def _on_settings_changed(self, changes: dict) -> None:
        change = changes.get("enabledEngines")
        if not change or "newValue" not in change:
            return

        engines = tuple(get_by_id(engine_id) for engine_id in change["newValue"])
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, skipping enabled engines push")
            return
        task = loop.create_task(self._push_engines(engines))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for queued page pushes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def _push_engines(self, engines: tuple) -> None:
        try:
            await self.channel.request(EnabledEnginesChanged(engines=engines))
        except ChannelUnavailable:
            logger.debug("No page script listening for engine changes")
        except Exception:
            logger.exception("Failed to push enabled engines to page")

    def close(self) -> None:
        """
        Cancel subscriptions and release storage.

        Queued page pushes are cancelled but not awaited; use aclose()
        from a coroutine to wait for them to wind down.
        """
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        for task in list(self._pending):
            task.cancel()
        self.settings.close()
        self.storage.close()

    async def aclose(self) -> None:
        """Close, then wait until every cancelled page push has finished."""
        pending = list(self._pending)
        self.close()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def create_app(config: Optional[Dict[str, Any]] = None,
                     channel: Optional[MessageChannel] = None,
                     locale_tags: Optional[Sequence[str]] = None) -> App:
    """
    Build and start an App.

    Args:
        config: Config dict (see utils.helpers.load_config); loaded from
            the default location if None
        channel: Transport to page scripts; a LocalChannel if None
        locale_tags: Locale preferences; from config or environment if None
    """
    if config is None:
        config = load_config()

    if locale_tags is None:
        locale_tags = config.get("locale", {}).get("languages") or detect_locale_tags()

    storage = build_storage(config)
    channel = channel if channel is not None else LocalChannel()

    app = App(
        storage=storage,
        settings=SettingsStore(storage, locale_tags),
        resolver=QueryResolver(channel),
        channel=channel,
    )
    await app.settings.load()
    app.start()

    logger.debug(f"searchcycle started with locales {list(locale_tags)}")
    return app
