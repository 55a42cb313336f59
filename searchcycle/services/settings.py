"""
Settings Store - Persistent, self-healing user configuration.

Persisted record (JSON):
    {
        "apiLevel": 1,
        "enabledEngines": ["duckduckgo", ...],   # rotation order
        "floatButton": {"enabled": true},
        "extra": {"ecosiaEliminateNotifications": true}
    }

Loading never fails. A missing or malformed record is replaced by
locale-aware defaults, which are written back. A storage error degrades
to the same defaults without reaching the caller.

Saving replaces whole top-level keys. Passing {"floatButton": {...}}
replaces the entire floatButton block, so callers must send complete blocks.

Lifecycle:
    UNINITIALIZED --load()--> LOADED --save()--> UPDATED --save()--> UPDATED
    any state --reset()--> UNINITIALIZED
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from loguru import logger

from searchcycle.search.registry import engine_ids, get_by_id
from searchcycle.services.events import Subscription, SubscriptionRegistry
from searchcycle.services.storage import LOCAL, SYNC, DurableStorage, StorageUnavailable
from searchcycle.utils.helpers import deep_copy

API_LEVEL = 1
RECORD_KEYS = ("apiLevel", "enabledEngines", "floatButton", "extra")
WATCHED_AREAS = (SYNC, LOCAL)


@dataclass(frozen=True)
class FloatButton:
    enabled: bool = True


@dataclass(frozen=True)
class Extra:
    # Hide the notification banners Ecosia shows on top of results
    ecosia_eliminate_notifications: bool = True


@dataclass(frozen=True)
class Settings:
    """Validated user settings."""
    enabled_engines: tuple[str, ...]
    float_button: FloatButton = field(default_factory=FloatButton)
    extra: Extra = field(default_factory=Extra)
    api_level: int = API_LEVEL

    def to_record(self) -> dict:
        return {
            "apiLevel": self.api_level,
            "enabledEngines": list(self.enabled_engines),
            "floatButton": {"enabled": self.float_button.enabled},
            "extra": {
                "ecosiaEliminateNotifications": self.extra.ecosia_eliminate_notifications,
            },
        }


@dataclass(frozen=True)
class Malformed:
    """Marker for a persisted record that failed schema checks."""
    reason: str


class StoreState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    UPDATED = "updated"


def compute_defaults(locale_tags: Iterable[str]) -> Settings:
    """
    Build default settings from the user's preferred locales.

    Japanese and Taiwanese users get goo and Yahoo! JAPAN, Russian users
    get Яндекс; everyone else gets the international Yandex and Yahoo!.
    The order of the result is the rotation order.

    Args:
        locale_tags: BCP 47 tags in preference order, e.g. ["ja-JP", "en-US"]
    """
    tags = list(locale_tags)
    enabled = ["duckduckgo", "ecosia", "startpage"]

    if "ja-JP" in tags or "zh-TW" in tags:
        enabled += ["goo", "yahoo-jp"]
    elif any(tag.startswith("ru-") for tag in tags):
        enabled += ["yandex-ru"]

    if "yandex-ru" not in enabled:
        enabled.append("yandex-en")
    if "yahoo-jp" not in enabled:
        enabled.append("yahoo-us")

    enabled += ["bing", "google"]

    return Settings(enabled_engines=tuple(enabled))


def parse_settings(record: Any) -> Union[Settings, Malformed]:
    """
    Check a stored record and turn it into Settings.

    Missing `apiLevel` and `extra` blocks are filled from defaults;
    everything else listed below is required.

    Returns:
        Settings if the record is usable, Malformed(reason) otherwise
    """
    if not isinstance(record, Mapping) or not record:
        return Malformed("no settings stored")

    engines = record.get("enabledEngines")
    if engines is None:
        return Malformed("enabledEngines missing")
    if not isinstance(engines, list) or not all(isinstance(e, str) for e in engines):
        return Malformed("enabledEngines is not a list of engine ids")
    if not engines:
        return Malformed("enabledEngines is empty")
    unknown = [e for e in engines if e not in engine_ids()]
    if unknown:
        return Malformed(f"unknown engines: {', '.join(unknown)}")

    float_button = record.get("floatButton")
    if not isinstance(float_button, Mapping):
        return Malformed("floatButton missing")
    if float_button.get("enabled") is None:
        return Malformed("floatButton.enabled missing")

    extra = record.get("extra")
    if not isinstance(extra, Mapping):
        extra = {}

    return Settings(
        enabled_engines=tuple(engines),
        float_button=FloatButton(enabled=bool(float_button["enabled"])),
        extra=Extra(
            ecosia_eliminate_notifications=bool(
                extra.get("ecosiaEliminateNotifications", Extra.ecosia_eliminate_notifications)
            ),
        ),
        api_level=record.get("apiLevel", API_LEVEL),
    )


def check_partial(items: Mapping[str, Any]) -> None:
    """
    Check the top-level keys about to be saved.

    Each supplied key must be one that load() would accept, so a save can
    never leave behind a record that the next load throws away.

    Raises:
        ValueError: Unknown key or badly shaped value
        EngineNotFound: enabledEngines names an engine that doesn't exist
    """
    unknown = [key for key in items if key not in RECORD_KEYS]
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    if "enabledEngines" in items:
        engines = items["enabledEngines"]
        if not isinstance(engines, list) or not all(isinstance(e, str) for e in engines):
            raise ValueError("enabledEngines must be a list of engine ids")
        if not engines:
            raise ValueError("enabledEngines must not be empty")
        for engine_id in engines:
            get_by_id(engine_id)

    if "floatButton" in items:
        float_button = items["floatButton"]
        if not isinstance(float_button, Mapping) or float_button.get("enabled") is None:
            raise ValueError("floatButton must be a mapping with an 'enabled' flag")

    if "extra" in items and not isinstance(items["extra"], Mapping):
        raise ValueError("extra must be a mapping")


class SettingsStore:
    """
    Settings backed by a DurableStorage.

    Args:
        storage: Storage whose selected area holds the record
        locale_tags: User's locale preferences, used for defaults
    """

    def __init__(self, storage: DurableStorage, locale_tags: Iterable[str] = ()):
        self.storage = storage
        self.locale_tags = tuple(locale_tags)
        self.state = StoreState.UNINITIALIZED
        self.current: Optional[Settings] = None
        self._subscribers = SubscriptionRegistry("settings.changed")
        self._storage_listener: Optional[Subscription] = None

    def defaults(self) -> Settings:
        return compute_defaults(self.locale_tags)

    async def load(self) -> Settings:
        """Read settings, healing a missing or malformed record."""
        area = self.storage.area
        try:
            record = await area.get()
        except StorageUnavailable:
            logger.exception(f"Could not read settings from '{area.name}' area, using defaults")
            settings = self.defaults()
            await self._write(settings.to_record())
            return self._remember(settings, self._loaded_state())

        parsed = parse_settings(record)
        if isinstance(parsed, Malformed):
            if record:
                logger.warning(f"Stored settings are malformed ({parsed.reason}), resetting to defaults")
            else:
                logger.debug("No stored settings, writing defaults")
            settings = self.defaults()
            await self._write(settings.to_record())
            return self._remember(settings, self._loaded_state())

        return self._remember(parsed, self._loaded_state())

    async def save(self, partial: Union[Settings, Mapping[str, Any]]) -> None:
        """
        Write settings, replacing each given top-level key wholesale.

        Args:
            partial: Full Settings, or a mapping of record keys to new values

        Raises:
            ValueError: A key is not part of the settings record, or its
                value has the wrong shape
            EngineNotFound: enabledEngines names an engine that doesn't exist
        """
        if isinstance(partial, Settings):
            items = partial.to_record()
        else:
            items = deep_copy(dict(partial))

        check_partial(items)

        logger.debug(f"Saving settings keys: {', '.join(items)}")
        await self._write(items)

        base = self.current.to_record() if self.current else self.defaults().to_record()
        base.update(items)
        parsed = parse_settings(base)
        if isinstance(parsed, Settings):
            self._remember(parsed, StoreState.UPDATED)

    async def reset(self) -> None:
        """Forget cached settings and wipe the stored record."""
        try:
            await self.storage.area.clear()
        except StorageUnavailable:
            logger.exception("Could not clear stored settings")
        self.current = None
        self.state = StoreState.UNINITIALIZED

    def subscribe(self, callback: Callable[[dict], None]) -> Subscription:
        """
        Call `callback(changes)` whenever settings change in storage.

        `changes` maps each changed key to {"oldValue", "newValue"}. Only
        the "sync" and "local" areas are reported. Notifications are
        advisory: re-read with load() when exact values matter.

        Returns:
            Subscription; cancel() it to stop listening
        """
        if self._storage_listener is None:
            self._storage_listener = self.storage.add_listener(self._on_storage_changed)
        return self._subscribers.add(callback)

    def close(self) -> None:
        """Drop every subscriber and detach from storage."""
        self._subscribers.clear()
        if self._storage_listener is not None:
            self._storage_listener.cancel()
            self._storage_listener = None

    def _on_storage_changed(self, changes: dict, area_name: str) -> None:
        if area_name not in WATCHED_AREAS:
            return
        self._subscribers.emit(changes)

    async def _write(self, items: dict) -> None:
        try:
            await self.storage.area.set(items)
        except StorageUnavailable:
            logger.exception("Could not write settings, keeping them in memory only")

    def _remember(self, settings: Settings, state: StoreState) -> Settings:
        self.current = settings
        self.state = state
        return settings

    def _loaded_state(self) -> StoreState:
        # Re-reading after a save keeps the store in UPDATED
        if self.state is StoreState.UNINITIALIZED:
            return StoreState.LOADED
        return self.state
