"""
Helper utilities for searchcycle.

Provides common functions used across modules:
- Config loading (TOML, merged over defaults)
- Locale detection from the environment
- JSON deep copies
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import toml
from loguru import logger

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "searchcycle" / "config.toml"

_LOCALE_ENV_VARS = ("LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG")


def default_config() -> Dict[str, Any]:
    return {
        "storage": {
            "backend": "sqlite",
            "path": str(Path.home() / ".local" / "share" / "searchcycle" / "storage.db"),
            "sync_enabled": True,
        },
        "locale": {
            "languages": [],
        },
    }


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load searchcycle config from a TOML file.

    Args:
        path: Config file; defaults to ~/.config/searchcycle/config.toml

    Returns:
        Dictionary containing config with defaults applied

    Example config structure:
        [storage]
        backend = "sqlite"      # or "memory"
        path = "~/.local/share/searchcycle/storage.db"
        sync_enabled = true

        [locale]
        languages = ["ja-JP", "en-US"]
    """
    defaults = default_config()
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.debug(f"Config file not found at {config_path}, using defaults")
        return defaults

    try:
        loaded = toml.load(config_path)
    except (OSError, toml.TomlDecodeError):
        logger.exception(f"Could not load config from {config_path}, using defaults")
        return defaults

    return _deep_merge(defaults, loaded)


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary with defaults
        override: Dictionary with overrides

    Returns:
        Merged dictionary (override takes precedence)
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def normalize_locale(value: str) -> str:
    """
    Turn a POSIX locale name into a BCP 47 tag.

    "ja_JP.UTF-8" -> "ja-JP", "ru_RU@euro" -> "ru-RU", "C" -> ""
    """
    tag = value.split(".", 1)[0].split("@", 1)[0].strip()
    if tag in ("", "C", "POSIX"):
        return ""
    return tag.replace("_", "-")


def detect_locale_tags(env: Optional[Mapping[str, str]] = None) -> list[str]:
    """
    Read the user's preferred locales from the environment.

    LANGUAGE may hold a colon-separated preference list; LC_ALL,
    LC_MESSAGES and LANG hold a single locale, first non-empty one wins.
    LANGUAGE often lists bare languages ("ja:en"), so a bare entry picks
    up its region from the single locale when the languages agree:
    LANGUAGE=ja:en with LANG=ja_JP.UTF-8 gives ["ja-JP", "en"].

    Returns:
        Tags in preference order without duplicates, e.g. ["ja-JP", "en-US"]
    """
    env = os.environ if env is None else env

    primary = ""
    for var in _LOCALE_ENV_VARS[1:]:
        primary = normalize_locale(env.get(var, ""))
        if primary:
            break

    tags = []
    for part in env.get("LANGUAGE", "").split(":"):
        tag = normalize_locale(part)
        if tag and "-" not in tag and primary.split("-")[0] == tag:
            tag = primary
        if tag and tag not in tags:
            tags.append(tag)

    if not tags and primary:
        tags.append(primary)
    return tags


def deep_copy(value: Any) -> Any:
    """Copy a JSON-compatible value through a JSON round trip."""
    return json.loads(json.dumps(value))
