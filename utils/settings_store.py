"""In-memory cache for deck runtime settings."""

from __future__ import annotations

import os
import threading
from typing import Any

from utils.file_utils import load_json
from utils.log_utils import tprint

DEFAULT_SETTINGS_PATH = "config/deck_settings.json"

_lock = threading.RLock()
_settings_cache: dict[str, Any] = {}
_loaded = False


def settings_path() -> str:
    return os.getenv("DECK_SETTINGS_PATH") or DEFAULT_SETTINGS_PATH


def refresh_settings() -> dict[str, Any]:
    """Reload settings from disk and replace the cache."""
    global _loaded
    data = load_json(settings_path())
    if not isinstance(data, dict):
        data = {}
    with _lock:
        _settings_cache.clear()
        _settings_cache.update(data)
        _loaded = True
        return dict(_settings_cache)


def get_settings() -> dict[str, Any]:
    """Return a copy of the cached settings."""
    with _lock:
        if not _loaded:
            refresh_settings()
        return dict(_settings_cache)


def update_settings(values: dict[str, Any]) -> dict[str, Any]:
    """Overlay values onto the cache without touching disk."""
    with _lock:
        if not _loaded:
            refresh_settings()
        _settings_cache.update(values)
        return dict(_settings_cache)


def is_deep_logging() -> bool:
    """Return True when log_level (or DECK_LOG_LEVEL) requests deep tracing."""
    env_level = os.getenv("DECK_LOG_LEVEL")
    if env_level:
        return env_level.strip().upper() == "DEEP"
    level = str(get_settings().get("log_level", "")).upper()
    return level in {"DEEP"}


def deep_log(message: str) -> None:
    if is_deep_logging():
        tprint(message)
