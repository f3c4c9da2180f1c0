from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol

from .models import (
    DEFAULT_END_HOUR,
    DEFAULT_RESTAURANT_CODE,
    DEFAULT_START_HOUR,
    MenuSettings,
)

logger = logging.getLogger(__name__)

# Keys of the reloadable store.
KEY_RESTAURANT = "restaurant"
KEY_START_HOUR = "menuStartHour"
KEY_END_HOUR = "menuEndHour"
KEY_SHOW_TOMORROW = "menuShowTomorrow"

CONFIG_DEFAULTS: Dict[str, str] = {
    KEY_RESTAURANT: str(DEFAULT_RESTAURANT_CODE),
    KEY_START_HOUR: str(DEFAULT_START_HOUR),
    KEY_END_HOUR: str(DEFAULT_END_HOUR),
    KEY_SHOW_TOMORROW: "0",
}


def _env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass
class ServiceConfig:
    """Process-level settings, read from the environment once at start-up."""

    api_host: str = field(default_factory=lambda: os.getenv("MENU_API_HOST", "api.mynovae.ch"))
    api_lang: str = field(default_factory=lambda: os.getenv("MENU_API_LANG", "en"))
    api_key: str = field(default_factory=lambda: os.getenv("MENU_API_KEY", "CER103"))
    verify_tls: bool = field(default_factory=lambda: _env_bool("MENU_VERIFY_TLS", False))
    http_timeout: int = field(default_factory=lambda: _env_int("MENU_HTTP_TIMEOUT", 30))
    config_file: Path = field(default_factory=lambda: Path(os.getenv("MENU_CONFIG_FILE", "menu_config.json")))
    timezone: Optional[str] = field(default_factory=lambda: os.getenv("MENU_TIMEZONE") or None)
    fetch_interval_seconds: int = field(default_factory=lambda: _env_int("MENU_FETCH_INTERVAL_SECONDS", 900))
    max_words: int = field(default_factory=lambda: _env_int("MENU_MAX_WORDS", 4))
    server_host: str = field(default_factory=lambda: os.getenv("MENU_SERVER_HOST", "127.0.0.1"))
    server_port: int = field(default_factory=lambda: _env_int("MENU_SERVER_PORT", 8080))


class ConfigStore(Protocol):
    def read(self, key: str) -> Optional[str]:
        ...


class DictConfigStore:
    """In-memory key/value store."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self.values: Dict[str, Any] = dict(values or {})

    def read(self, key: str) -> Optional[str]:
        value = self.values.get(key)
        return None if value is None else str(value)

    def write(self, key: str, value: Any) -> None:
        self.values[key] = value


class JsonConfigStore:
    """JSON object on disk, re-read on every lookup so edits apply on the next tick."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read config file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def read(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return None if value is None else str(value)

    def write(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self.path)


def _read_or_default(store: ConfigStore, key: str) -> str:
    value = store.read(key)
    if value is None or not value.strip():
        return CONFIG_DEFAULTS[key]
    return value


def load_menu_settings(store: ConfigStore) -> MenuSettings:
    """Read the reloadable keys and sanitize them into a MenuSettings."""
    raw = {key: _read_or_default(store, key) for key in CONFIG_DEFAULTS}
    settings = MenuSettings(
        restaurant_code=raw[KEY_RESTAURANT],
        menu_start_hour=raw[KEY_START_HOUR],
        menu_end_hour=raw[KEY_END_HOUR],
        menu_show_tomorrow=raw[KEY_SHOW_TOMORROW].strip().lower() in {"1", "true", "yes", "on"},
    )
    if str(settings.restaurant_code) != raw[KEY_RESTAURANT].strip():
        logger.debug("Unknown restaurant code %r; using %s", raw[KEY_RESTAURANT], settings.restaurant_code)
    if (str(settings.menu_start_hour), str(settings.menu_end_hour)) != (
        raw[KEY_START_HOUR].strip(),
        raw[KEY_END_HOUR].strip(),
    ):
        logger.debug(
            "Menu window %r-%r out of range; using %s-%s",
            raw[KEY_START_HOUR],
            raw[KEY_END_HOUR],
            settings.menu_start_hour,
            settings.menu_end_hour,
        )
    return settings
