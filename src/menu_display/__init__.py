"""Restaurant lunch menu fetcher and display-line controller."""

from .config import DictConfigStore, JsonConfigStore, ServiceConfig, load_menu_settings
from .display import MessageRegistry, RegularMessage
from .fetcher import MenuFetcher
from .keyphrase import trimmed_key_words
from .models import RESTAURANTS, FetchReport, MenuCache, MenuSettings, Restaurant, StatusSnapshot
from .normalizer import fold_bytes, normalize_french_text
from .task import RestaurantMenuTask, build_task

__all__ = [
    "DictConfigStore",
    "FetchReport",
    "JsonConfigStore",
    "MenuCache",
    "MenuFetcher",
    "MenuSettings",
    "MessageRegistry",
    "RESTAURANTS",
    "RegularMessage",
    "Restaurant",
    "RestaurantMenuTask",
    "ServiceConfig",
    "StatusSnapshot",
    "build_task",
    "fold_bytes",
    "load_menu_settings",
    "normalize_french_text",
    "trimmed_key_words",
]
