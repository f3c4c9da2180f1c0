from __future__ import annotations

import logging
import time
from datetime import datetime, tzinfo
from typing import Callable, Optional

from dateutil import tz

from .config import ConfigStore, JsonConfigStore, ServiceConfig, load_menu_settings
from .display import DISPLAY_PERIOD_SECONDS, MessageRegistry, RegularMessage
from .fetcher import MenuFetcher
from .models import FetchReport, MenuCache, MenuSettings, StatusSnapshot
from .window import active_menu_date, desired_menu, resolve_timezone

logger = logging.getLogger(__name__)

MENU_FETCH_INTERVAL_SECONDS = 900


class RestaurantMenuTask:
    """Keeps the active day's menu cached and turns it into a display line.

    Each :meth:`run` reloads configuration, works out which date's menu is
    active, refetches when the date changed or a new hour started, then sleeps.
    :meth:`get_menu_string` is cheap and safe to call at display rate.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        fetcher: MenuFetcher,
        *,
        interval: float = MENU_FETCH_INTERVAL_SECONDS,
        zone: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
        registry: Optional[MessageRegistry] = None,
    ):
        self.config_store = config_store
        self.fetcher = fetcher
        self.interval = interval
        self.zone = zone or tz.tzlocal()
        self.clock = clock or (lambda: datetime.now(self.zone))
        self.sleep = sleep

        self.settings = MenuSettings()
        self.cache = MenuCache()
        self.last_fetched_menu_date = ""
        self.last_fetch_hour = -1
        self.last_report: Optional[FetchReport] = None

        if registry is not None:
            registry.add_regular_message(
                RegularMessage(
                    owner=self,
                    producer=self.get_menu_string,
                    period=DISPLAY_PERIOD_SECONDS,
                    priority=1,
                    repeat=True,
                )
            )

    def reload_config(self) -> MenuSettings:
        self.settings = load_menu_settings(self.config_store)
        return self.settings

    def tick(self, now: Optional[datetime] = None) -> bool:
        """One controller step without the trailing sleep. Returns True when a fetch ran."""
        now = now or self.clock()
        settings = self.reload_config()
        menu_date = active_menu_date(now, settings)

        if menu_date == self.last_fetched_menu_date and now.hour == self.last_fetch_hour:
            return False
        # Marks advance before fetching; a failed fetch waits for the next hour.
        self.last_fetched_menu_date = menu_date
        self.last_fetch_hour = now.hour
        self.refresh(menu_date)
        return True

    def refresh(self, menu_date: str) -> FetchReport:
        cache, report = self.fetcher.fetch(menu_date, self.settings.restaurant, self.cache)
        self.cache = cache
        self.last_report = report
        return report

    def run(self) -> None:
        try:
            self.tick()
        except Exception:
            logger.exception("Menu task tick failed")
        self.sleep(self.interval)

    def get_menu_string(self, now: Optional[datetime] = None) -> str:
        now = now or self.clock()
        settings = self.settings
        cache = self.cache
        target = desired_menu(now, settings)
        if not target.visible:
            return ""
        if cache.menu_date != target.date or not cache.menu_line:
            return ""
        return f"{target.label}{settings.restaurant.label} menu: {cache.menu_line}"

    def status_snapshot(self, now: Optional[datetime] = None) -> StatusSnapshot:
        settings = self.settings
        cache = self.cache
        return StatusSnapshot(
            timestamp=cache.last_status_timestamp,
            restaurant=settings.restaurant.id,
            restaurant_code=settings.restaurant_code,
            menu_start_hour=settings.menu_start_hour,
            menu_end_hour=settings.menu_end_hour,
            menu_show_tomorrow=settings.menu_show_tomorrow,
            menu_date=cache.menu_date,
            menu=cache.menu_line,
            dishes=list(cache.dishes),
            message=self.get_menu_string(now),
        )


def build_task(config: ServiceConfig, registry: Optional[MessageRegistry] = None) -> RestaurantMenuTask:
    """Wire a task from environment-driven settings."""
    zone = resolve_timezone(config.timezone)
    fetcher = MenuFetcher(
        api_host=config.api_host,
        api_lang=config.api_lang,
        api_key=config.api_key,
        verify_tls=config.verify_tls,
        timeout=config.http_timeout,
        max_words=config.max_words,
        clock=lambda: datetime.now(zone),
    )
    return RestaurantMenuTask(
        JsonConfigStore(config.config_file),
        fetcher,
        interval=config.fetch_interval_seconds,
        zone=zone,
        registry=registry,
    )
