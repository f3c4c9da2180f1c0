"""Display window and active-date rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Optional

from dateutil import tz

from .models import MenuSettings

DATE_FORMAT = "%Y-%m-%d"
TODAY_LABEL = "Today's "
TOMORROW_LABEL = "Tomorrow's "


def within_window(hour: int, start: int, end: int) -> bool:
    if start < end:
        return start <= hour < end
    # Window wraps midnight (or spans the whole day when start == end).
    return hour >= start or hour < end


def after_end(hour: int, start: int, end: int) -> bool:
    if start < end:
        return hour >= end
    return end <= hour < start


def menu_date_string(moment: datetime) -> str:
    return moment.strftime(DATE_FORMAT)


@dataclass(frozen=True)
class MenuTarget:
    """Which menu the display should be showing at a given moment."""

    date: str
    label: str
    visible: bool

    @property
    def is_tomorrow(self) -> bool:
        return self.label == TOMORROW_LABEL


def active_menu_date(now: datetime, settings: MenuSettings) -> str:
    """Date whose menu should be cached: today, or tomorrow once the window has closed."""
    return desired_menu(now, settings).date


def desired_menu(now: datetime, settings: MenuSettings) -> MenuTarget:
    start, end = settings.menu_start_hour, settings.menu_end_hour
    hour = now.hour
    if settings.menu_show_tomorrow and after_end(hour, start, end):
        return MenuTarget(date=menu_date_string(now + timedelta(hours=24)), label=TOMORROW_LABEL, visible=True)
    return MenuTarget(
        date=menu_date_string(now),
        label=TODAY_LABEL,
        visible=within_window(hour, start, end),
    )


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Named IANA zone, or the host's local zone when ``name`` is empty."""
    if not name:
        return tz.tzlocal()
    zone = tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown timezone '{name}'.")
    return zone
