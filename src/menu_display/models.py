from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

DEFAULT_START_HOUR = 9
DEFAULT_END_HOUR = 17
DEFAULT_RESTAURANT_CODE = 3


class Restaurant(BaseModel):
    code: int
    id: str

    @property
    def label(self) -> str:
        return f"R{self.code}"


# The first entry is the fallback for unknown codes.
RESTAURANTS: Tuple[Restaurant, ...] = (
    Restaurant(code=1, id="13-restaurant-r1"),
    Restaurant(code=2, id="21-restaurant-r2"),
    Restaurant(code=3, id="33-restaurant-r3"),
)


def restaurant_for_code(code: Optional[int]) -> Restaurant:
    for restaurant in RESTAURANTS:
        if restaurant.code == code:
            return restaurant
    return RESTAURANTS[0]


def sanitize_code(code: Optional[int]) -> int:
    return restaurant_for_code(code).code


class MenuSettings(BaseModel):
    """Per-tick view of the reloadable configuration keys, already sanitized."""

    restaurant_code: int = DEFAULT_RESTAURANT_CODE
    menu_start_hour: int = DEFAULT_START_HOUR
    menu_end_hour: int = DEFAULT_END_HOUR
    menu_show_tomorrow: bool = False

    @field_validator("restaurant_code", mode="before")
    @classmethod
    def _known_restaurant(cls, value: object) -> int:
        return sanitize_code(_as_int(value))

    @field_validator("menu_start_hour", mode="before")
    @classmethod
    def _start_hour(cls, value: object) -> int:
        return _hour_or(value, DEFAULT_START_HOUR)

    @field_validator("menu_end_hour", mode="before")
    @classmethod
    def _end_hour(cls, value: object) -> int:
        return _hour_or(value, DEFAULT_END_HOUR)

    @property
    def restaurant(self) -> Restaurant:
        return restaurant_for_code(self.restaurant_code)


def _as_int(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _hour_or(value: object, default: int) -> int:
    hour = _as_int(value)
    if hour is None or not 0 <= hour <= 23:
        return default
    return hour


@dataclass(frozen=True)
class MenuCache:
    """Published menu state. Replaced as a whole so readers never see half an update."""

    menu_date: str = ""
    menu_line: str = ""
    dishes: Tuple[str, ...] = ()
    last_status_timestamp: str = ""


@dataclass
class FetchReport:
    """Outcome of one fetch attempt, for logging and the CLI."""

    url: str
    menu_date: str
    status_code: Optional[int] = None
    attempts: int = 0
    dishes: List[str] = field(default_factory=list)
    skipped_objects: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200 and self.error is None


class StatusSnapshot(BaseModel):
    timestamp: str = ""
    restaurant: str
    restaurant_code: int
    menu_start_hour: int
    menu_end_hour: int
    menu_show_tomorrow: bool
    menu_date: str = ""
    menu: str = ""
    dishes: List[str] = Field(default_factory=list)
    message: str = ""
