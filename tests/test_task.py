from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import pytest

from conftest import ZONE, FakeResponse, at, menu_body, menu_item
from menu_display.config import KEY_RESTAURANT, KEY_SHOW_TOMORROW, DictConfigStore
from menu_display.display import MessageRegistry
from menu_display.models import FetchReport, MenuCache, Restaurant
from menu_display.task import RestaurantMenuTask


class StubFetcher:
    """Records fetch calls and publishes a fixed dish list (or fails)."""

    def __init__(self, dishes: Sequence[str] = ("Soup",), fail: bool = False):
        self.dishes = list(dishes)
        self.fail = fail
        self.calls: List[Tuple[str, int]] = []

    def fetch(self, menu_date: str, restaurant: Restaurant, cache: MenuCache):
        self.calls.append((menu_date, restaurant.code))
        report = FetchReport(url="https://example.invalid", menu_date=menu_date)
        if self.fail:
            report.error = "boom"
            return cache, report
        report.status_code = 200
        report.dishes = list(self.dishes)
        updated = MenuCache(
            menu_date=menu_date,
            menu_line=" | ".join(self.dishes),
            dishes=tuple(self.dishes),
            last_status_timestamp="2024-05-06 10:00:00",
        )
        return updated, report


class ExplodingFetcher:
    def fetch(self, menu_date, restaurant, cache):
        raise RuntimeError("unexpected")


def make_task(fetcher, values: Optional[dict] = None, **kwargs) -> RestaurantMenuTask:
    kwargs.setdefault("clock", lambda: at(2024, 5, 6, 12))
    return RestaurantMenuTask(DictConfigStore(values), fetcher, zone=ZONE, **kwargs)


def test_first_tick_fetches_today():
    fetcher = StubFetcher()
    task = make_task(fetcher)
    assert task.tick(at(2024, 5, 6, 10)) is True
    assert fetcher.calls == [("2024-05-06", 3)]
    assert task.last_fetched_menu_date == "2024-05-06"
    assert task.last_fetch_hour == 10


def test_tick_refetches_only_on_new_hour_or_date():
    fetcher = StubFetcher()
    task = make_task(fetcher, {KEY_SHOW_TOMORROW: "1"})

    assert task.tick(at(2024, 5, 6, 10, 0))
    assert not task.tick(at(2024, 5, 6, 10, 15))
    assert not task.tick(at(2024, 5, 6, 10, 59))
    assert task.tick(at(2024, 5, 6, 11, 0))
    # Past the window the active date becomes tomorrow.
    assert task.tick(at(2024, 5, 6, 17, 0))
    assert [call[0] for call in fetcher.calls] == ["2024-05-06", "2024-05-06", "2024-05-07"]


def test_marks_advance_even_when_fetch_fails():
    previous = MenuCache(menu_date="2024-05-06", menu_line="Soup", dishes=("Soup",))
    fetcher = StubFetcher(fail=True)
    task = make_task(fetcher)
    task.cache = previous

    assert task.tick(at(2024, 5, 6, 10))
    assert not task.tick(at(2024, 5, 6, 10, 30))
    assert len(fetcher.calls) == 1
    assert task.cache is previous
    assert task.last_report.error == "boom"


def test_config_is_reloaded_every_tick():
    fetcher = StubFetcher()
    task = make_task(fetcher)
    task.tick(at(2024, 5, 6, 10))
    task.config_store.write(KEY_RESTAURANT, 2)
    task.tick(at(2024, 5, 6, 11))
    assert fetcher.calls == [("2024-05-06", 3), ("2024-05-06", 2)]
    assert task.settings.restaurant_code == 2


def test_menu_hidden_outside_window():
    task = make_task(StubFetcher(["Soup"]))
    task.tick(at(2024, 5, 6, 10))
    assert task.get_menu_string(at(2024, 5, 6, 12)) == "Today's R3 menu: Soup"
    assert task.get_menu_string(at(2024, 5, 6, 18)) == ""
    assert task.get_menu_string(at(2024, 5, 6, 8)) == ""


def test_tomorrow_roll_shows_fetched_menu(make_fetcher):
    fetcher, session = make_fetcher(FakeResponse(body=menu_body([menu_item(en="Soup"), menu_item(en="Salad")])))
    task = make_task(fetcher, {KEY_RESTAURANT: "2", KEY_SHOW_TOMORROW: "1"})

    task.tick(at(2024, 5, 6, 20))

    assert session.calls[0]["url"].endswith("/salepoints/21-restaurant-r2/menus/2024-05-07")
    assert task.get_menu_string(at(2024, 5, 6, 20, 5)) == "Tomorrow's R2 menu: Soup | Salad"


def test_menu_hidden_when_cache_is_for_another_date():
    task = make_task(StubFetcher())
    task.cache = MenuCache(menu_date="2024-05-05", menu_line="Old soup")
    assert task.get_menu_string(at(2024, 5, 6, 12)) == ""


def test_menu_hidden_when_line_is_blank():
    task = make_task(StubFetcher())
    task.cache = MenuCache(menu_date="2024-05-06", menu_line="")
    assert task.get_menu_string(at(2024, 5, 6, 12)) == ""


def test_run_sleeps_for_interval():
    sleeps: List[float] = []
    fetcher = StubFetcher()
    task = make_task(fetcher, sleep=sleeps.append)
    task.run()
    task.run()
    assert sleeps == [900, 900]
    assert len(fetcher.calls) == 1


def test_run_survives_unexpected_errors(caplog):
    sleeps: List[float] = []
    task = make_task(ExplodingFetcher(), sleep=sleeps.append, interval=5)
    task.run()
    assert sleeps == [5]
    assert "Menu task tick failed" in caplog.text


def test_registers_display_message():
    registry = MessageRegistry()
    task = make_task(StubFetcher(["Soup"]), registry=registry)
    task.tick()

    (message,) = registry.messages()
    assert message.owner is task
    assert message.period == pytest.approx(0.025)
    assert message.priority == 1
    assert message.repeat is True
    assert message.render() == "Today's R3 menu: Soup"
    assert registry.current_messages() == ["Today's R3 menu: Soup"]


def test_status_snapshot():
    task = make_task(StubFetcher(["Soup", "Salad"]), {KEY_RESTAURANT: "1"})
    task.tick(at(2024, 5, 6, 10))
    snapshot = task.status_snapshot(at(2024, 5, 6, 12))
    assert snapshot.restaurant == "13-restaurant-r1"
    assert snapshot.restaurant_code == 1
    assert (snapshot.menu_start_hour, snapshot.menu_end_hour, snapshot.menu_show_tomorrow) == (9, 17, False)
    assert snapshot.menu_date == "2024-05-06"
    assert snapshot.menu == "Soup | Salad"
    assert snapshot.dishes == ["Soup", "Salad"]
    assert snapshot.timestamp == "2024-05-06 10:00:00"
    assert snapshot.message == "Today's R1 menu: Soup | Salad"
