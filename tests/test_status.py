from __future__ import annotations

import re

from menu_display.models import StatusSnapshot
from menu_display.status import macro_string_replace, render_status_page, status_fields


def snapshot(**overrides) -> StatusSnapshot:
    values = dict(
        timestamp="2024-05-06 10:30:00",
        restaurant="21-restaurant-r2",
        restaurant_code=2,
        menu_start_hour=9,
        menu_end_hour=17,
        menu_show_tomorrow=True,
        menu_date="2024-05-07",
        menu="Soup | Salad",
    )
    values.update(overrides)
    return StatusSnapshot(**values)


def test_macro_replace_with_mapping():
    result = macro_string_replace("Hi $name$, $unknown$ costs $$5", {"name": "Ana"})
    assert result == "Hi Ana, $unknown$ costs $5"


def test_macro_replace_with_callable():
    assert macro_string_replace("$a$-$b$", lambda name: name.upper()) == "A-B"
    assert macro_string_replace("$a$", lambda name: None) == "$a$"


def test_status_fields():
    fields = status_fields(snapshot(menu_show_tomorrow=False))
    assert fields["menushowtomorrow"] == "0"
    assert fields["menustarthour"] == "9"
    assert fields["restaurant"] == "21-restaurant-r2"
    assert status_fields(snapshot())["menushowtomorrow"] == "1"


def test_rendered_page_fills_every_marker():
    page = render_status_page(snapshot())
    assert page.startswith("<!DOCTYPE html>")
    assert "<title>Restaurant menu</title>" in page
    assert "<td>2024-05-07</td>" in page
    assert "<td>Soup | Salad</td>" in page
    assert "<td>1</td>" in page
    assert "15000" in page
    assert "window.location.reload" in page
    assert re.search(r"\$\w*\$", page) is None


def test_rendered_page_escapes_values():
    page = render_status_page(snapshot(menu="Fish & <b>chips</b>"))
    assert "Fish &amp; &lt;b&gt;chips&lt;/b&gt;" in page
    assert "<b>chips" not in page
