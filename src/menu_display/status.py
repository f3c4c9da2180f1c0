"""HTML status page for the menu task."""

from __future__ import annotations

import html
import re
from typing import Callable, Dict, Mapping, Optional, Union

from .models import StatusSnapshot

STATUS_PAGE_PATH = "menu"
STATUS_PAGE_TITLE = "Restaurant menu"
RELOAD_MILLISECONDS = 15000

PAGE_HEADER = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>$title$</title>
<style>
body { font-family: sans-serif; margin: 1em; }
th { text-align: left; }
td.l { font-weight: bold; padding-right: 1em; }
</style>
</head>
<body>
"""

MENU_STATUS_PAGE = """
<table>
<tr><th>Restaurant Menu</th></tr>
<tr><td class="l">Last refresh:</td><td>$timestamp$</td></tr>
<tr><td class="l">Restaurant:</td><td>$restaurant$</td></tr>
<tr><td class="l">Menu start hour:</td><td>$menustarthour$</td></tr>
<tr><td class="l">Menu end hour:</td><td>$menuendhour$</td></tr>
<tr><td class="l">Show tomorrow:</td><td>$menushowtomorrow$</td></tr>
<tr><td class="l">Menu date:</td><td>$menudate$</td></tr>
<tr><td class="l">Menu:</td><td>$menu$</td></tr>
</table>
</body>
<script>setTimeout(function(){window.location.reload(1);}, $reloadms$);</script>
</html>
"""

MACRO_RE = re.compile(r"\$([A-Za-z0-9_]*)\$")

Lookup = Union[Mapping[str, str], Callable[[str], Optional[str]]]


def macro_string_replace(template: str, lookup: Lookup) -> str:
    """Replace ``$name$`` markers using ``lookup``.

    Unknown names are left in place; ``$$`` collapses to a literal ``$``.
    """
    resolve = lookup.get if isinstance(lookup, Mapping) else lookup

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if not name:
            return "$"
        value = resolve(name)
        return match.group(0) if value is None else value

    return MACRO_RE.sub(_sub, template)


def status_fields(snapshot: StatusSnapshot) -> Dict[str, str]:
    fields = {
        "timestamp": snapshot.timestamp,
        "restaurant": snapshot.restaurant,
        "menustarthour": str(snapshot.menu_start_hour),
        "menuendhour": str(snapshot.menu_end_hour),
        "menushowtomorrow": "1" if snapshot.menu_show_tomorrow else "0",
        "menudate": snapshot.menu_date,
        "menu": snapshot.menu,
    }
    return {key: html.escape(value) for key, value in fields.items()}


def render_status_page(snapshot: StatusSnapshot, title: str = STATUS_PAGE_TITLE) -> str:
    header = macro_string_replace(PAGE_HEADER, {"title": html.escape(title)})
    fields = status_fields(snapshot)
    fields["reloadms"] = str(RELOAD_MILLISECONDS)
    return header + macro_string_replace(MENU_STATUS_PAGE, fields)
