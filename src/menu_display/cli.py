from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import List

from rich.console import Console
from rich.table import Table

from .config import ServiceConfig
from .display import MessageRegistry
from .models import FetchReport, MenuCache, StatusSnapshot, sanitize_code
from .task import RestaurantMenuTask, build_task
from .window import DATE_FORMAT, active_menu_date


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch restaurant lunch menus and serve a display line")
    parser.add_argument(
        "--config-file",
        default=None,
        help="JSON file holding restaurant/menuStartHour/menuEndHour/menuShowTomorrow (default: MENU_CONFIG_FILE)",
    )
    parser.add_argument("--timezone", default=None, help="IANA timezone for the display window (default: host local time)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the status web server with background polling")
    serve.add_argument("--host", default=None, help="Bind address (default: MENU_SERVER_HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: MENU_SERVER_PORT or 8080)")

    sub.add_parser("run", help="Run the controller loop in the foreground")

    fetch = sub.add_parser("fetch", help="Fetch one menu and print the dishes")
    fetch.add_argument("--date", type=_parse_date_arg, default=None, help="Menu date YYYY-MM-DD (default: active date)")
    fetch.add_argument("--restaurant", type=int, default=None, help="Restaurant code (1-3); overrides the config file")

    sub.add_parser("status", help="Run one controller step and print the status table")
    return parser


def main(args: list[str] | None = None) -> None:
    parser = build_parser()
    opts = parser.parse_args(args=args)
    logging.basicConfig(level=logging.DEBUG if opts.verbose else logging.INFO)

    config = ServiceConfig()
    if opts.config_file:
        config.config_file = Path(opts.config_file)
    if opts.timezone:
        config.timezone = opts.timezone

    console = Console()
    try:
        if opts.command == "serve":
            _serve(config, opts.host, opts.port)
        elif opts.command == "run":
            _run_forever(console, build_task(config))
        elif opts.command == "fetch":
            _fetch_once(console, build_task(config), opts.date, opts.restaurant)
        elif opts.command == "status":
            task = build_task(config)
            task.tick()
            _render_status(console, task.status_snapshot())
    except ValueError as exc:
        parser.error(str(exc))


def _serve(config: ServiceConfig, host: str | None, port: int | None) -> None:
    import uvicorn

    from .server import create_app

    registry = MessageRegistry()
    task = build_task(config, registry=registry)
    app = create_app(task, registry=registry)
    uvicorn.run(app, host=host or config.server_host, port=port or config.server_port)


def _run_forever(console: Console, task: RestaurantMenuTask) -> None:
    console.print(f"[green]Polling menus every {task.interval} seconds. Press Ctrl+C to stop.[/]")
    try:
        while True:
            task.run()
            message = task.get_menu_string()
            console.print(message or "[dim](nothing to display)[/]")
    except KeyboardInterrupt:
        console.print("Menu task stopped.")


def _fetch_once(console: Console, task: RestaurantMenuTask, menu_date: str | None, restaurant: int | None) -> None:
    settings = task.reload_config()
    if restaurant is not None:
        settings = settings.model_copy(update={"restaurant_code": sanitize_code(restaurant)})
    menu_date = menu_date or active_menu_date(task.clock(), settings)
    cache, report = task.fetcher.fetch(menu_date, settings.restaurant, MenuCache())
    _render_report(console, report, cache)


def _render_report(console: Console, report: FetchReport, cache: MenuCache) -> None:
    if not report.ok:
        console.print(f"[red]Fetch failed after {report.attempts} attempt(s): {report.error}[/]")
        return
    if not report.dishes:
        console.print(f"[yellow]No lunch dishes listed for {report.menu_date}.[/]")
        return
    table = Table(title=f"Lunch {report.menu_date}")
    table.add_column("#")
    table.add_column("Dish")
    for idx, dish in enumerate(report.dishes, start=1):
        table.add_row(str(idx), dish)
    console.print(table)
    if report.skipped_objects:
        console.print(f"[yellow]{report.skipped_objects} unreadable menu entries skipped.[/]")
    console.print(cache.menu_line)


def _render_status(console: Console, snapshot: StatusSnapshot) -> None:
    table = Table(title="Restaurant Menu")
    table.add_column("Field")
    table.add_column("Value")
    rows: List[tuple[str, str]] = [
        ("Last refresh", snapshot.timestamp or "-"),
        ("Restaurant", snapshot.restaurant),
        ("Menu start hour", str(snapshot.menu_start_hour)),
        ("Menu end hour", str(snapshot.menu_end_hour)),
        ("Show tomorrow", "1" if snapshot.menu_show_tomorrow else "0"),
        ("Menu date", snapshot.menu_date or "-"),
        ("Menu", snapshot.menu or "-"),
        ("Display", snapshot.message or "-"),
    ]
    for field, value in rows:
        table.add_row(field, value)
    console.print(table)


def _parse_date_arg(value: str) -> str:
    try:
        return datetime.strptime(value, DATE_FORMAT).strftime(DATE_FORMAT)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("date must be formatted as YYYY-MM-DD") from exc


if __name__ == "__main__":  # pragma: no cover
    main()
