from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence

import pytest
import requests
from dateutil import tz

from menu_display.fetcher import MenuFetcher

ZONE = tz.gettz("Europe/Zurich")


def at(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=ZONE)


def menu_item(en: Optional[str] = None, fr: Optional[str] = None, service: str = "midi", **extra: Any) -> dict:
    title = {}
    if en is not None:
        title["en"] = en
    if fr is not None:
        title["fr"] = fr
    item = {"id": 42, "title": title, "model": {"service": service, "price": 12.5}, "tags": ["x", "y"]}
    item.update(extra)
    return item


def menu_body(items: Sequence[dict]) -> bytes:
    return json.dumps(list(items), ensure_ascii=False).encode("utf-8")


def chunked(data: bytes, size: int = 7) -> List[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


class FakeResponse:
    def __init__(self, status_code: int = 200, body: bytes = b"[]", fail_after: Optional[int] = None):
        self.status_code = status_code
        self.body = body
        self.fail_after = fail_after
        self.closed = False

    def iter_content(self, chunk_size: int = 1) -> Iterable[bytes]:
        for index, chunk in enumerate(chunked(self.body, chunk_size)):
            if self.fail_after is not None and index >= self.fail_after:
                raise requests.exceptions.ChunkedEncodingError("connection broken")
            yield chunk

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class FakeSession:
    """Replays queued outcomes: a FakeResponse is returned, an exception is raised."""

    def __init__(self, outcomes: Sequence[Any]):
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_fetcher(sleeps: List[float]):
    def _make(*outcomes: Any, **kwargs: Any) -> tuple[MenuFetcher, FakeSession]:
        session = FakeSession(outcomes)
        fetcher = MenuFetcher(
            session_factory=lambda: session,
            sleep=sleeps.append,
            clock=lambda: at(2024, 5, 6, 10, 30),
            **kwargs,
        )
        return fetcher, session

    return _make
