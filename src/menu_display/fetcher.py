from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import requests
import urllib3

from .jsonstream import JSON_CAPACITY, MENU_FILTER, ByteStream, JsonStreamError, iter_filtered_objects
from .keyphrase import DEFAULT_MAX_WORDS, trimmed_key_words
from .models import FetchReport, MenuCache, Restaurant
from .normalizer import normalize_french_text

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "api.mynovae.ch"
DEFAULT_API_LANG = "en"
DEFAULT_API_KEY = "CER103"
LUNCH_SERVICE = "midi"
DISH_SEPARATOR = " | "
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 2.0
CHUNK_SIZE = 256


class MenuFetcher:
    """Download one day's menu and fold it into a new MenuCache.

    Failures never escape :meth:`fetch`; they are logged, recorded on the
    returned report, and the cache passed in is handed back untouched.
    """

    def __init__(
        self,
        api_host: str = DEFAULT_API_HOST,
        api_lang: str = DEFAULT_API_LANG,
        api_key: str = DEFAULT_API_KEY,
        *,
        verify_tls: bool = False,
        timeout: float = 30,
        max_words: int = DEFAULT_MAX_WORDS,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.api_host = api_host
        self.api_lang = api_lang
        self.api_key = api_key
        self.verify_tls = verify_tls
        self.timeout = timeout
        self.max_words = max_words
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.session_factory = session_factory
        self.sleep = sleep
        self.clock = clock
        if not verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def build_url(self, restaurant_id: str, menu_date: str) -> str:
        return f"https://{self.api_host}/{self.api_lang}/api/v2/salepoints/{restaurant_id}/menus/{menu_date}"

    def request_headers(self) -> Dict[str, str]:
        return {
            "Novae-Codes": self.api_key,
            "Accept": "application/json",
            "X-Requested-With": "xmlhttprequest",
            "Connection": "close",
        }

    def fetch(self, menu_date: str, restaurant: Restaurant, cache: MenuCache) -> Tuple[MenuCache, FetchReport]:
        url = self.build_url(restaurant.id, menu_date)
        report = FetchReport(url=url, menu_date=menu_date)
        logger.info("Fetching %s menu for %s from %s", restaurant.label, menu_date, url)

        with self.session_factory() as session:
            response = self._get_with_retries(session, url, report)
            if response is None:
                logger.error("Giving up on %s after %s attempts: %s", url, report.attempts, report.error)
                return cache, report

            with response:
                report.status_code = response.status_code
                if response.status_code != 200:
                    report.error = f"HTTP {response.status_code}"
                    logger.warning("Menu request to %s returned HTTP %s", url, response.status_code)
                    return cache, report
                try:
                    report.dishes, report.skipped_objects = self.extract_dishes(
                        response.iter_content(chunk_size=CHUNK_SIZE)
                    )
                except requests.RequestException as exc:
                    report.error = f"stream interrupted: {exc}"
                    logger.warning("Menu stream from %s interrupted; keeping previous menu: %s", url, exc)
                    return cache, report

        updated = self.finalize(cache, menu_date, report.dishes)
        logger.info(
            "Menu for %s: %s dishes (%s unreadable objects skipped)",
            menu_date,
            len(report.dishes),
            report.skipped_objects,
        )
        return updated, report

    def _get_with_retries(
        self, session: requests.Session, url: str, report: FetchReport
    ) -> Optional[requests.Response]:
        for attempt in range(1, self.max_attempts + 1):
            report.attempts = attempt
            try:
                return session.get(
                    url,
                    headers=self.request_headers(),
                    stream=True,
                    verify=self.verify_tls,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                report.error = str(exc)
                logger.warning("Attempt %s/%s for %s failed: %s", attempt, self.max_attempts, url, exc)
                if attempt < self.max_attempts:
                    self.sleep(self.retry_delay)
        return None

    def extract_dishes(self, chunks: Iterable[bytes]) -> Tuple[List[str], int]:
        """Stream the menu array and return (unique dishes in source order, unreadable object count).

        Uniqueness ignores case; the first spelling seen is the one kept.
        """
        dishes: List[str] = []
        seen: Set[str] = set()
        errors: List[JsonStreamError] = []
        for document in iter_filtered_objects(
            ByteStream(chunks), MENU_FILTER, capacity=JSON_CAPACITY, on_error=errors.append
        ):
            dish = self.dish_from_object(document)
            if not dish:
                continue
            key = dish.lower()
            if key not in seen:
                seen.add(key)
                dishes.append(dish)
        return dishes, len(errors)

    def dish_from_object(self, document: Mapping[str, Any]) -> Optional[str]:
        model = document.get("model")
        service = model.get("service") if isinstance(model, Mapping) else None
        if not isinstance(service, str) or service.lower() != LUNCH_SERVICE:
            return None

        title = document.get("title")
        if not isinstance(title, Mapping):
            return None
        text = _non_empty_string(title.get("en")) or _non_empty_string(title.get("fr"))
        if not text:
            return None
        return trimmed_key_words(normalize_french_text(text), self.max_words) or None

    def finalize(self, cache: MenuCache, menu_date: str, dishes: List[str]) -> MenuCache:
        timestamp = self.clock().strftime(TIMESTAMP_FORMAT)
        if not dishes:
            # Empty harvest: blank the line, keep the previous date.
            return replace(cache, menu_line="", dishes=(), last_status_timestamp=timestamp)
        return MenuCache(
            menu_date=menu_date,
            menu_line=DISH_SEPARATOR.join(dishes),
            dishes=tuple(dishes),
            last_status_timestamp=timestamp,
        )


def _non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None
