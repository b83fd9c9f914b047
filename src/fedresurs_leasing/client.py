from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from pydantic import ValidationError

from fedresurs_leasing.config import Settings
from fedresurs_leasing.errors import ListingFetchError, RegistryDecodeError
from fedresurs_leasing.models import DetailedContract, ListingPage
from fedresurs_leasing.windows import DayWindow


logger = logging.getLogger("fls.client")


def _now() -> float:
    return time.monotonic()


@dataclass
class RateLimiter:
    min_interval_s: float = 3.0
    sleep_fn: Callable[[float], None] = time.sleep
    _last_at: Optional[float] = None

    def wait(self) -> float:
        """Block until `min_interval_s` has passed since the previous call; returns seconds slept."""
        slept = 0.0
        if self._last_at is not None:
            remaining = self.min_interval_s - (_now() - self._last_at)
            if remaining > 0:
                self.sleep_fn(remaining)
                slept = remaining
        self._last_at = _now()
        return slept


class RegistryClient:
    """Thin wrapper over the registry backend's listing and detail endpoints."""

    def __init__(
        self,
        settings: Settings,
        *,
        session: Optional[requests.Session] = None,
        limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "User-Agent": settings.user_agent,
                "Accept": "application/json, text/plain, */*",
                "Accept-Language": "ru-RU,ru;q=0.9,en;q=0.8",
                "Cache-Control": "no-cache",
            }
        )
        self._limiter = limiter or RateLimiter(min_interval_s=settings.min_interval_s)

    def close(self) -> None:
        self._session.close()

    def listing_params(self, window: DayWindow, *, offset: int = 0) -> dict[str, Any]:
        return {
            "offset": int(offset),
            "limit": int(self.settings.listing_limit),
            "searchString": self.settings.search_string,
            "group": "Leasing",
            "publishDateStart": window.start,
            "publishDateEnd": window.end,
        }

    def _get(self, url: str, *, params: dict[str, Any] | None = None, referer: str) -> requests.Response:
        self._limiter.wait()
        logger.debug("GET %s params=%s", url, params)
        return self._session.get(
            url,
            params=params,
            headers={"Referer": referer},
            timeout=self.settings.timeout_s,
        )

    @staticmethod
    def _decode(resp: requests.Response, url: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise RegistryDecodeError(f"invalid JSON from {url}: {e}") from e

    def fetch_listing(self, window: DayWindow, *, offset: int = 0) -> ListingPage:
        """Fetch one listing page for `window`.

        Raises ListingFetchError on a non-200 status or empty body and
        RegistryDecodeError on malformed JSON. Transport errors propagate as
        requests.RequestException.
        """

        url = f"{self.base_url}/backend/encumbrances"
        params = self.listing_params(window, offset=offset)
        referer = requests.Request(
            "GET", f"{self.base_url}/search/encumbrances", params=params
        ).prepare().url
        resp = self._get(url, params=params, referer=referer or self.base_url)

        if resp.status_code != 200:
            raise ListingFetchError(
                f"listing returned HTTP {resp.status_code} for {window.day.isoformat()}",
                status=resp.status_code,
            )
        if not resp.content:
            raise ListingFetchError("empty response body", status=resp.status_code)

        data = self._decode(resp, url)
        try:
            page = ListingPage.model_validate(data)
        except ValidationError as e:
            raise RegistryDecodeError(f"unexpected listing payload: {e}") from e

        logger.info(
            "listing %s: %d records (found=%d)",
            window.day.isoformat(),
            len(page.records),
            page.found,
        )
        return page

    def fetch_detail(self, guid: str) -> Optional[DetailedContract]:
        """Fetch the detail message for `guid`; None when the registry has no data yet (non-200)."""

        url = f"{self.base_url}/backend/sfactmessages/{guid}"
        resp = self._get(url, referer=f"{self.base_url}/sfactmessage/{guid}")
        logger.debug("detail %s: HTTP %s", guid, resp.status_code)
        if resp.status_code != 200:
            return None

        data = self._decode(resp, url)
        try:
            return DetailedContract.model_validate(data)
        except ValidationError as e:
            raise RegistryDecodeError(f"unexpected detail payload for {guid}: {e}") from e

