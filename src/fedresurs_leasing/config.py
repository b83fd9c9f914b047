from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/97.0.4692.99 Safari/537.36"
)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = str(raw).strip()
    return v or default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(str(raw).strip())
    except ValueError:
        return default


def _env_date(name: str, default: date) -> date:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the sync and enrichment jobs.

    Built once (usually from env) and passed explicitly to each job.
    """

    db_path: str = "./fedresurs.sqlite"
    base_url: str = "https://fedresurs.ru"
    search_string: str = "договор"
    listing_limit: int = 10000
    min_interval_s: float = 3.0
    timeout_s: float = 30.0
    fallback_date: date = date(2023, 1, 1)
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            db_path=_env_str("FEDRESURS_DB_PATH", defaults.db_path),
            base_url=_env_str("FEDRESURS_BASE_URL", defaults.base_url).rstrip("/"),
            search_string=_env_str("FEDRESURS_SEARCH_STRING", defaults.search_string),
            listing_limit=max(1, _env_int("FEDRESURS_LISTING_LIMIT", defaults.listing_limit)),
            min_interval_s=max(0.0, _env_float("FEDRESURS_MIN_INTERVAL_S", defaults.min_interval_s)),
            timeout_s=max(1.0, _env_float("FEDRESURS_TIMEOUT_S", defaults.timeout_s)),
            fallback_date=_env_date("FEDRESURS_FALLBACK_DATE", defaults.fallback_date),
            user_agent=_env_str("FEDRESURS_USER_AGENT", defaults.user_agent),
        )

    def with_overrides(
        self,
        *,
        db_path: Optional[str] = None,
        base_url: Optional[str] = None,
        search_string: Optional[str] = None,
        listing_limit: Optional[int] = None,
        min_interval_s: Optional[float] = None,
        timeout_s: Optional[float] = None,
        fallback_date: Optional[date] = None,
        user_agent: Optional[str] = None,
    ) -> "Settings":
        """Apply CLI flags on top of env settings. `None` keeps the current value."""

        changes: dict = {}
        if db_path:
            changes["db_path"] = str(db_path)
        if base_url:
            changes["base_url"] = str(base_url).rstrip("/")
        if search_string:
            changes["search_string"] = str(search_string)
        if listing_limit is not None:
            changes["listing_limit"] = max(1, int(listing_limit))
        if min_interval_s is not None:
            changes["min_interval_s"] = max(0.0, float(min_interval_s))
        if timeout_s is not None:
            changes["timeout_s"] = max(1.0, float(timeout_s))
        if fallback_date is not None:
            changes["fallback_date"] = fallback_date
        if user_agent:
            changes["user_agent"] = str(user_agent)
        return replace(self, **changes) if changes else self
