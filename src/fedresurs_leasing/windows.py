from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional


WINDOW_FORMAT_START = "%Y-%m-%dT00:00:00.000"
WINDOW_FORMAT_END = "%Y-%m-%dT23:59:59.999"


@dataclass(frozen=True)
class DayWindow:
    day: date
    start: str
    end: str


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def day_window(day: date) -> DayWindow:
    """UTC day boundaries in the registry's millisecond timestamp format."""
    return DayWindow(
        day=day,
        start=day.strftime(WINDOW_FORMAT_START),
        end=day.strftime(WINDOW_FORMAT_END),
    )


def last_synced_day(
    *,
    latest_record: Optional[datetime],
    watermark: Optional[date],
    fallback: date,
) -> date:
    candidates = []
    if latest_record is not None:
        candidates.append(latest_record.date())
    if watermark is not None:
        candidates.append(watermark)
    if not candidates:
        return fallback
    return max(candidates)


def next_window(last_day: date, *, today: Optional[date] = None) -> Optional[DayWindow]:
    """Window for the day after `last_day`, or None when that day is today or later."""

    today = today or utc_today()
    nxt = last_day + timedelta(days=1)
    if nxt >= today:
        return None
    return day_window(nxt)
