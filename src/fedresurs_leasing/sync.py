"""Daily listing sync.

Walks forward one UTC day at a time from the last synced day, fetches the
registry listing for that day and inserts filings that are not stored yet.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Protocol

import requests

from fedresurs_leasing.config import Settings
from fedresurs_leasing.errors import RegistryError
from fedresurs_leasing.extract import (
    extract_fields,
    is_excluded_type,
    parse_publish_date,
    translate_contract_type,
)
from fedresurs_leasing.models import ContractRow, ListingPage, ListingRecord
from fedresurs_leasing.run_result import JobResult, utc_now_iso
from fedresurs_leasing.storage import DATE_FORMAT, ContractStore
from fedresurs_leasing.windows import DayWindow, last_synced_day, next_window, utc_today


logger = logging.getLogger("fls.sync")


class ListingSource(Protocol):
    def fetch_listing(self, window: DayWindow, *, offset: int = 0) -> ListingPage:
        ...


def record_to_row(record: ListingRecord) -> ContractRow:
    published = parse_publish_date(record.publish_date)
    fields = extract_fields(record.main_info)
    return ContractRow(
        guid=record.guid,
        type=translate_contract_type(record.type),
        date=published.strftime(DATE_FORMAT) if published else None,
        number=record.number,
        contract=fields["contract"],
        lessor=fields["lessor"],
        lessee=fields["lessee"],
        ogrn=fields["ogrn"],
        inn=fields["inn"],
        list_item_raw=record.raw_json(),
        item_raw="{}",
    )


def store_records(store: ContractStore, records: list[ListingRecord], result: JobResult) -> None:
    for record in records:
        guid = (record.guid or "").strip()
        if not guid:
            result.bump("skipped_no_guid")
            logger.warning("listing record without guid skipped (number=%r)", record.number)
            continue
        if is_excluded_type(record.type):
            result.bump("skipped_excluded_type")
            continue

        if store.insert_contract(record_to_row(record)):
            result.bump("inserted")
            logger.info("inserted %s (%s)", guid, record.number)
        else:
            result.bump("skipped_existing")
            logger.debug("already stored %s", guid)


def resolve_next_window(store: ContractStore, settings: Settings, *, today: Optional[date] = None) -> Optional[DayWindow]:
    last_day = last_synced_day(
        latest_record=store.latest_contract_date(),
        watermark=store.get_watermark(),
        fallback=settings.fallback_date,
    )
    return next_window(last_day, today=today)


def run_sync(
    *,
    store: ContractStore,
    client: ListingSource,
    settings: Settings,
    today: Optional[date] = None,
    max_days: int = 1,
) -> JobResult:
    """Sync up to `max_days` consecutive days after the last synced day.

    Returns status "up_to_date" without any network call when the next day is
    today (UTC) or later. Listing failures end the run with ok=False; rows
    inserted before the failure stay committed.
    """

    result = JobResult(job="sync", started_at=utc_now_iso())
    today = today or utc_today()
    max_days = max(1, int(max_days or 1))

    for _ in range(max_days):
        window = resolve_next_window(store, settings, today=today)
        if window is None:
            if not result.days:
                result.status = "up_to_date"
                logger.info("nothing to do: next day is not before %s", today.isoformat())
            break

        day = window.day.isoformat()
        result.days.append(day)
        try:
            page = client.fetch_listing(window)
        except (RegistryError, requests.RequestException) as e:
            logger.error("listing fetch for %s failed: %s", day, e)
            result.fail(f"{day}: {e}")
            break

        result.bump("fetched", len(page.records))
        if page.found > len(page.records):
            msg = f"{day}: registry reports {page.found} filings but returned {len(page.records)}"
            logger.warning(msg)
            result.warnings.append(msg)

        store_records(store, page.records, result)
        store.set_watermark(window.day)

    return result.finish()
