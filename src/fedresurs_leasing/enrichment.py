from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

from fedresurs_leasing.errors import RegistryError
from fedresurs_leasing.extract import strip_org_prefix
from fedresurs_leasing.models import DetailContent, DetailedContract
from fedresurs_leasing.run_result import JobResult, utc_now_iso
from fedresurs_leasing.storage import ContractStore


logger = logging.getLogger("fls.enrich")


class DetailSource(Protocol):
    def fetch_detail(self, guid: str) -> Optional[DetailedContract]:
        ...


def company_fields(content: DetailContent) -> dict[str, Optional[str]]:
    """Lessor/lessee overrides taken from the first company of each list."""

    out: dict[str, Optional[str]] = {"lessor": None, "lessee": None, "ogrn": None, "inn": None}
    lessor = content.first_lessor()
    if lessor is not None:
        out["lessor"] = strip_org_prefix(lessor.name) or None
    lessee = content.first_lessee()
    if lessee is not None:
        out["lessee"] = strip_org_prefix(lessee.name) or None
        out["ogrn"] = (lessee.ogrn or "").strip() or None
        out["inn"] = (lessee.inn or "").strip() or None
    return out


def enrich_one(store: ContractStore, client: DetailSource, guid: str) -> str:
    """Enrich a single row. Returns "updated", "pending" or "not_ready"."""

    detail = client.fetch_detail(guid)
    if detail is None:
        logger.info("detail for %s not available yet", guid)
        return "not_ready"

    content = detail.content
    if not content.has_update():
        logger.debug("detail for %s has no comment or stop reason yet", guid)
        return "pending"

    updated = store.apply_enrichment(
        guid=guid,
        user_comment=content.comment,
        stop_reason=content.stop_reason,
        item_raw=content.raw_json(),
        **company_fields(content),
    )
    if not updated:
        return "pending"
    logger.info("enriched %s", guid)
    return "updated"


def run_enrichment(
    *,
    store: ContractStore,
    client: DetailSource,
    limit: Optional[int] = None,
    fail_fast: bool = False,
) -> JobResult:
    """Fetch details for every unenriched row.

    Per-row registry/transport failures are recorded in the result; with
    `fail_fast` the run stops at the first one.
    """

    result = JobResult(job="enrich", started_at=utc_now_iso())
    guids = store.list_unenriched_guids(limit=limit)
    result.counts["candidates"] = len(guids)

    for guid in guids:
        try:
            outcome = enrich_one(store, client, guid)
        except (RegistryError, requests.RequestException) as e:
            logger.error("enrichment of %s failed: %s", guid, e)
            result.bump("failed")
            result.errors.append(f"{guid}: {e}")
            if fail_fast:
                result.ok = False
                result.status = "failed"
                break
            continue
        result.bump(outcome)

    if result.errors and result.ok:
        result.status = "partial"
    return result.finish()
