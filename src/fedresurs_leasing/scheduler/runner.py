from __future__ import annotations

import json
import logging
import os
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from fedresurs_leasing.client import RegistryClient
from fedresurs_leasing.config import Settings
from fedresurs_leasing.enrichment import run_enrichment
from fedresurs_leasing.storage import ContractStore
from fedresurs_leasing.sync import run_sync


logger = logging.getLogger("fls.scheduler")

ClientFactory = Callable[[Settings], Any]


def run_tick(
    *,
    settings: Settings,
    client_factory: ClientFactory = RegistryClient,
    today: Optional[date] = None,
    max_days: int = 1,
    enrich_limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Run sync then enrichment once. Enrichment still runs when sync fails."""

    store = ContractStore(settings.db_path)
    client = client_factory(settings)
    try:
        sync_res = run_sync(store=store, client=client, settings=settings, today=today, max_days=max_days)
        enrich_res = run_enrichment(store=store, client=client, limit=enrich_limit)
        return {
            "ok": sync_res.ok and enrich_res.ok,
            "db": settings.db_path,
            "sync": sync_res.to_dict(),
            "enrich": enrich_res.to_dict(),
        }
    finally:
        close = getattr(client, "close", None)
        if close is not None:
            close()
        store.close()


def run_scheduler(
    *,
    settings: Settings,
    client_factory: ClientFactory = RegistryClient,
    loop: bool = False,
    interval_seconds: int = 3600,
    max_days: int = 1,
    enrich_limit: Optional[int] = None,
    today: Optional[date] = None,
    lock_name: str = "scheduler:daily",
    lock_ttl_seconds: int = 7200,
    sleep_fn: Callable[[float], None] = time.sleep,
    max_ticks: Optional[int] = None,
) -> Dict[str, Any]:
    """Run ticks while holding the tick lock.

    Once mode runs a single tick. Loop mode sleeps `interval_seconds` between
    ticks and stops after `max_ticks` (never when None). Nothing runs when
    another live process holds the lock.
    """

    interval = max(5, int(interval_seconds or 0))
    ttl = max(interval * 2, int(lock_ttl_seconds or 0))
    lock_name = (lock_name or "").strip() or "scheduler:daily"
    pid = os.getpid()

    lock_store = ContractStore(settings.db_path)
    try:
        lock = lock_store.claim_tick_lock(lock_name, pid=pid, ttl_seconds=ttl)
        if not lock.acquired:
            logger.warning("tick lock %s held by pid %s since %s", lock_name, lock.pid, lock.heartbeat_at)
            return {"ok": False, "error": "lock_held", "lock": lock.to_dict()}
        if lock.taken_over:
            logger.warning("took over stale tick lock %s", lock_name)

        try:
            ticks: List[Dict[str, Any]] = []
            done = failed = 0
            while True:
                res = run_tick(
                    settings=settings,
                    client_factory=client_factory,
                    today=today,
                    max_days=max_days,
                    enrich_limit=enrich_limit,
                )
                if not loop:
                    res.update(mode="once", lock=lock.to_dict())
                    return res

                done += 1
                if not res["ok"]:
                    failed += 1
                    logger.warning("scheduler tick finished with errors")
                ticks = (ticks + [res])[-3:]
                if max_ticks is not None and done >= max_ticks:
                    return {"ok": failed == 0, "mode": "loop", "failed_ticks": failed, "ticks": ticks}
                lock_store.touch_tick_lock(lock_name, pid=pid)
                sleep_fn(interval)
                lock_store.touch_tick_lock(lock_name, pid=pid)
        finally:
            lock_store.release_tick_lock(lock_name, pid=pid)
    finally:
        lock_store.close()


def dumps(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, indent=2, default=str, ensure_ascii=False) + "\n"
