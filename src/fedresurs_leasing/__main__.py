import argparse
import json
import logging
from datetime import date
from typing import List, Optional

from fedresurs_leasing.client import RegistryClient
from fedresurs_leasing.config import Settings
from fedresurs_leasing.enrichment import run_enrichment
from fedresurs_leasing.scheduler.runner import dumps, run_scheduler
from fedresurs_leasing.storage import ContractStore
from fedresurs_leasing.sync import run_sync


def _configure_logging(level: Optional[str]) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fedresurs_leasing",
        description="Sync leasing filings from the Fedresurs registry into SQLite",
    )
    parser.add_argument("--db", default=None, help="SQLite DB path (default: $FEDRESURS_DB_PATH)")
    parser.add_argument("--log-level", default=None, help="Logging level (DEBUG, INFO, etc.)")
    parser.add_argument("--base-url", default=None, help="Registry base URL (default: $FEDRESURS_BASE_URL)")
    parser.add_argument("--search-string", default=None, help="Listing search string")
    parser.add_argument("--listing-limit", type=int, default=None, help="Records requested per listing call")
    parser.add_argument(
        "--min-interval",
        type=float,
        default=None,
        help="Minimum seconds between registry requests",
    )
    parser.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    parser.add_argument(
        "--fallback-date",
        type=_iso_date,
        default=None,
        help="Last-synced day assumed for an empty DB (YYYY-MM-DD)",
    )
    parser.add_argument("--user-agent", default=None, help="User-Agent header sent to the registry")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_sync = sub.add_parser("sync", help="Fetch the next day's filings and insert new rows")
    p_sync.add_argument("--max-days", type=int, default=1, help="Consecutive days to sync in this run")
    p_sync.add_argument("--today", type=_iso_date, default=None, help="Override today's date (YYYY-MM-DD)")

    p_enrich = sub.add_parser("enrich", help="Fetch details for rows not yet enriched")
    p_enrich.add_argument("--limit", type=int, default=None, help="Maximum rows to process")
    p_enrich.add_argument("--fail-fast", action="store_true", help="Stop at the first failed row")

    p_run = sub.add_parser("run", help="Run sync then enrich, once or in a loop")
    mode = p_run.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run one tick and exit (default)")
    mode.add_argument("--loop", action="store_true", help="Run forever with sleep interval")
    p_run.add_argument("--interval-seconds", type=int, default=3600, help="Loop interval in seconds")
    p_run.add_argument("--max-days", type=int, default=1)
    p_run.add_argument("--enrich-limit", type=int, default=None)
    p_run.add_argument("--today", type=_iso_date, default=None, help="Override today's date (YYYY-MM-DD)")
    p_run.add_argument("--lock-name", default="scheduler:daily", help="Scheduler lock name")
    p_run.add_argument("--lock-ttl-seconds", type=int, default=7200, help="Lock stale timeout; allows takeover")

    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings.from_env().with_overrides(
        db_path=args.db,
        base_url=args.base_url,
        search_string=args.search_string,
        listing_limit=args.listing_limit,
        min_interval_s=args.min_interval,
        timeout_s=args.timeout,
        fallback_date=args.fallback_date,
        user_agent=args.user_agent,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    settings = settings_from_args(args)

    if args.cmd == "run":
        res = run_scheduler(
            settings=settings,
            loop=bool(args.loop),
            interval_seconds=int(args.interval_seconds or 3600),
            max_days=int(args.max_days or 1),
            enrich_limit=args.enrich_limit,
            today=args.today,
            lock_name=str(args.lock_name or "scheduler:daily"),
            lock_ttl_seconds=int(args.lock_ttl_seconds or 7200),
        )
        print(dumps(res), end="")
        return 0 if res.get("ok") else 2

    store = ContractStore(settings.db_path)
    client = RegistryClient(settings)
    try:
        if args.cmd == "sync":
            result = run_sync(
                store=store,
                client=client,
                settings=settings,
                today=args.today,
                max_days=int(args.max_days or 1),
            )
        else:
            result = run_enrichment(
                store=store,
                client=client,
                limit=args.limit,
                fail_fast=bool(args.fail_fast),
            )
    finally:
        client.close()
        store.close()

    print(dumps(result.to_dict()), end="")
    return 0 if result.ok else 2


def _safe_main():
    try:
        code = main()
    except SystemExit:
        raise
    except Exception as exc:
        logging.getLogger("fls").exception("unhandled error")
        print(json.dumps({"error": str(exc)}))
        raise SystemExit(1)
    raise SystemExit(code)


if __name__ == "__main__":
    _safe_main()
