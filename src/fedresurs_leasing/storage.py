from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fedresurs_leasing.models import ContractRow


DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
WATERMARK_KEY = "listing_watermark"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


@dataclass(frozen=True)
class TickLock:
    """Outcome of claiming the tick lock. `pid` is the holder after the claim."""

    name: str
    pid: int
    acquired: bool
    taken_over: bool = False
    heartbeat_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ContractStore:
    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS contract (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guid TEXT NOT NULL,
                type TEXT,
                date TEXT,
                number TEXT,
                contract TEXT,
                lessor TEXT,
                lessee TEXT,
                ogrn TEXT,
                inn TEXT,
                stop_reason TEXT,
                user_comment TEXT,
                list_item_raw TEXT,
                item_raw TEXT,
                enriched INTEGER NOT NULL DEFAULT 0,
                created_at TEXT,
                updated_at TEXT
            )
            """
        )
        self.conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_contract_guid_unique ON contract(guid)"
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_contract_enriched_date ON contract(enriched, date)"
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT
            )
            """
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tick_lock (
                name TEXT PRIMARY KEY,
                pid INTEGER NOT NULL,
                heartbeat_at TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    @staticmethod
    def _utc_now_iso() -> str:
        return datetime.now(timezone.utc).replace(microsecond=0).isoformat()

    # Contracts

    def latest_contract_date(self) -> Optional[datetime]:
        row = self.conn.execute("SELECT MAX(date) AS latest FROM contract").fetchone()
        raw = row["latest"] if row else None
        if not raw:
            return None
        return datetime.strptime(str(raw), DATE_FORMAT)

    def contract_exists(self, guid: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM contract WHERE guid = ? LIMIT 1", (guid,)
        ).fetchone()
        return row is not None

    def insert_contract(self, row: ContractRow) -> bool:
        """Insert `row` unless its GUID is already stored. Returns True when inserted."""

        if self.contract_exists(row.guid):
            return False

        now = self._utc_now_iso()
        self.conn.execute(
            """
            INSERT INTO contract (
                guid, type, date, number, contract, lessor, lessee, ogrn, inn,
                stop_reason, user_comment, list_item_raw, item_raw, enriched,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row.guid,
                row.type,
                row.date,
                row.number,
                row.contract,
                row.lessor,
                row.lessee,
                row.ogrn,
                row.inn,
                row.stop_reason,
                row.user_comment,
                row.list_item_raw,
                row.item_raw,
                1 if row.enriched else 0,
                now,
                now,
            ),
        )
        self.conn.commit()
        return True

    @staticmethod
    def _row_to_contract(r: sqlite3.Row) -> ContractRow:
        return ContractRow(
            id=int(r["id"]),
            guid=r["guid"],
            type=r["type"] or "",
            date=r["date"],
            number=r["number"] or "",
            contract=r["contract"] or "",
            lessor=r["lessor"] or "",
            lessee=r["lessee"] or "",
            ogrn=r["ogrn"] or "",
            inn=r["inn"] or "",
            stop_reason=r["stop_reason"] or "",
            user_comment=r["user_comment"] or "",
            list_item_raw=r["list_item_raw"] or "{}",
            item_raw=r["item_raw"] or "{}",
            enriched=bool(r["enriched"]),
            created_at=r["created_at"],
            updated_at=r["updated_at"],
        )

    def get_contract(self, guid: str) -> Optional[ContractRow]:
        r = self.conn.execute("SELECT * FROM contract WHERE guid = ? LIMIT 1", (guid,)).fetchone()
        if r is None:
            return None
        return self._row_to_contract(r)

    def count_contracts(self, *, enriched: Optional[bool] = None) -> int:
        if enriched is None:
            row = self.conn.execute("SELECT COUNT(*) AS n FROM contract").fetchone()
        else:
            row = self.conn.execute(
                "SELECT COUNT(*) AS n FROM contract WHERE enriched = ?", (1 if enriched else 0,)
            ).fetchone()
        return int(row["n"] or 0)

    def list_unenriched_guids(self, *, limit: Optional[int] = None) -> List[str]:
        sql = "SELECT guid FROM contract WHERE enriched = 0 ORDER BY date, id"
        params: list[Any] = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(max(1, int(limit)))
        return [str(r["guid"]) for r in self.conn.execute(sql, params).fetchall()]

    def apply_enrichment(
        self,
        *,
        guid: str,
        user_comment: str,
        stop_reason: str,
        item_raw: str,
        lessor: Optional[str] = None,
        lessee: Optional[str] = None,
        ogrn: Optional[str] = None,
        inn: Optional[str] = None,
    ) -> bool:
        """Store detail data and flip `enriched` to 1. No-op for already enriched rows."""

        sets = ["user_comment = ?", "stop_reason = ?", "item_raw = ?", "enriched = 1", "updated_at = ?"]
        params: list[Any] = [user_comment, stop_reason, item_raw, self._utc_now_iso()]
        for column, value in (("lessor", lessor), ("lessee", lessee), ("ogrn", ogrn), ("inn", inn)):
            if value:
                sets.append(f"{column} = ?")
                params.append(value)
        params.append(guid)

        cur = self.conn.execute(
            f"UPDATE contract SET {', '.join(sets)} WHERE guid = ? AND enriched = 0",
            params,
        )
        self.conn.commit()
        return bool(cur.rowcount and int(cur.rowcount) > 0)

    # Sync watermark

    def get_watermark(self) -> Optional[date]:
        row = self.conn.execute(
            "SELECT value FROM sync_state WHERE key = ? LIMIT 1", (WATERMARK_KEY,)
        ).fetchone()
        if not row or not row["value"]:
            return None
        return date.fromisoformat(str(row["value"]))

    def set_watermark(self, day: date) -> None:
        self.conn.execute(
            """
            INSERT INTO sync_state (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (WATERMARK_KEY, day.isoformat(), self._utc_now_iso()),
        )
        self.conn.commit()

    # Tick lock

    def claim_tick_lock(
        self,
        name: str,
        *,
        pid: int,
        ttl_seconds: int,
        now: Optional[datetime] = None,
    ) -> TickLock:
        """Claim the lock guarding a sync+enrich tick.

        A lock whose heartbeat is older than `ttl_seconds` is taken over.
        """

        now = now or _utc_now()
        stamp = now.strftime(DATE_FORMAT)
        cutoff = now - timedelta(seconds=ttl_seconds)

        self.conn.execute("BEGIN IMMEDIATE")
        try:
            row = self.conn.execute(
                "SELECT pid, heartbeat_at FROM tick_lock WHERE name = ?", (name,)
            ).fetchone()
            holder = int(row["pid"]) if row else None
            if holder is not None and holder != pid:
                if datetime.strptime(row["heartbeat_at"], DATE_FORMAT) > cutoff:
                    self.conn.rollback()
                    return TickLock(name=name, pid=holder, acquired=False, heartbeat_at=row["heartbeat_at"])
            self.conn.execute(
                """
                INSERT INTO tick_lock (name, pid, heartbeat_at) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET pid = excluded.pid, heartbeat_at = excluded.heartbeat_at
                """,
                (name, pid, stamp),
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise

        taken_over = holder is not None and holder != pid
        return TickLock(name=name, pid=pid, acquired=True, taken_over=taken_over, heartbeat_at=stamp)

    def touch_tick_lock(self, name: str, *, pid: int, now: Optional[datetime] = None) -> bool:
        cur = self.conn.execute(
            "UPDATE tick_lock SET heartbeat_at = ? WHERE name = ? AND pid = ?",
            ((now or _utc_now()).strftime(DATE_FORMAT), name, pid),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def release_tick_lock(self, name: str, *, pid: int) -> bool:
        cur = self.conn.execute("DELETE FROM tick_lock WHERE name = ? AND pid = ?", (name, pid))
        self.conn.commit()
        return cur.rowcount > 0

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
