from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass
class JobResult:
    job: str
    started_at: str
    status: str = "ok"
    ok: bool = True
    finished_at: Optional[str] = None
    days: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def bump(self, key: str, n: int = 1) -> None:
        self.counts[key] = int(self.counts.get(key, 0)) + n

    def fail(self, message: str, *, status: str = "failed") -> None:
        self.ok = False
        self.status = status
        self.errors.append(message)

    def finish(self) -> "JobResult":
        self.finished_at = utc_now_iso()
        return self

    def to_dict(self) -> dict:
        return {
            "job": self.job,
            "ok": self.ok,
            "status": self.status,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "days": list(self.days),
            "counts": dict(self.counts),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
