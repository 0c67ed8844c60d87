from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from pydantic import BaseModel, Field

from .models import Baseline, Regression


class RunRecord(BaseModel):
    """What one index or diff run saw."""

    mode: str
    config_path: str
    config_hash: str
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    statuses: int = 0
    regressions: List[Regression] = Field(default_factory=list)


class AuditTrail:
    """Append-only JSONL history of runs.

    Every line is ``{"hash", "prev", "run"}``. ``prev`` is the hash on the
    file's last line at append time, so the file alone carries the chain and
    editing or dropping an earlier line breaks it.
    """

    def __init__(self, path: str | Path = "vhost-audit.audit.jsonl") -> None:
        self.path = Path(path)

    @staticmethod
    def _hash(prev: str, run: dict) -> str:
        body = json.dumps({"prev": prev, "run": run}, sort_keys=True)
        return hashlib.sha256(body.encode("utf-8")).hexdigest()

    def _lines(self) -> Iterator[dict]:
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    yield json.loads(line)

    def last_hash(self) -> str:
        last = ""
        for entry in self._lines():
            last = entry.get("hash", "")
        return last

    def append(self, record: RunRecord) -> str:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        prev = self.last_hash()
        run = record.model_dump(mode="json")
        h = self._hash(prev, run)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps({"hash": h, "prev": prev, "run": run}) + "\n")
        return h

    def record_index(self, config_path: str, baseline: Baseline) -> str:
        return self.append(RunRecord(
            mode="index",
            config_path=config_path,
            config_hash=baseline.config_hash,
            statuses=len(baseline.server_statuses),
        ))

    def record_diff(
        self,
        config_path: str,
        config_hash: str,
        statuses: int,
        regressions: Optional[Sequence[Regression]] = None,
    ) -> str:
        return self.append(RunRecord(
            mode="diff",
            config_path=config_path,
            config_hash=config_hash,
            statuses=statuses,
            regressions=list(regressions or []),
        ))

    def runs(self) -> List[RunRecord]:
        return [RunRecord.model_validate(entry["run"]) for entry in self._lines()]

    def verify(self) -> bool:
        """Recompute every hash and check each ``prev`` link."""
        prev = ""
        for entry in self._lines():
            if entry.get("prev") != prev or self._hash(prev, entry.get("run", {})) != entry.get("hash"):
                return False
            prev = entry["hash"]
        return True
