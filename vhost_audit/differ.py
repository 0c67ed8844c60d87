from __future__ import annotations

import hashlib
import logging
from typing import List, Optional, Sequence

from .errors import FingerprintMismatchError
from .models import ProbeResult, Regression


def fingerprint(config_text: str) -> str:
    """SHA-256 hex digest of the raw configuration bytes."""
    raw = config_text.encode("utf-8", errors="surrogateescape")
    return hashlib.sha256(raw).hexdigest()


def verify_fingerprint(actual: str, expected: str) -> None:
    if actual != expected:
        raise FingerprintMismatchError(expected=expected, actual=actual)


class DiffEngine:
    """Compares a fresh probe pass with a baseline by (server_name, port).

    Endpoints present on only one side are not reported, and a pair that
    occurs more than once on either side can yield repeated regressions.
    """

    def __init__(self, logger: Optional[logging.Logger | logging.LoggerAdapter] = None) -> None:
        self.log = logger or logging.getLogger(__name__)

    def diff(self, current: Sequence[ProbeResult], baseline: Sequence[ProbeResult]) -> List[Regression]:
        self.log.debug("diffing state: %d statuses, %d loaded", len(current), len(baseline))
        regressions: List[Regression] = []
        for cur in current:
            for old in baseline:
                if cur.pair != old.pair:
                    continue
                self.log.debug(
                    "found server status %s:%s orig=%s new=%s message=%s",
                    cur.server_name, cur.port, old.status_code, cur.status_code, cur.status_message,
                )
                if cur.status_code != old.status_code:
                    regressions.append(
                        Regression(
                            server_name=cur.server_name,
                            port=cur.port,
                            old_status_code=old.status_code,
                            new_status_code=cur.status_code,
                            status_message=cur.status_message,
                        )
                    )
        if regressions:
            self.log.debug("found %d diffs", len(regressions))
        else:
            self.log.debug("no diffs found")
        return regressions
