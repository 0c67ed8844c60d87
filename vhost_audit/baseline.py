from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from . import fileio
from .errors import BaselineParseError
from .models import Baseline, ProbeResult


class BaselineStore:
    """Reads and writes the whole baseline document in one go.

    A save replaces whatever was there before; ``-`` targets stdin/stdout.
    """

    def __init__(self, logger: Optional[logging.Logger | logging.LoggerAdapter] = None) -> None:
        self.log = logger or logging.getLogger(__name__)

    def save(
        self,
        path: str | Path,
        config_hash: str,
        results: Sequence[ProbeResult],
        created_at: Optional[datetime] = None,
    ) -> Baseline:
        baseline = Baseline(
            created_at=created_at or datetime.now(timezone.utc),
            config_hash=config_hash,
            server_statuses=list(results),
        )
        self.log.debug("writing state file %s (%d statuses)", path, len(baseline.server_statuses))
        fileio.write_text(path, json.dumps(baseline.model_dump(mode="json"), indent=2) + "\n")
        return baseline

    def load(self, path: str | Path) -> Baseline:
        self.log.debug("loading state file %s", path)
        text = fileio.read_text(path)
        try:
            baseline = Baseline.model_validate_json(text)
        except (ValidationError, UnicodeError) as e:
            raise BaselineParseError(f"invalid state file {path}: {e}") from e
        self.log.debug("loaded state file %s (%d statuses)", path, len(baseline.server_statuses))
        return baseline
