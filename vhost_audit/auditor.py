from __future__ import annotations

import json
import logging
from typing import List, Optional

from . import fileio
from .baseline import BaselineStore
from .config import AuditConfig
from .differ import DiffEngine, fingerprint, verify_fingerprint
from .errors import RegressionsFound
from .extractor import EndpointExtractor
from .models import Baseline, EndpointGroup, ProbeResult, Regression
from .prober import ProbeEngine


class VhostAuditor:
    """Runs the index and diff modes over one nginx configuration."""

    def __init__(
        self,
        config: AuditConfig,
        logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
        engine: Optional[ProbeEngine] = None,
        store: Optional[BaselineStore] = None,
    ) -> None:
        self.config = config
        self.log = logger or logging.getLogger(__name__)
        self.extractor = EndpointExtractor(self.log)
        self.engine = engine or ProbeEngine(timeout=config.timeout, concurrency=config.concurrency, logger=self.log)
        self.store = store or BaselineStore(self.log)
        self.differ = DiffEngine(self.log)
        # set by the last index or diff run
        self.config_hash: Optional[str] = None
        self.results: List[ProbeResult] = []

    def load_config(self) -> str:
        self.log.debug("loading config file %s", self.config.config_path)
        return fileio.read_text(self.config.config_path)

    def extract(self, config_text: str) -> List[EndpointGroup]:
        groups = self.extractor.extract(config_text, self.config.ignore_servers)
        return self.extractor.filter_supported(groups)

    def probe(self, groups: List[EndpointGroup]) -> List[ProbeResult]:
        return self.engine.probe(groups)

    def index(self) -> Baseline:
        text = self.load_config()
        groups = self.extract(text)
        config_hash = self.config_hash = fingerprint(text)
        self.log.debug("hashed config: %s", config_hash)
        results = self.results = self.probe(groups)
        return self.store.save(self.config.state_path, config_hash, results)

    def diff(self) -> List[Regression]:
        """Probe again and compare with the stored baseline.

        Raises FingerprintMismatchError before probing when the configuration
        changed since the baseline and verification is on, and
        RegressionsFound after every regression has been logged.
        """
        text = self.load_config()
        groups = self.extract(text)
        baseline = self.store.load(self.config.state_path)
        config_hash = self.config_hash = fingerprint(text)
        if self.config.verify_hash:
            verify_fingerprint(config_hash, baseline.config_hash)
            self.log.debug("config hash matches")
        else:
            self.log.warning("skipping config hash verification")

        results = self.results = self.probe(groups)
        regressions = self.differ.diff(results, baseline.server_statuses)
        if self.config.report_path:
            self.write_report(regressions)
        if regressions:
            self.log.error("found %d diffs", len(regressions))
            for r in regressions:
                self.log.error(
                    "server status changed: %s:%s %s -> %s (%s)",
                    r.server_name, r.port, r.old_status_code, r.new_status_code, r.status_message,
                )
            raise RegressionsFound(regressions)
        self.log.debug("no diffs found")
        return regressions

    def write_report(self, regressions: List[Regression]) -> None:
        doc = {"count": len(regressions), "diffs": [r.model_dump(mode="json") for r in regressions]}
        fileio.write_text(self.config.report_path, json.dumps(doc, indent=2) + "\n")
