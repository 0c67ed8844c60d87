from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Set

from .models import EndpointGroup

SUPPORTED_PORTS = ("80", "443")
SENTINEL_NAMES = {"", "on", "_", "localhost"}


class EndpointExtractor:
    """Line scanner for nginx ``server`` blocks.

    Only ``server {`` openers, ``server_name`` and ``listen`` directives and
    closing braces are recognised. Brace nesting is not tracked and directives
    wrapped over several lines are not reassembled; the accumulator is reset
    only by the next ``server {`` line.
    """

    block_open = "server {"
    server_name_re = re.compile(r"server_name\s+([^;]+);")
    listen_re = re.compile(r"listen\s+([^;]+);")
    port_re = re.compile(r"[+-]?[0-9]+")

    def __init__(self, logger: Optional[logging.Logger | logging.LoggerAdapter] = None) -> None:
        self.log = logger or logging.getLogger(__name__)

    def extract(self, config_text: str, ignore_names: Iterable[str] = ()) -> List[EndpointGroup]:
        ignored: Set[str] = set(ignore_names)
        names: List[str] = []
        ports: List[str] = []
        blocks: List[EndpointGroup] = []

        for line in config_text.split("\n"):
            if self.block_open in line:
                names, ports = [], []

            m = self.server_name_re.search(line)
            if m:
                for token in m.group(1).split():
                    if token in SENTINEL_NAMES or token in ignored:
                        continue
                    if token not in names:
                        names.append(token)

            m = self.listen_re.search(line)
            if m:
                for token in m.group(1).split():
                    if self.port_re.fullmatch(token) and token not in ports:
                        ports.append(token)

            if "}" in line and names and ports:
                blocks.append(EndpointGroup(names=tuple(names), ports=tuple(ports)))

        unique = self.dedupe(blocks)
        self.log.debug("parsed config: %d server blocks, %d unique", len(blocks), len(unique))
        return unique

    @staticmethod
    def dedupe(groups: Iterable[EndpointGroup]) -> List[EndpointGroup]:
        return list(dict.fromkeys(groups))

    def filter_supported(self, groups: Iterable[EndpointGroup]) -> List[EndpointGroup]:
        """Keep groups listening on at least one of 80/443."""
        kept = [g for g in groups if any(p in SUPPORTED_PORTS for p in g.ports)]
        self.log.debug("filtered to %d server blocks on supported ports", len(kept))
        return kept


def extract_endpoints(
    config_text: str,
    ignore_names: Iterable[str] = (),
    logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
) -> List[EndpointGroup]:
    extractor = EndpointExtractor(logger)
    return extractor.filter_supported(extractor.extract(config_text, ignore_names))
