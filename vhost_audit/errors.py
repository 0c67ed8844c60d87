from __future__ import annotations

from typing import List


class AuditError(Exception):
    """Base class for failures that abort an index or diff run."""


class ConfigError(AuditError, ValueError):
    pass


class BaselineParseError(AuditError, ValueError):
    pass


class FingerprintMismatchError(AuditError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"config hash mismatch: {actual} != {expected}")
        self.expected = expected
        self.actual = actual


class RegressionsFound(AuditError):
    """Raised after a diff run that found status code drift.

    The full regression list is attached so callers can report every finding.
    """

    def __init__(self, regressions: List) -> None:
        super().__init__(f"found {len(regressions)} diffs")
        self.regressions = list(regressions)
