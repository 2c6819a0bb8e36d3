"""
Custom exception hierarchy for property reconciliation.

Only two conditions are raised as exceptions: a single source failing
(always caught by the pipeline and turned into data) and every source
failing (surfaced to the caller on request). Field conflicts and
malformed free text are never exceptions.
"""

from __future__ import annotations


class PropertyReconciliationError(Exception):
    """Base exception for all reconciliation failures."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)


class SourceUnavailableError(PropertyReconciliationError):
    """One provider failed, returned nothing, or timed out."""

    def __init__(self, source: str, message: str, details: dict | None = None):
        self.source = source
        super().__init__("SOURCE_UNAVAILABLE", message, {"source": source, **(details or {})})


class NoDataFoundError(PropertyReconciliationError):
    """Every requested provider failed — no unified record can be built."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__("NO_DATA_FOUND", message, {"errors": self.errors})
