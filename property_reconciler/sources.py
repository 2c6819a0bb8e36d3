"""
Source adapters — the seam between transport and reconciliation.

Scraping and HTTP live outside this package. An adapter only has to turn
"fetch facts for this address" into a SourceFetchResult. It may raise
SourceUnavailableError (or anything else); the pipeline captures either
as data, never as a crash.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, Protocol, runtime_checkable

from .models import DataSource, SourceFactRecord, SourceFetchResult, is_absent

# ─── Confidence Weights ─────────────────────────────────────────────
# (critical ×3, important ×2, bonus ×1) — presence-weighted completeness
# of one provider's payload.

_CONFIDENCE_FIELDS: dict[DataSource, tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]] = {
    DataSource.ZILLOW: (
        ("address", "bedrooms", "bathrooms", "sqft", "year_built"),
        ("price", "zestimate", "lot_size", "property_type"),
        ("walk_score", "schools", "tax_history", "price_history"),
    ),
    DataSource.REDFIN: (
        ("address", "bedrooms", "bathrooms", "sqft", "year_built"),
        ("price", "estimate", "lot_size", "property_type"),
        ("tax_info", "hoa", "features"),
    ),
    DataSource.COUNTY_ASSESSOR: (
        ("parcel_number", "assessed_value", "year_built", "sqft"),
        ("zoning", "lot_size", "bedrooms", "bathrooms", "tax_amount"),
        ("construction", "foundation", "heating", "cooling", "permit_history"),
    ),
    DataSource.GOOGLE_GROUNDING: (
        ("address", "year_built", "sqft", "zoning"),
        ("bedrooms", "bathrooms", "estimated_value", "lot_size"),
        ("schools", "walk_score", "flood_zone", "school_district"),
    ),
}

# County records are the authoritative filing, so they earn a small boost
_SOURCE_BOOST: dict[DataSource, float] = {DataSource.COUNTY_ASSESSOR: 1.1}


def score_confidence(source: DataSource, payload: Mapping[str, Any]) -> float:
    """Score a provider payload in [0, 1] by which key fields it populated."""
    critical, important, bonus = _CONFIDENCE_FIELDS[source]

    score = 0
    max_score = 0
    for weight, names in ((3, critical), (2, important), (1, bonus)):
        for name in names:
            max_score += weight
            if not is_absent(payload.get(name)):
                score += weight

    boosted = (score / max_score) * _SOURCE_BOOST.get(source, 1.0)
    return min(round(boosted, 2), 1.0)


def build_fact_record(
    source: DataSource,
    payload: Mapping[str, Any],
    confidence: float | None = None,
    url: str | None = None,
) -> SourceFactRecord:
    """Wrap a parsed provider payload, scoring its confidence when none was supplied."""
    if confidence is None:
        confidence = score_confidence(source, payload)
    return SourceFactRecord(source=source, payload=dict(payload), confidence=confidence, url=url)


# ─── Adapter Protocol ───────────────────────────────────────────────


@runtime_checkable
class SourceAdapter(Protocol):
    """Anything with a `source` tag and an async `fetch(address)`."""

    source: DataSource

    async def fetch(self, address: str) -> SourceFetchResult: ...


class StaticSourceAdapter:
    """Serves an already-parsed payload (or a canned failure) as if fetched.

    Used by the HTTP API, where callers post provider payloads they scraped
    themselves, and by tests.
    """

    def __init__(
        self,
        source: DataSource,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        confidence: float | None = None,
        url: str | None = None,
        error: str | None = None,
    ):
        self.source = DataSource(source)
        self.payload = dict(payload) if payload is not None else None
        self.confidence = confidence
        self.url = url
        self.error = error

    async def fetch(self, address: str) -> SourceFetchResult:
        if self.error is not None or not self.payload:
            return SourceFetchResult(
                source=self.source,
                success=False,
                error=self.error or f"No data returned by {self.source.value}",
                url=self.url,
            )

        record = build_fact_record(self.source, self.payload, self.confidence, self.url)
        return SourceFetchResult(source=self.source, success=True, record=record, url=self.url)
