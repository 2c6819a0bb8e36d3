"""
Field reconciler — picks one value per field from competing providers.

Rules:
  1. Null candidates are dropped before anything else.
  2. Position in the field's priority list wins; providers missing from the
     list rank after every listed one.
  3. Confidence only breaks ties within the same priority rank.

So a low-confidence county record beats a high-confidence listing site for
parcel-level facts. That is intentional: authority dominates confidence.

Conflict detection runs independently of resolution. Providers that
disagree beyond tolerance produce a ConflictRecord even though a winner
was already chosen, so the caller can see what was overruled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from .config import DEFAULT_FIELD_MAPPING, DEFAULT_PRIORITY, FieldPriorityTable, FieldSpec
from .models import (
    CandidateValue,
    ConflictRecord,
    DataQuality,
    ResolutionStrategy,
    ResolvedField,
    SourceFactRecord,
    UnifiedPropertyRecord,
)
from .normalize import coerce_number, parse_area, to_square_feet

logger = logging.getLogger(__name__)

# Relative deviation from the group mean tolerated before numbers "disagree"
NUMERIC_TOLERANCE = 0.05

# Completeness above this percentage earns the "scraped" quality tier
SCRAPED_THRESHOLD = 70


# ─── Completeness Checklist ─────────────────────────────────────────

COMPLETENESS_CHECKLIST: tuple[tuple[str, Callable[[UnifiedPropertyRecord], Any]], ...] = (
    ("latitude", lambda r: r.location.lat),
    ("longitude", lambda r: r.location.lng),
    ("year_built", lambda r: r.details.year_built),
    ("living_area", lambda r: to_square_feet(r.details.living_area)),
    ("bedrooms", lambda r: r.details.bedrooms),
    ("bathrooms", lambda r: r.details.bathrooms),
    ("lot_size", lambda r: to_square_feet(r.details.lot_size)),
    ("property_type", lambda r: r.details.property_type),
    ("zoning", lambda r: r.regulatory.zoning),
    ("parcel_number", lambda r: r.regulatory.parcel_number),
    ("assessed_value", lambda r: r.valuation.assessed),
    ("market_estimate", lambda r: r.valuation.market_estimate),
    ("tax_annual", lambda r: r.valuation.tax_annual),
    ("walk_score", lambda r: r.neighborhood.walk_score),
    ("street", lambda r: r.address.street),
    ("city", lambda r: r.address.city),
    ("state", lambda r: r.address.state),
    ("zip", lambda r: r.address.zip),
)


@dataclass
class ReconciledFields:
    """Winners for every mapped field, plus the conflicts found on the way."""

    values: dict[str, ResolvedField] = field(default_factory=dict)
    conflicts: list[ConflictRecord] = field(default_factory=list)

    def value(self, name: str) -> Any:
        resolved = self.values.get(name)
        return resolved.value if resolved else None


class FieldReconciler:
    """Resolves target fields across provider records.

    Usage:
        reconciler = FieldReconciler()
        reconciled = reconciler.reconcile(records)
        reconciled.value("year_built")      # → 1998
        reconciled.conflicts                # → [ConflictRecord(...)]
    """

    def __init__(
        self,
        priority: FieldPriorityTable = DEFAULT_PRIORITY,
        mapping: Mapping[str, FieldSpec] = DEFAULT_FIELD_MAPPING,
    ):
        self.priority = priority
        self.mapping = mapping

    # ─── Whole-Record Reconciliation ────────────────────────────────

    def reconcile(self, records: Iterable[SourceFactRecord]) -> ReconciledFields:
        records = list(records)
        result = ReconciledFields()

        for name in self.mapping:
            resolved, conflict = self.track(name, self.collect(name, records))
            result.values[name] = resolved
            if conflict is not None:
                result.conflicts.append(conflict)

        logger.info(
            "Reconciled %d fields from %d source(s): %d conflict(s)",
            len(result.values), len(records), len(result.conflicts),
        )
        return result

    def collect(self, name: str, records: Iterable[SourceFactRecord]) -> list[CandidateValue]:
        """Pull one target field out of every record that maps it."""
        spec = self.mapping[name]
        candidates: list[CandidateValue] = []

        for record in records:
            path = spec.paths.get(record.source)
            if path is None:
                continue
            value = _coerce(record.get(path), spec.kind)
            candidates.append(
                CandidateValue(source=record.source, value=value, confidence=record.confidence)
            )
        return candidates

    # ─── Single-Field Operations ────────────────────────────────────

    def resolve_field(self, name: str, candidates: Iterable[CandidateValue]) -> ResolvedField:
        ranked = self._rank(name, candidates)
        if not ranked:
            return ResolvedField()

        best = ranked[0]
        return ResolvedField(value=best.value, source=best.source, confidence=best.confidence)

    def track(
        self, name: str, candidates: Iterable[CandidateValue]
    ) -> tuple[ResolvedField, ConflictRecord | None]:
        """Resolve a field and, when providers disagree, describe the disagreement."""
        ranked = self._rank(name, candidates)
        if not ranked:
            return ResolvedField(), None

        best = ranked[0]
        resolved = ResolvedField(value=best.value, source=best.source, confidence=best.confidence)

        spec = self.mapping.get(name)
        tolerance = spec.tolerance if spec is not None else NUMERIC_TOLERANCE
        if len(ranked) < 2 or not self.has_conflict([c.value for c in ranked], tolerance):
            return resolved, None

        order = self.priority.order_for(name)
        if self._rank_index(order, ranked[0]) < self._rank_index(order, ranked[1]):
            strategy = ResolutionStrategy.HIGHEST_PRIORITY
        else:
            strategy = ResolutionStrategy.HIGHEST_CONFIDENCE

        conflict = ConflictRecord(
            field=name,
            values=ranked,
            resolved=best.value,
            resolution=strategy,
        )
        logger.debug(
            "Conflict on %s: %s → kept %r from %s (%s)",
            name,
            ", ".join(f"{c.source.value}={c.value!r}" for c in ranked),
            best.value, best.source.value, strategy.value,
        )
        return resolved, conflict

    @staticmethod
    def has_conflict(values: Iterable[Any], tolerance: float = NUMERIC_TOLERANCE) -> bool:
        """Numbers: any value more than `tolerance` (5%) from the mean.

        Text: more than one distinct case-insensitive value. Anything else
        (lists, mixed types) never conflicts.
        """
        present = [v for v in values if v is not None]
        if len(present) <= 1:
            return False

        if all(_is_number(v) for v in present):
            mean = sum(present) / len(present)
            if mean == 0:
                return any(v != 0 for v in present)
            return any(abs(v - mean) / abs(mean) > tolerance for v in present)

        if all(isinstance(v, str) for v in present):
            return len({v.strip().lower() for v in present}) > 1

        return False

    # ─── Ranking ────────────────────────────────────────────────────

    def _rank(self, name: str, candidates: Iterable[CandidateValue]) -> list[CandidateValue]:
        order = self.priority.order_for(name)
        present = [c for c in candidates if c.value is not None]
        return sorted(present, key=lambda c: (self._rank_index(order, c), -c.confidence))

    @staticmethod
    def _rank_index(order: tuple, candidate: CandidateValue) -> int:
        try:
            return order.index(candidate.source)
        except ValueError:
            return len(order)


# ─── Record-Level Scoring ───────────────────────────────────────────


def compute_completeness(record: UnifiedPropertyRecord) -> int:
    """Percentage of the key-field checklist populated in the final record."""
    populated = sum(
        1 for _, getter in COMPLETENESS_CHECKLIST if _is_populated(getter(record))
    )
    return round(populated / len(COMPLETENESS_CHECKLIST) * 100)


def data_quality(completeness: int) -> DataQuality:
    return DataQuality.SCRAPED if completeness > SCRAPED_THRESHOLD else DataQuality.ESTIMATED


# ─── Helpers ────────────────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_populated(value: Any) -> bool:
    if value is None or value == "":
        return False
    if _is_number(value) and value == 0:
        return False
    return True


def _coerce(value: Any, kind: str) -> Any:
    if value is None:
        return None
    if kind == "number":
        return coerce_number(value)
    if kind == "area":
        return to_square_feet(parse_area(value))
    if kind == "text":
        text = str(value).strip()
        return text or None
    return value
