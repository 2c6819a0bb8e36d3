"""
Test suite for field reconciliation, conflict detection and completeness.

Pure functions only — no adapters, no network, no event loop.

Run: pytest tests/ -v
"""

from __future__ import annotations

from typing import Any

import pytest

from property_reconciler.config import DEFAULT_FIELD_MAPPING, FieldPriorityTable
from property_reconciler.models import (
    CandidateValue,
    DataQuality,
    DataSource,
    ResolutionStrategy,
    SourceFactRecord,
)
from property_reconciler.pipeline import PropertyReconciliationPipeline
from property_reconciler.reconciler import FieldReconciler, compute_completeness, data_quality
from property_reconciler.sources import build_fact_record, score_confidence

ZILLOW = DataSource.ZILLOW
REDFIN = DataSource.REDFIN
COUNTY = DataSource.COUNTY_ASSESSOR
GROUNDING = DataSource.GOOGLE_GROUNDING

ADDRESS = "1100 Congress Ave, Austin, TX 78701"

ZILLOW_PAYLOAD: dict[str, Any] = {
    "address": ADDRESS,
    "zestimate": 602300,
    "bedrooms": 3,
    "bathrooms": 2.5,
    "sqft": 1850,
    "lot_size": "0.18 acres",
    "year_built": 1995,
    "property_type": "Single Family Residence",
    "walk_score": 88,
    "latitude": 30.2747,
    "longitude": -97.7404,
}

COUNTY_PAYLOAD: dict[str, Any] = {
    "parcel_number": "0203-1105-0712",
    "zoning": "SF-3",
    "assessed_value": 571200,
    "tax_amount": 11340,
    "lot_size": "7,841 sq ft",
    "year_built": 1998,
    "sqft": "1,920",
    "bedrooms": 3,
    "bathrooms": 2,
}


def _candidate(source: DataSource, value: Any, confidence: float) -> CandidateValue:
    return CandidateValue(source=source, value=value, confidence=confidence)


def _record(source: DataSource, confidence: float = 0.5, **payload: Any) -> SourceFactRecord:
    return SourceFactRecord(source=source, payload=payload, confidence=confidence)


# ═══════════════════════════════════════════════════════════════════════
# RESOLUTION
# ═══════════════════════════════════════════════════════════════════════


class TestResolveField:
    """Authority dominates confidence."""

    def test_county_beats_more_confident_listing(self):
        reconciler = FieldReconciler()
        resolved = reconciler.resolve_field("year_built", [
            _candidate(ZILLOW, 1995, 0.9),
            _candidate(COUNTY, 1998, 0.6),
        ])
        assert resolved.value == 1998
        assert resolved.source == COUNTY
        assert resolved.confidence == pytest.approx(0.6)

    def test_listing_site_wins_market_fields(self):
        reconciler = FieldReconciler()
        resolved = reconciler.resolve_field("price", [
            _candidate(COUNTY, 500000, 1.0),
            _candidate(ZILLOW, 615000, 0.3),
        ])
        assert resolved.value == 615000

    def test_unlisted_source_ranks_after_listed(self):
        reconciler = FieldReconciler()
        resolved = reconciler.resolve_field("transit_score", [
            _candidate(REDFIN, 10, 0.99),
            _candidate(ZILLOW, 50, 0.1),
        ])
        assert resolved.source == ZILLOW

    def test_confidence_breaks_tie_between_unlisted_sources(self):
        reconciler = FieldReconciler()
        resolved = reconciler.resolve_field("legal_description", [
            _candidate(ZILLOW, "Lot 4", 0.5),
            _candidate(REDFIN, "Lot 4 Block B", 0.8),
        ])
        assert resolved.value == "Lot 4 Block B"

    def test_unknown_field_uses_default_order(self):
        reconciler = FieldReconciler()
        resolved = reconciler.resolve_field("something_new", [
            _candidate(GROUNDING, "g", 0.9),
            _candidate(REDFIN, "r", 0.1),
        ])
        # default: county, zillow, redfin, grounding
        assert resolved.value == "r"

    def test_null_candidates_are_dropped(self):
        reconciler = FieldReconciler()
        resolved = reconciler.resolve_field("year_built", [
            _candidate(COUNTY, None, 0.9),
            _candidate(ZILLOW, 1995, 0.4),
        ])
        assert resolved.value == 1995

    def test_no_candidates_is_unresolved(self):
        reconciler = FieldReconciler()
        resolved = reconciler.resolve_field("year_built", [_candidate(COUNTY, None, 0.9)])
        assert resolved.value is None
        assert resolved.source is None
        assert resolved.confidence == 0
        assert not resolved.resolved

    def test_injected_priority_table(self):
        table = FieldPriorityTable(orders={"year_built": (ZILLOW, COUNTY)})
        reconciler = FieldReconciler(priority=table)
        resolved = reconciler.resolve_field("year_built", [
            _candidate(COUNTY, 1998, 0.9),
            _candidate(ZILLOW, 1995, 0.1),
        ])
        assert resolved.value == 1995

    def test_priority_table_from_json(self, tmp_path):
        path = tmp_path / "priority.json"
        path.write_text(
            '{"zoning": ["google-grounding", "county-assessor"], "default": ["redfin"]}',
            encoding="utf-8",
        )
        table = FieldPriorityTable.from_json(path)
        assert table.order_for("zoning") == (GROUNDING, COUNTY)
        assert table.order_for("anything") == (REDFIN,)


# ═══════════════════════════════════════════════════════════════════════
# CONFLICT DETECTION
# ═══════════════════════════════════════════════════════════════════════


class TestHasConflict:
    def test_numbers_within_five_percent_agree(self):
        assert FieldReconciler.has_conflict([300000, 298000]) is False

    def test_numbers_beyond_five_percent_conflict(self):
        assert FieldReconciler.has_conflict([300000, 340000]) is True

    def test_just_under_tolerance(self):
        # mean 105, max deviation 5 → 4.76%
        assert FieldReconciler.has_conflict([100, 110]) is False

    def test_text_is_case_insensitive(self):
        assert FieldReconciler.has_conflict(["SF-3", "sf-3 "]) is False

    def test_distinct_text_conflicts(self):
        assert FieldReconciler.has_conflict(["SF-3", "SF-2"]) is True

    def test_single_value_never_conflicts(self):
        assert FieldReconciler.has_conflict([300000, None]) is False

    def test_mixed_types_never_conflict(self):
        assert FieldReconciler.has_conflict(["3", 3]) is False

    def test_lists_never_conflict(self):
        assert FieldReconciler.has_conflict([[1], [2]]) is False

    def test_booleans_are_not_numbers(self):
        assert FieldReconciler.has_conflict([True, False]) is False

    def test_zero_mean(self):
        assert FieldReconciler.has_conflict([0, 0]) is False
        assert FieldReconciler.has_conflict([-1, 1]) is True

    def test_zero_tolerance_flags_any_difference(self):
        assert FieldReconciler.has_conflict([1998, 1995], tolerance=0.0) is True
        assert FieldReconciler.has_conflict([1998, 1998], tolerance=0.0) is False


class TestTrack:
    def test_priority_win_emits_one_conflict(self):
        reconciler = FieldReconciler()
        reconciled = reconciler.reconcile([
            _record(COUNTY, 0.6, year_built=1998),
            _record(ZILLOW, 0.9, year_built=1995),
        ])
        assert reconciled.value("year_built") == 1998
        assert len(reconciled.conflicts) == 1

        conflict = reconciled.conflicts[0]
        assert conflict.field == "year_built"
        assert conflict.resolved == 1998
        assert conflict.resolution == ResolutionStrategy.HIGHEST_PRIORITY
        assert {v.source for v in conflict.values} == {COUNTY, ZILLOW}

    def test_confidence_win_is_labelled(self):
        reconciler = FieldReconciler()
        _, conflict = reconciler.track("legal_description", [
            _candidate(ZILLOW, "Lot 4", 0.5),
            _candidate(REDFIN, "Lot 9", 0.8),
        ])
        assert conflict is not None
        assert conflict.resolution == ResolutionStrategy.HIGHEST_CONFIDENCE

    def test_assessed_values_close_enough(self):
        reconciler = FieldReconciler()
        reconciled = reconciler.reconcile([
            _record(COUNTY, assessed_value=300000),
            _record(REDFIN, tax_info={"assessed_value": 298000}),
        ])
        assert reconciled.value("assessed_value") == 300000
        assert reconciled.conflicts == []

    def test_assessed_values_far_apart(self):
        reconciler = FieldReconciler()
        reconciled = reconciler.reconcile([
            _record(COUNTY, assessed_value=300000),
            _record(REDFIN, tax_info={"assessed_value": 340000}),
        ])
        assert [c.field for c in reconciled.conflicts] == ["assessed_value"]

    def test_lot_size_compared_in_square_feet(self):
        reconciler = FieldReconciler()
        reconciled = reconciler.reconcile([
            _record(COUNTY, lot_size="7,841 sq ft"),
            _record(ZILLOW, lot_size="0.18 acres"),
        ])
        assert reconciled.value("lot_size") == pytest.approx(7841)
        assert reconciled.conflicts == []

    def test_lot_size_disagreement(self):
        reconciler = FieldReconciler()
        reconciled = reconciler.reconcile([
            _record(COUNTY, lot_size="7,841 sq ft"),
            _record(ZILLOW, lot_size="0.25 acres"),
        ])
        assert [c.field for c in reconciled.conflicts] == ["lot_size"]

    def test_single_source_no_conflict(self):
        reconciler = FieldReconciler()
        reconciled = reconciler.reconcile([_record(REDFIN, 0.7, year_built=2001)])
        assert reconciled.value("year_built") == 2001
        assert reconciled.conflicts == []


class TestCollect:
    def test_numeric_strings_are_coerced(self):
        reconciler = FieldReconciler()
        candidates = reconciler.collect("sqft", [_record(COUNTY, sqft="1,920")])
        assert candidates[0].value == pytest.approx(1920.0)

    def test_nested_paths(self):
        reconciler = FieldReconciler()
        candidates = reconciler.collect(
            "tax_amount", [_record(REDFIN, tax_info={"annual_amount": 9100})]
        )
        assert candidates[0].value == pytest.approx(9100.0)

    def test_unmapped_sources_are_skipped(self):
        reconciler = FieldReconciler()
        candidates = reconciler.collect("parcel_number", [_record(ZILLOW, parcel_number="X")])
        assert candidates == []

    def test_garbage_number_becomes_absent(self):
        reconciler = FieldReconciler()
        candidates = reconciler.collect("year_built", [_record(ZILLOW, year_built="unknown")])
        assert candidates[0].value is None

    def test_every_mapped_field_has_a_tolerance(self):
        assert all(0 <= spec.tolerance < 1 for spec in DEFAULT_FIELD_MAPPING.values())


# ═══════════════════════════════════════════════════════════════════════
# COMPLETENESS & QUALITY
# ═══════════════════════════════════════════════════════════════════════


class TestCompleteness:
    def _completeness(self, address: str, *records: SourceFactRecord) -> int:
        result = PropertyReconciliationPipeline().reconcile_records(address, records)
        assert result.record is not None
        return result.record.metadata.completeness

    def test_sparse_record(self):
        # year_built + street only → 2 of 18
        assert self._completeness("Somewhere", _record(REDFIN, year_built=2001)) == 11

    def test_full_record(self):
        score = self._completeness(
            ADDRESS,
            build_fact_record(ZILLOW, ZILLOW_PAYLOAD),
            build_fact_record(COUNTY, COUNTY_PAYLOAD),
        )
        assert score == 100

    def test_monotonic_as_fields_arrive(self):
        payload: dict[str, Any] = {}
        scores = []
        for key, value in COUNTY_PAYLOAD.items():
            payload[key] = value
            scores.append(self._completeness("Somewhere", _record(COUNTY, **payload)))

        assert scores == sorted(scores)
        assert all(0 <= s <= 100 for s in scores)

    def test_zero_counts_as_missing(self):
        score = self._completeness("Somewhere", _record(ZILLOW, bedrooms=0, walk_score=0))
        assert score == 6  # street only

    def test_recomputed_from_final_record(self):
        result = PropertyReconciliationPipeline().reconcile_records(
            ADDRESS, [_record(REDFIN, year_built=2001)]
        )
        assert result.record is not None
        assert result.record.metadata.completeness == compute_completeness(result.record)

    def test_quality_threshold(self):
        assert data_quality(71) == DataQuality.SCRAPED
        assert data_quality(70) == DataQuality.ESTIMATED
        assert data_quality(0) == DataQuality.ESTIMATED


# ═══════════════════════════════════════════════════════════════════════
# PROVIDER CONFIDENCE
# ═══════════════════════════════════════════════════════════════════════


class TestScoreConfidence:
    def test_empty_payload(self):
        assert score_confidence(ZILLOW, {}) == 0.0

    def test_critical_fields_only(self):
        payload = {"address": "x", "bedrooms": 3, "bathrooms": 2, "sqft": 1800, "year_built": 1990}
        # 15 of 27 weighted points
        assert score_confidence(ZILLOW, payload) == pytest.approx(0.56)

    def test_county_boost_is_capped(self):
        payload = {
            "parcel_number": "1", "assessed_value": 1, "year_built": 1, "sqft": 1,
            "zoning": "R", "lot_size": "1", "bedrooms": 1, "bathrooms": 1, "tax_amount": 1,
            "construction": "x", "foundation": "x", "heating": "x", "cooling": "x",
            "permit_history": [{"type": "Roof"}],
        }
        assert score_confidence(COUNTY, payload) == 1.0

    def test_empty_list_does_not_count(self):
        assert score_confidence(ZILLOW, {"schools": []}) == 0.0

    def test_explicit_confidence_is_kept(self):
        record = build_fact_record(REDFIN, {"year_built": 2001}, confidence=0.7)
        assert record.confidence == pytest.approx(0.7)
        assert record.populated_fields == ["year_built"]
