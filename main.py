#!/usr/bin/env python3
"""
Property Reconciler — Entry Point
==================================

Demonstrates the full reconciliation pipeline on sample provider payloads.

Usage:
    python main.py                          # Listing + county samples only
    OPENAI_API_KEY=sk-... python main.py    # Adds the AI-grounded lookup
"""

from __future__ import annotations

import asyncio
import logging
import sys

from dotenv import load_dotenv

from property_reconciler.grounding import GroundingSourceAdapter
from property_reconciler.models import DataSource, ReconciliationResult
from property_reconciler.pipeline import PropertyReconciliationPipeline
from property_reconciler.sources import SourceAdapter, StaticSourceAdapter

load_dotenv()


# ─── Sample Provider Payloads — Disagreeing on Purpose ──────────────

ADDRESS = "1100 Congress Ave, Austin, TX 78701"

ZILLOW_PAYLOAD = {
    "address": "1100 Congress Ave, Austin, TX 78701",
    "price": 615000,
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
    "schools": [
        {"name": "Mathews Elementary", "rating": 8, "distance": "0.6 mi", "type": "Elementary"},
        {"name": "O. Henry Middle", "rating": 7, "distance": "1.4 mi", "type": "Middle"},
    ],
    "price_history": [
        {"date": "2019-06-14", "price": 489000, "event": "Sold"},
        {"date": "2019-04-02", "price": 499000, "event": "Listed for sale"},
    ],
}

COUNTY_PAYLOAD = {
    "parcel_number": "0203-1105-0712",
    "zoning": "SF-3",
    "assessed_value": 571200,
    "tax_amount": 11340,
    "lot_size": "7,841 sq ft",
    "year_built": 1998,
    "sqft": "1,920",
    "bedrooms": 3,
    "bathrooms": 2,
    "stories": 2,
    "construction": "Wood frame",
    "foundation": "Slab on grade",
    "heating": "Central gas",
    "cooling": "Central electric",
    "permit_history": [
        {"date": "2021-03-09", "type": "Roof", "description": "Reroof, composition shingle"},
    ],
}


# ─── ANSI Color Constants ───────────────────────────────────────────

_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"
_BOLD = "\033[1m"
_RESET = "\033[0m"
_WIDTH = 72


# ─── Pretty Printer Helpers ─────────────────────────────────────────


def _print_record_details(record) -> None:
    """Print the headline fields of the unified record."""
    d = record.details
    living = f"{d.living_area.value:,.0f} sqft" if d.living_area else "—"
    print(f"  Address:     {record.address.street}, {record.address.city} {record.address.state} {record.address.zip}")
    print(f"  Parcel:      {record.regulatory.parcel_number or '—'}  {_DIM}zoning {record.regulatory.zoning or '—'}{_RESET}")
    print(f"  Built:       {d.year_built or '—'}  {_DIM}({d.stories} stor{'y' if d.stories == 1 else 'ies'}){_RESET}")
    print(f"  Living:      {living}")
    print(f"  Beds/Baths:  {d.bedrooms or '—'} / {d.bathrooms or '—'}")
    if record.valuation.assessed:
        print(f"  Assessed:    ${record.valuation.assessed:,.0f}")
    if record.valuation.market_estimate:
        print(f"  Estimate:    ${record.valuation.market_estimate:,.0f}")


def _print_conflicts(conflicts) -> None:
    if not conflicts:
        return
    print(f"\n  {_YELLOW}{_BOLD}CONFLICTS ({len(conflicts)}){_RESET}")
    for c in conflicts:
        offers = ", ".join(f"{v.source.value}={v.value!r}" for v in c.values)
        print(f"    {_YELLOW}[{c.field}]{_RESET} kept {c.resolved!r} {_DIM}({c.resolution.value}){_RESET}")
        print(f"      {_DIM}{offers}{_RESET}")
    print()


def _print_errors(errors) -> None:
    if not errors:
        return
    print(f"  {_RED}{_BOLD}SOURCE ERRORS ({len(errors)}){_RESET}")
    for e in errors:
        print(f"    {_RED}[{e.source.value}]{_RESET} {e.error}")
    print()


def _print_rooms(rooms) -> None:
    print(f"  {_CYAN}ROOMS ({len(rooms)}){_RESET}")
    for r in rooms:
        print(
            f"    F{r.floor} {r.name:<16} {r.dimensions.sqft:7.0f} sqft  "
            f"{_DIM}{r.layout.source.value} @ {r.layout.confidence:.1f}{_RESET}"
        )
    print()


# ─── Pretty Printer ─────────────────────────────────────────────────


def print_report(result: ReconciliationResult) -> int:
    """Pretty-print the reconciliation result with ANSI color codes.

    Returns:
        0 if a record was produced, 1 if every source failed.
    """
    print(f"\n{'=' * _WIDTH}")
    print(f"{_BOLD}{_CYAN}  PROPERTY RECONCILIATION REPORT{_RESET}")
    print(f"{'=' * _WIDTH}")
    timings = ", ".join(f"{k} {v:.0f}ms" for k, v in result.timing.by_source.items())
    print(f"  Timing:      {result.timing.total_ms:.0f}ms total {_DIM}({timings}){_RESET}")

    record = result.record
    if record is not None:
        print(f"  Record:      {record.id} v{record.version}")
        print(f"  Input Hash:  {_DIM}{record.metadata.input_hash[:16]}...{_RESET}")
        print(f"{'─' * _WIDTH}")
        _print_record_details(record)
    print(f"{'─' * _WIDTH}")

    _print_conflicts(result.conflicts)
    _print_errors(result.errors)
    if record is not None:
        _print_rooms(record.rooms)

    print(f"{'=' * _WIDTH}")
    if record is not None:
        meta = record.metadata
        color = _GREEN if meta.data_quality.value == "scraped" else _YELLOW
        print(f"  {color}{_BOLD}{meta.completeness}% COMPLETE  --  {meta.data_quality.value.upper()}{_RESET}")
    else:
        print(f"  {_RED}{_BOLD}NO DATA FOUND  --  retry later{_RESET}")
    print(f"{'=' * _WIDTH}\n")

    return 0 if result.success else 1


# ─── Main ────────────────────────────────────────────────────────────


def main():
    """Run the full reconciliation pipeline and print the report."""
    logging.basicConfig(level=logging.INFO, format="  %(levelname)s %(name)s: %(message)s")
    print("\n  Starting Property Reconciler...")
    print(f"  Reconciling {ADDRESS}...\n")

    pipeline = PropertyReconciliationPipeline()
    adapters: list[SourceAdapter] = [
        StaticSourceAdapter(DataSource.ZILLOW, ZILLOW_PAYLOAD, url="https://www.zillow.com/"),
        StaticSourceAdapter(DataSource.REDFIN, error="Listing not found"),
        StaticSourceAdapter(DataSource.COUNTY_ASSESSOR, COUNTY_PAYLOAD, url="https://traviscad.org/"),
    ]
    if pipeline.settings.openai_api_key:
        adapters.append(GroundingSourceAdapter(settings=pipeline.settings))

    result = asyncio.run(pipeline.reconcile(ADDRESS, adapters))
    exit_code = print_report(result)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
