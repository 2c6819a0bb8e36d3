"""
Main reconciliation pipeline — orchestrates the full workflow.

Flow:
  ┌─────────┐ ┌─────────┐ ┌─────────┐ ┌───────────┐
  │ Zillow  │ │ Redfin  │ │ County  │ │ Grounding │   ← Concurrent fetch
  └────┬────┘ └────┬────┘ └────┬────┘ └─────┬─────┘
       └───────────┴─────┬─────┴────────────┘
                         │                          ← One join, one deadline
                  ┌──────▼──────┐
                  │ Reconciler  │   ← Priority wins, conflicts recorded
                  └──────┬──────┘
                         │
                  ┌──────▼──────┐
                  │  Assembler  │   ← Sections, rooms, completeness
                  └──────┬──────┘
                         │
                  ┌──────▼──────┐
                  │   Result    │   ← Record + conflicts + errors + timing
                  └─────────────┘

Design principles:
  - A failing source never aborts the others; its error becomes data.
  - A source still running at the deadline is cancelled and counted as failed.
  - At least one success is required — no empty record is ever synthesized.
  - Reconciliation runs only after every fetch has settled, on one task.
  - No retries here; adapters own their own retry policy.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence

from .assembler import RecordAssembler
from .config import Settings, load_settings
from .exceptions import SourceUnavailableError
from .models import (
    ReconciliationResult,
    SourceError,
    SourceFactRecord,
    SourceFetchResult,
    SourceTiming,
    UnifiedPropertyRecord,
)
from .reconciler import FieldReconciler
from .sources import SourceAdapter

logger = logging.getLogger(__name__)


class PropertyReconciliationPipeline:
    """Orchestrates fetch → reconcile → assemble.

    Usage:
        pipeline = PropertyReconciliationPipeline()
        result = await pipeline.reconcile(address, [zillow, redfin, county])
        if result.success:
            record = result.record
        else:
            for error in result.errors:
                print(error.source, error.error)
    """

    def __init__(
        self,
        reconciler: FieldReconciler | None = None,
        assembler: RecordAssembler | None = None,
        settings: Settings | None = None,
    ):
        self.reconciler = reconciler or FieldReconciler()
        self.assembler = assembler or RecordAssembler()
        self.settings = settings or load_settings()

    async def reconcile(
        self,
        address: str,
        adapters: Sequence[SourceAdapter],
        timeout: float | None = None,
        previous: UnifiedPropertyRecord | None = None,
    ) -> ReconciliationResult:
        """Fetch from every adapter concurrently and reconcile what arrives.

        Args:
            address: Free-text property address.
            adapters: One adapter per provider (duplicates are rejected).
            timeout: Deadline in seconds for the whole fan-out; defaults to settings.
            previous: Prior version of this property's record, if any.

        Returns:
            ReconciliationResult — success with a record, or failure with only
            the per-source errors and timings.

        Raises:
            asyncio.CancelledError: the caller was cancelled. In-flight fetches
                are cancelled too and no partial result is returned.
        """
        sources = [a.source for a in adapters]
        if len(set(sources)) != len(sources):
            raise ValueError(f"Duplicate source adapters: {[s.value for s in sources]}")

        deadline = self.settings.timeout_seconds if timeout is None else timeout
        started = time.perf_counter()
        by_source: dict[str, float] = {}

        # ── Step 1: Fan out ─────────────────────────────────────────
        logger.info("Fetching %s from %d source(s)", address, len(adapters))
        tasks = [
            asyncio.create_task(self._fetch_one(adapter, address, by_source))
            for adapter in adapters
        ]

        # ── Step 2: Join under one deadline ─────────────────────────
        pending: set[asyncio.Task] = set()
        if tasks:
            try:
                _, pending = await asyncio.wait(tasks, timeout=deadline)
            except asyncio.CancelledError:
                logger.warning("Reconciliation cancelled — cancelling pending fetches")
                await _cancel_all(tasks)
                raise
            if pending:
                await _cancel_all(pending)

        # ── Step 3: Collect results in adapter order ────────────────
        records: list[SourceFactRecord] = []
        errors: list[SourceError] = []
        for adapter, task in zip(adapters, tasks):
            if task in pending:
                message = f"Timed out after {deadline:g}s"
                logger.warning("Source %s: %s", adapter.source.value, message)
                errors.append(SourceError(source=adapter.source, error=message))
                continue

            result = task.result()
            if result.success and result.record is not None:
                records.append(result.record)
            else:
                errors.append(
                    SourceError(source=adapter.source, error=result.error or "Unknown error")
                )

        timing = SourceTiming(
            total_ms=(time.perf_counter() - started) * 1000, by_source=by_source
        )

        if not records:
            logger.warning("No source returned data for %s (%d error(s))", address, len(errors))
            return ReconciliationResult(success=False, errors=errors, timing=timing)

        return self.reconcile_records(address, records, errors, timing, previous)

    def reconcile_records(
        self,
        address: str,
        records: Iterable[SourceFactRecord],
        errors: Iterable[SourceError] = (),
        timing: SourceTiming | None = None,
        previous: UnifiedPropertyRecord | None = None,
    ) -> ReconciliationResult:
        """Merge records the caller already holds. No I/O."""
        records = list(records)
        errors = list(errors)
        timing = timing or SourceTiming()

        if not records:
            return ReconciliationResult(success=False, errors=errors, timing=timing)

        reconciled = self.reconciler.reconcile(records)
        record = self.assembler.assemble(address, reconciled, records, previous=previous)

        return ReconciliationResult(
            success=True,
            record=record,
            conflicts=reconciled.conflicts,
            errors=errors,
            timing=timing,
        )

    # ─── Per-Source Fetch ───────────────────────────────────────────

    async def _fetch_one(
        self, adapter: SourceAdapter, address: str, by_source: dict[str, float]
    ) -> SourceFetchResult:
        """Run one adapter; every failure mode comes back as a failed result."""
        source = adapter.source
        started = time.perf_counter()
        try:
            return await adapter.fetch(address)
        except SourceUnavailableError as e:
            logger.warning("Source %s unavailable: %s", source.value, e)
            return SourceFetchResult(source=source, success=False, error=str(e))
        except Exception as e:
            logger.warning("Source %s raised %s: %s", source.value, type(e).__name__, e)
            return SourceFetchResult(
                source=source, success=False, error=f"{type(e).__name__}: {e}"
            )
        finally:
            by_source[source.value] = (time.perf_counter() - started) * 1000


async def _cancel_all(tasks: Iterable[asyncio.Task]) -> None:
    tasks = list(tasks)
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
