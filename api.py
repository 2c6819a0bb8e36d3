"""
Property Reconciler — FastAPI Server
=====================================

RESTful API for reconciling multi-source property facts.

Endpoints:
    POST /reconcile         Reconcile pre-parsed provider payloads into one record
    POST /rooms             Synthesize a heuristic room layout from scalar stats
    GET  /health            Health check / readiness probe

Run:
    uvicorn api:app --reload              # Dev (http://localhost:8000)
    uvicorn api:app --host 0.0.0.0        # Production

Docs:
    http://localhost:8000/docs             # Swagger UI (auto-generated)
    http://localhost:8000/redoc            # ReDoc (alternative)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from property_reconciler import __version__
from property_reconciler.exceptions import NoDataFoundError
from property_reconciler.grounding import GroundingSourceAdapter
from property_reconciler.models import (
    AreaMeasurement,
    ConflictRecord,
    DataSource,
    PropertyDetails,
    RoomContext,
    SourceError,
    SourceTiming,
    UnifiedPropertyRecord,
)
from property_reconciler.pipeline import PropertyReconciliationPipeline
from property_reconciler.rooms import RoomLayoutSynthesizer
from property_reconciler.sources import SourceAdapter, StaticSourceAdapter

load_dotenv()


# ─── Application Lifespan (pre-warm pipeline) ───────────────────────

_pipeline: PropertyReconciliationPipeline | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline (settings, tables) once on startup."""
    global _pipeline  # noqa: PLW0603
    _pipeline = PropertyReconciliationPipeline()
    yield
    _pipeline = None


# ─── FastAPI App ─────────────────────────────────────────────────────

app = FastAPI(
    title="Property Reconciler API",
    description=(
        "Reconciles property facts from listing sites, county records and an "
        "AI-grounded lookup into one record with field-level provenance, "
        "conflicts, completeness scoring and a heuristic room layout."
    ),
    version=__version__,
    lifespan=lifespan,
)


# ─── Request / Response Schemas ─────────────────────────────────────


class SourcePayload(BaseModel):
    """One provider's already-parsed facts, or the reason there are none."""

    source: DataSource
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    url: Optional[str] = None


class ReconcileRequest(BaseModel):
    """Request body for the /reconcile endpoint."""

    address: str = Field(..., min_length=5, description="Free-text property address.")
    sources: list[SourcePayload] = Field(default_factory=list)
    include_grounding: bool = Field(
        default=False,
        description="Also run the AI-grounded lookup (requires OPENAI_API_KEY).",
    )
    timeout: Optional[float] = Field(default=None, gt=0, description="Deadline in seconds.")

    model_config = {"json_schema_extra": {"example": {
        "address": "1100 Congress Ave, Austin, TX 78701",
        "sources": [
            {"source": "county-assessor", "data": {"year_built": 1998, "parcel_number": "0203-11"}},
            {"source": "zillow", "data": {"year_built": 1995, "bedrooms": 3, "sqft": 1850}},
            {"source": "redfin", "error": "Listing not found"},
        ],
    }}}


class ReconcileResponse(BaseModel):
    """Unified record plus the diagnostics intended for audit surfaces."""

    record: UnifiedPropertyRecord
    completeness: int
    conflict_count: int
    conflicts: list[ConflictRecord]
    errors: list[SourceError]
    timing: SourceTiming


class RoomsRequest(BaseModel):
    living_area: Optional[float] = Field(default=None, gt=0, description="Square feet.")
    stories: int = Field(default=1, ge=1)
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[float] = Field(default=None, ge=0)
    property_id: str = "generated"


class RoomsResponse(BaseModel):
    count: int
    rooms: list[RoomContext]


class HealthResponse(BaseModel):
    status: str
    version: str
    sources_supported: list[str]
    fields_reconciled: int


# ─── Helpers ─────────────────────────────────────────────────────────


def _get_pipeline() -> PropertyReconciliationPipeline:
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialised")
    return _pipeline


def _build_adapters(
    request: ReconcileRequest, pipeline: PropertyReconciliationPipeline
) -> list[SourceAdapter]:
    adapters: list[SourceAdapter] = [
        StaticSourceAdapter(
            s.source, s.data, confidence=s.confidence, url=s.url, error=s.error
        )
        for s in request.sources
    ]
    if request.include_grounding and all(
        s.source != DataSource.GOOGLE_GROUNDING for s in request.sources
    ):
        adapters.append(GroundingSourceAdapter(settings=pipeline.settings))
    return adapters


# ─── Endpoints ───────────────────────────────────────────────────────


@app.post(
    "/reconcile",
    summary="Reconcile provider payloads into one property record",
    tags=["Reconciliation"],
    responses={
        400: {"description": "The same provider was supplied twice"},
        502: {"description": "No provider returned usable data"},
        503: {"description": "Pipeline not yet initialised"},
    },
)
async def reconcile_property(request: ReconcileRequest) -> ReconcileResponse:
    """Run the full reconciliation pipeline over the posted provider payloads.

    Returns:
    - **record**: the unified property record with heuristic rooms
    - **conflicts**: every field where providers disagreed, with the value kept
    - **errors**: providers that failed and were left out
    - **timing**: total and per-provider wall-clock in milliseconds
    """
    pipeline = _get_pipeline()
    adapters = _build_adapters(request, pipeline)
    try:
        result = await pipeline.reconcile(request.address, adapters, timeout=request.timeout)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        record = result.raise_for_failure()
    except NoDataFoundError as e:
        raise HTTPException(
            status_code=502,
            detail={"code": e.code, "message": str(e), "errors": e.errors},
        )

    return ReconcileResponse(
        record=record,
        completeness=record.metadata.completeness,
        conflict_count=len(result.conflicts),
        conflicts=result.conflicts,
        errors=result.errors,
        timing=result.timing,
    )


@app.post(
    "/rooms",
    summary="Synthesize a heuristic room layout",
    tags=["Rooms"],
)
def synthesize_rooms(request: RoomsRequest) -> RoomsResponse:
    """Lay out placeholder rooms from living area, stories and room counts.

    Every layout is tagged `source="heuristic"` with confidence 0.4.
    """
    details = PropertyDetails(
        living_area=AreaMeasurement(value=request.living_area) if request.living_area else None,
        stories=request.stories,
        bedrooms=request.bedrooms,
        bathrooms=request.bathrooms,
    )
    rooms = RoomLayoutSynthesizer().synthesize(details, property_id=request.property_id)
    return RoomsResponse(count=len(rooms), rooms=rooms)


@app.get(
    "/health",
    summary="Health check",
    tags=["System"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def health_check() -> HealthResponse:
    """Returns service status and configuration info."""
    pipeline = _get_pipeline()
    return HealthResponse(
        status="healthy",
        version=__version__,
        sources_supported=[s.value for s in DataSource],
        fields_reconciled=len(pipeline.reconciler.mapping),
    )
