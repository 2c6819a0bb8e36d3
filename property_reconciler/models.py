"""
Pydantic models for property data — the shared language of every stage.

Provider payloads stay loosely typed (a sparse key→value mapping with an
explicit presence check) so new provider fields flow through untouched.
Everything the reconciler produces is strictly typed.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from .exceptions import NoDataFoundError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_absent(value: Any) -> bool:
    """Null, empty string, and empty collections all count as 'not supplied'."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


# ─── Enumerations ───────────────────────────────────────────────────


class DataSource(str, Enum):
    """Providers the reconciler knows how to rank."""

    ZILLOW = "zillow"  # Listing site A
    REDFIN = "redfin"  # Listing site B
    COUNTY_ASSESSOR = "county-assessor"
    GOOGLE_GROUNDING = "google-grounding"  # AI-grounded web search


class ResolutionStrategy(str, Enum):
    HIGHEST_PRIORITY = "highest-priority"
    HIGHEST_CONFIDENCE = "highest-confidence"


class DataQuality(str, Enum):
    ESTIMATED = "estimated"
    SCRAPED = "scraped"


class LayoutSource(str, Enum):
    """Where a room layout came from. Only HEURISTIC may be regenerated."""

    HEURISTIC = "heuristic"
    VISION = "vision"
    USER_MEASURED = "user-measured"
    SCAN = "scan"


# ─── Source Records ─────────────────────────────────────────────────


class SourceFactRecord(BaseModel):
    """One provider's raw facts for a single property.

    `payload` is deliberately a plain mapping: provider shapes change
    without notice and unknown keys must survive the round trip.
    Nested values are reachable with dotted paths ("tax_info.annual_amount").
    """

    source: DataSource
    payload: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    scraped_at: datetime = Field(default_factory=utcnow)
    url: Optional[str] = None
    populated_fields: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_populated_fields(self) -> SourceFactRecord:
        if not self.populated_fields:
            self.populated_fields = [k for k, v in self.payload.items() if not is_absent(v)]
        return self

    def get(self, path: str, default: Any = None) -> Any:
        """Return the value at `path`, or `default` when it is missing or empty."""
        value: Any = self.payload
        for part in path.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return default
            value = value[part]
        return default if is_absent(value) else value

    def has(self, path: str) -> bool:
        return self.get(path) is not None


class SourceFetchResult(BaseModel):
    """What a source adapter hands back: a record, or a reason it has none."""

    source: DataSource
    success: bool
    record: Optional[SourceFactRecord] = None
    error: Optional[str] = None
    url: Optional[str] = None


class SourceError(BaseModel):
    source: DataSource
    error: str


class SourceTiming(BaseModel):
    total_ms: float = 0.0
    by_source: dict[str, float] = Field(default_factory=dict)


# ─── Reconciliation ─────────────────────────────────────────────────


class CandidateValue(BaseModel):
    """A single provider's offer for one target field."""

    source: DataSource
    value: Any = None
    confidence: float = 0.0


class ResolvedField(BaseModel):
    """The winner for one field. An unresolved field has value None and confidence 0."""

    value: Any = None
    source: Optional[DataSource] = None
    confidence: float = 0.0

    @property
    def resolved(self) -> bool:
        return self.value is not None


class ConflictRecord(BaseModel):
    """Informational: providers disagreed, and this is what we picked."""

    field: str
    values: list[CandidateValue]
    resolved: Any = None
    resolution: ResolutionStrategy


# ─── Address & Location ─────────────────────────────────────────────


class PropertyAddress(BaseModel):
    street: str = ""
    unit: Optional[str] = None
    city: str = ""
    state: str = ""
    zip: str = ""
    county: str = ""
    country: str = "US"
    formatted: str = ""


class PropertyLocation(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


# ─── Property Details ───────────────────────────────────────────────


class AreaMeasurement(BaseModel):
    value: float
    unit: str = "sqft"  # "sqft" | "acres" | "sqm"


class ConstructionDetails(BaseModel):
    style: str = ""
    framing: str


class RoofDetails(BaseModel):
    type: str
    material: str


class HVACSystem(BaseModel):
    heating: str = "Unknown"
    cooling: str = "Unknown"
    fuel: str = "Unknown"


class GarageInfo(BaseModel):
    type: str = "attached"
    spaces: int = 2
    description: Optional[str] = None


class BasementInfo(BaseModel):
    type: str = "full"
    finished: bool = False


class PropertyDetails(BaseModel):
    property_type: Optional[str] = None
    year_built: Optional[int] = None
    stories: int = 1
    lot_size: Optional[AreaMeasurement] = None
    living_area: Optional[AreaMeasurement] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    construction: Optional[ConstructionDetails] = None
    foundation: Optional[str] = None  # slab | crawl | basement | other
    roof: Optional[RoofDetails] = None
    hvac: Optional[HVACSystem] = None
    garage: Optional[GarageInfo] = None
    basement: Optional[BasementInfo] = None


# ─── Regulatory ─────────────────────────────────────────────────────


class FloodZoneInfo(BaseModel):
    zone: str
    in_floodplain: bool
    insurance_required: bool = False


class PermitRecord(BaseModel):
    number: str = ""
    type: str = ""
    date: str = ""
    status: str = "completed"
    description: Optional[str] = None


class HOAInfo(BaseModel):
    name: str = "HOA"
    fee: float
    frequency: str = "monthly"  # monthly | quarterly | annual


class RegulatoryInfo(BaseModel):
    zoning: Optional[str] = None
    parcel_number: Optional[str] = None
    legal_description: Optional[str] = None
    flood_zone: Optional[FloodZoneInfo] = None
    permits: list[PermitRecord] = Field(default_factory=list)
    hoa: Optional[HOAInfo] = None


# ─── Valuation & Neighborhood ───────────────────────────────────────


class PriceHistoryEntry(BaseModel):
    date: str
    price: float
    event: str  # sold | listed | price-change


class ValuationInfo(BaseModel):
    assessed: Optional[float] = None
    market_estimate: Optional[float] = None
    tax_annual: Optional[float] = None
    list_price: Optional[float] = None
    price_history: list[PriceHistoryEntry] = Field(default_factory=list)


class SchoolInfo(BaseModel):
    name: str
    type: str  # elementary | middle | high | private
    rating: Optional[float] = None
    distance: Optional[float] = None


class NeighborhoodInfo(BaseModel):
    walk_score: Optional[int] = None
    transit_score: Optional[int] = None
    bike_score: Optional[int] = None
    school_district: Optional[str] = None
    schools: list[SchoolInfo] = Field(default_factory=list)


# ─── Rooms ──────────────────────────────────────────────────────────


class Point(BaseModel):
    x: float
    y: float


class Wall(BaseModel):
    start: Point
    end: Point
    thickness: float
    height: float


class Opening(BaseModel):
    id: str
    type: str = "door"  # door | window | opening
    wall_index: int
    position: float  # Distance from the wall's start point
    width: float
    height: float


class RoomLayout(BaseModel):
    walls: list[Wall]
    openings: list[Opening] = Field(default_factory=list)
    ceiling_height: float
    confidence: float = Field(ge=0.0, le=1.0)
    source: LayoutSource

    @property
    def is_closed(self) -> bool:
        return bool(self.walls) and self.walls[-1].end == self.walls[0].start


class RoomDimensions(BaseModel):
    length: float
    width: float
    height: float
    sqft: float


class RoomPosition(BaseModel):
    x: float
    y: float
    z: float


class RoomContext(BaseModel):
    id: str
    property_id: str
    name: str
    type: str
    floor: int
    dimensions: RoomDimensions
    position: RoomPosition
    layout: RoomLayout


# ─── Unified Record ─────────────────────────────────────────────────


class PropertyMetadata(BaseModel):
    completeness: int = Field(ge=0, le=100)
    data_quality: DataQuality
    confidence: dict[str, float] = Field(default_factory=dict)
    input_hash: str = ""  # SHA-256 of the canonicalised source payloads


class UnifiedPropertyRecord(BaseModel):
    """The assembled output. Immutable — a new reconciliation yields a new version."""

    model_config = {"frozen": True}

    id: str
    version: int = 1
    created_at: datetime
    updated_at: datetime
    address: PropertyAddress
    location: PropertyLocation
    details: PropertyDetails
    regulatory: RegulatoryInfo
    valuation: ValuationInfo
    neighborhood: NeighborhoodInfo
    rooms: list[RoomContext] = Field(default_factory=list)
    sources: list[SourceFactRecord] = Field(default_factory=list)
    metadata: PropertyMetadata


class ReconciliationResult(BaseModel):
    """The orchestrator's answer: a record plus diagnostics, or only diagnostics."""

    success: bool
    record: Optional[UnifiedPropertyRecord] = None
    conflicts: list[ConflictRecord] = Field(default_factory=list)
    errors: list[SourceError] = Field(default_factory=list)
    timing: SourceTiming = Field(default_factory=SourceTiming)

    def raise_for_failure(self) -> UnifiedPropertyRecord:
        """Return the record, or raise NoDataFoundError with every source's error."""
        if not self.success or self.record is None:
            raise NoDataFoundError(
                f"No property data could be retrieved from {len(self.errors)} source(s)",
                errors=[e.model_dump(mode="json") for e in self.errors],
            )
        return self.record
