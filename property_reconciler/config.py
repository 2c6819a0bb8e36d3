"""
Immutable configuration tables and runtime settings.

The priority table, the field mapping and the room catalog are plain data.
They are injected into the reconciler and synthesizer at construction so
tests (or another market) can swap them without touching code.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from .models import DataSource

ZILLOW = DataSource.ZILLOW
REDFIN = DataSource.REDFIN
COUNTY = DataSource.COUNTY_ASSESSOR
GROUNDING = DataSource.GOOGLE_GROUNDING


# ─── Field Priority ─────────────────────────────────────────────────


@dataclass(frozen=True)
class FieldPriorityTable:
    """Target field → providers, most authoritative first.

    Fields without an entry use the `default` ordering.
    """

    orders: Mapping[str, tuple[DataSource, ...]]
    default: tuple[DataSource, ...] = (COUNTY, ZILLOW, REDFIN, GROUNDING)

    def __post_init__(self) -> None:
        frozen = {name: tuple(DataSource(s) for s in order) for name, order in self.orders.items()}
        object.__setattr__(self, "orders", MappingProxyType(frozen))
        object.__setattr__(self, "default", tuple(DataSource(s) for s in self.default))

    def order_for(self, field_name: str) -> tuple[DataSource, ...]:
        return self.orders.get(field_name, self.default)

    @classmethod
    def from_json(cls, path: str | Path) -> FieldPriorityTable:
        """Load a table from JSON: {"field": ["county-assessor", ...], "default": [...]}."""
        with Path(path).open(encoding="utf-8") as f:
            raw: dict[str, list[str]] = json.load(f)
        default = raw.pop("default", None)
        orders = {name: tuple(DataSource(s) for s in order) for name, order in raw.items()}
        if default is None:
            return cls(orders=orders)
        return cls(orders=orders, default=tuple(DataSource(s) for s in default))


DEFAULT_PRIORITY = FieldPriorityTable(
    orders={
        # Legal/regulatory — the county record is canonical
        "parcel_number": (COUNTY, ZILLOW, REDFIN),
        "zoning": (COUNTY, GROUNDING, ZILLOW, REDFIN),
        "assessed_value": (COUNTY, ZILLOW, REDFIN),
        "tax_amount": (COUNTY, ZILLOW, REDFIN),
        "legal_description": (COUNTY,),
        "permits": (COUNTY,),
        # Building characteristics
        "year_built": (COUNTY, GROUNDING, ZILLOW, REDFIN),
        "sqft": (COUNTY, GROUNDING, ZILLOW, REDFIN),
        "bedrooms": (COUNTY, ZILLOW, REDFIN, GROUNDING),
        "bathrooms": (COUNTY, ZILLOW, REDFIN, GROUNDING),
        "stories": (COUNTY, ZILLOW, REDFIN),
        "construction": (COUNTY,),
        "foundation": (COUNTY,),
        # Market data — listing sites are more current
        "price": (ZILLOW, REDFIN, COUNTY),
        "market_estimate": (ZILLOW, REDFIN, GROUNDING),
        "price_history": (ZILLOW, REDFIN),
        # Scores
        "walk_score": (ZILLOW, REDFIN, GROUNDING),
        "transit_score": (ZILLOW,),
        "bike_score": (ZILLOW,),
        "schools": (ZILLOW, GROUNDING, REDFIN),
        # Coordinates & address
        "latitude": (ZILLOW, REDFIN),
        "longitude": (ZILLOW, REDFIN),
        "address": (ZILLOW, REDFIN, GROUNDING),
        "hoa": (REDFIN, ZILLOW),
    },
)


# ─── Field Mapping ──────────────────────────────────────────────────


@dataclass(frozen=True)
class FieldSpec:
    """Where each provider keeps one target field, and how to coerce it.

    kind: "number" (coerce "1,998" → 1998.0), "area" ("0.18 acres" → 7840.8 sqft),
    "text" (strip), "raw" (as-is).
    tolerance: relative deviation from the mean allowed before numbers conflict.
    """

    paths: Mapping[DataSource, str]
    kind: str = "raw"
    tolerance: float = 0.05


def _spec(kind: str, tolerance: float = 0.05, **paths: str) -> FieldSpec:
    by_source = {
        "zillow": ZILLOW,
        "redfin": REDFIN,
        "county": COUNTY,
        "grounding": GROUNDING,
    }
    return FieldSpec(
        paths=MappingProxyType({by_source[k]: v for k, v in paths.items()}),
        kind=kind,
        tolerance=tolerance,
    )


DEFAULT_FIELD_MAPPING: Mapping[str, FieldSpec] = MappingProxyType({
    "address": _spec("text", zillow="address", redfin="address", grounding="address"),
    "latitude": _spec("number", zillow="latitude", redfin="latitude"),
    "longitude": _spec("number", zillow="longitude", redfin="longitude"),
    "property_type": _spec(
        "text", zillow="property_type", redfin="property_type", grounding="property_type"
    ),
    # A year is either right or wrong; 5% of 1998 is a century
    "year_built": _spec(
        "number", 0.0, county="year_built", zillow="year_built", redfin="year_built", grounding="year_built"
    ),
    "stories": _spec("number", county="stories", zillow="stories", redfin="stories"),
    "lot_size": _spec("area", county="lot_size", zillow="lot_size", redfin="lot_size", grounding="lot_size"),
    "sqft": _spec("number", county="sqft", zillow="sqft", redfin="sqft", grounding="sqft"),
    "bedrooms": _spec(
        "number", county="bedrooms", zillow="bedrooms", redfin="bedrooms", grounding="bedrooms"
    ),
    "bathrooms": _spec(
        "number", county="bathrooms", zillow="bathrooms", redfin="bathrooms", grounding="bathrooms"
    ),
    "zoning": _spec("text", county="zoning", grounding="zoning"),
    "parcel_number": _spec("text", county="parcel_number"),
    "legal_description": _spec("text", county="legal_description"),
    "assessed_value": _spec("number", county="assessed_value", redfin="tax_info.assessed_value"),
    "market_estimate": _spec(
        "number", zillow="zestimate", redfin="estimate", grounding="estimated_value"
    ),
    "tax_amount": _spec("number", county="tax_amount", redfin="tax_info.annual_amount"),
    "price": _spec("number", zillow="price", redfin="price"),
    "walk_score": _spec("number", zillow="walk_score", grounding="walk_score"),
    "transit_score": _spec("number", zillow="transit_score"),
    "bike_score": _spec("number", zillow="bike_score"),
    "school_district": _spec("text", grounding="school_district"),
    "flood_zone": _spec("text", grounding="flood_zone"),
    "schools": _spec("raw", zillow="schools", grounding="schools"),
    "hoa": _spec("raw", redfin="hoa"),
})


# ─── Room Catalog ───────────────────────────────────────────────────


@dataclass(frozen=True)
class RoomTemplate:
    type: str
    name: str
    weight: float


@dataclass(frozen=True)
class RoomCatalog:
    """Relative area weights and fixed geometry for heuristic layouts (feet)."""

    common_rooms: tuple[RoomTemplate, ...] = (
        RoomTemplate("living-room", "Living Room", 0.35),
        RoomTemplate("kitchen", "Kitchen", 0.25),
        RoomTemplate("dining-room", "Dining Room", 0.15),
        RoomTemplate("foyer", "Entry", 0.10),
        RoomTemplate("half-bathroom", "Powder Room", 0.10),
    )
    # Common-area types left off single-story plans
    single_story_exclusions: frozenset[str] = frozenset({"half-bathroom"})
    primary_bedroom_weight: float = 0.35
    bedroom_weight: float = 0.2
    primary_bathroom_weight: float = 0.2
    bathroom_weight: float = 0.15
    wall_thickness: float = 0.5
    ceiling_height: float = 9.0
    door_width: float = 3.0
    door_height: float = 7.0
    confidence: float = 0.4
    default_living_area: float = 2000.0
    default_bedrooms: int = 3
    default_bathrooms: float = 2.0


DEFAULT_ROOM_CATALOG = RoomCatalog()


# ─── Runtime Settings ───────────────────────────────────────────────


@dataclass
class Settings:
    timeout_seconds: float = 60.0
    grounding_model: str = "gpt-5"
    openai_api_key: str | None = field(default=None, repr=False)


def load_settings() -> Settings:
    """Read settings from the environment (call load_dotenv() first to honour .env)."""
    return Settings(
        timeout_seconds=float(os.environ.get("PROPERTY_RECONCILE_TIMEOUT", "60")),
        grounding_model=os.environ.get("PROPERTY_GROUNDING_MODEL", "gpt-5"),
        openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
    )
