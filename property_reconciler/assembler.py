"""
Unified record assembly — reconciled fields in, one versioned record out.

Scalars come from the reconciler's winners. Structured extras that only
one provider ever supplies (permits, construction details, price history)
are copied from that provider's record. Completeness is scored on the
finished record, never on an intermediate state.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import uuid
from collections.abc import Iterable
from typing import Any

from .models import (
    AreaMeasurement,
    BasementInfo,
    ConstructionDetails,
    DataSource,
    FloodZoneInfo,
    GarageInfo,
    HOAInfo,
    HVACSystem,
    NeighborhoodInfo,
    PermitRecord,
    PriceHistoryEntry,
    PropertyDetails,
    PropertyLocation,
    PropertyMetadata,
    RegulatoryInfo,
    RoofDetails,
    RoomContext,
    SchoolInfo,
    SourceFactRecord,
    UnifiedPropertyRecord,
    ValuationInfo,
    utcnow,
)
from .normalize import (
    coerce_number,
    normalize_foundation,
    normalize_price_event,
    normalize_property_type,
    normalize_school_type,
    parse_address,
    parse_area,
)
from .reconciler import ReconciledFields, compute_completeness, data_quality
from .rooms import RoomLayoutSynthesizer, merge_rooms

logger = logging.getLogger(__name__)

_HOA_FREQUENCIES = frozenset({"monthly", "quarterly", "annual"})

# FEMA zone X is the minimal-risk zone; every other designation is a floodplain
_MINIMAL_FLOOD_ZONES = frozenset({"X"})


class RecordAssembler:
    """Builds a UnifiedPropertyRecord from reconciled fields.

    Usage:
        assembler = RecordAssembler()
        record = assembler.assemble("123 Main St, Austin, TX 78701", reconciled, records)
    """

    def __init__(self, synthesizer: RoomLayoutSynthesizer | None = None):
        self.synthesizer = synthesizer or RoomLayoutSynthesizer()

    def assemble(
        self,
        address: str,
        reconciled: ReconciledFields,
        records: Iterable[SourceFactRecord],
        previous: UnifiedPropertyRecord | None = None,
    ) -> UnifiedPropertyRecord:
        """Assemble the record.

        Args:
            address: The address the caller asked about (used when no provider
                returned a better-formatted one).
            reconciled: Winners and conflicts from FieldReconciler.reconcile().
            records: The provider records that were reconciled.
            previous: An earlier version of this record. Its id and creation
                time carry over, the version is bumped, and its non-heuristic
                room layouts are preserved.
        """
        records = list(records)
        by_source = {r.source: r for r in records}
        now = utcnow()

        if previous is not None:
            property_id = previous.id
            version = previous.version + 1
            created_at = previous.created_at
        else:
            property_id = f"prop_{uuid.uuid4().hex[:12]}"
            version = 1
            created_at = now

        details = self._build_details(reconciled, by_source.get(DataSource.COUNTY_ASSESSOR))
        rooms = self.synthesizer.synthesize(details, property_id=property_id)
        if previous is not None:
            rooms = merge_rooms(previous.rooms, rooms)

        record = UnifiedPropertyRecord(
            id=property_id,
            version=version,
            created_at=created_at,
            updated_at=now,
            address=parse_address(reconciled.value("address") or address),
            location=PropertyLocation(
                lat=reconciled.value("latitude"),
                lng=reconciled.value("longitude"),
            ),
            details=details,
            regulatory=self._build_regulatory(reconciled, by_source.get(DataSource.COUNTY_ASSESSOR)),
            valuation=self._build_valuation(reconciled, by_source.get(DataSource.ZILLOW)),
            neighborhood=self._build_neighborhood(reconciled),
            rooms=rooms,
            sources=records,
            metadata=PropertyMetadata(completeness=0, data_quality=data_quality(0)),
        )

        # ── Score the finished record, then seal it ─────────────────
        completeness = compute_completeness(record)
        metadata = PropertyMetadata(
            completeness=completeness,
            data_quality=data_quality(completeness),
            confidence=_confidence_map(records),
            input_hash=_input_hash(records),
        )
        logger.info(
            "Assembled %s v%d: %d%% complete (%s), %d room(s)",
            property_id, version, completeness, metadata.data_quality.value, len(rooms),
        )
        return record.model_copy(update={"metadata": metadata})

    # ─── Sections ───────────────────────────────────────────────────

    def _build_details(
        self, reconciled: ReconciledFields, county: SourceFactRecord | None
    ) -> PropertyDetails:
        sqft = reconciled.value("sqft")
        details = PropertyDetails(
            property_type=normalize_property_type(reconciled.value("property_type")),
            year_built=_as_int(reconciled.value("year_built")),
            stories=_as_int(reconciled.value("stories")) or 1,
            lot_size=parse_area(reconciled.value("lot_size")),
            living_area=AreaMeasurement(value=sqft, unit="sqft") if sqft and sqft > 0 else None,
            bedrooms=_as_int(reconciled.value("bedrooms")),
            bathrooms=reconciled.value("bathrooms"),
        )
        if county is None:
            return details

        # Construction facts only ever come from the county record
        updates: dict[str, Any] = {}
        if county.has("construction"):
            updates["construction"] = ConstructionDetails(framing=str(county.get("construction")))
        if county.has("foundation"):
            updates["foundation"] = normalize_foundation(str(county.get("foundation")))
        if county.has("roof_type"):
            roof = str(county.get("roof_type"))
            updates["roof"] = RoofDetails(type=roof, material=roof)
        if county.has("heating") or county.has("cooling"):
            updates["hvac"] = HVACSystem(
                heating=str(county.get("heating", "Unknown")),
                cooling=str(county.get("cooling", "Unknown")),
            )
        if county.has("garage"):
            updates["garage"] = GarageInfo(description=str(county.get("garage")))
        if county.has("basement"):
            basement = str(county.get("basement"))
            updates["basement"] = BasementInfo(finished="finished" in basement.lower())
        return details.model_copy(update=updates)

    def _build_regulatory(
        self, reconciled: ReconciledFields, county: SourceFactRecord | None
    ) -> RegulatoryInfo:
        flood_zone = None
        zone = reconciled.value("flood_zone")
        if zone:
            flood_zone = FloodZoneInfo(
                zone=zone, in_floodplain=zone.upper() not in _MINIMAL_FLOOD_ZONES
            )

        permits: list[PermitRecord] = []
        if county is not None:
            for entry in county.get("permit_history", []):
                if isinstance(entry, dict):
                    permits.append(
                        PermitRecord(
                            type=str(entry.get("type") or ""),
                            date=str(entry.get("date") or ""),
                            description=entry.get("description"),
                        )
                    )

        return RegulatoryInfo(
            zoning=reconciled.value("zoning"),
            parcel_number=reconciled.value("parcel_number"),
            legal_description=reconciled.value("legal_description"),
            flood_zone=flood_zone,
            permits=permits,
            hoa=_build_hoa(reconciled.value("hoa")),
        )

    def _build_valuation(
        self, reconciled: ReconciledFields, zillow: SourceFactRecord | None
    ) -> ValuationInfo:
        history: list[PriceHistoryEntry] = []
        if zillow is not None:
            for entry in zillow.get("price_history", []):
                if not isinstance(entry, dict):
                    continue
                price = coerce_number(entry.get("price"))
                if price is None:
                    continue
                history.append(
                    PriceHistoryEntry(
                        date=str(entry.get("date") or ""),
                        price=price,
                        event=normalize_price_event(entry.get("event")),
                    )
                )

        return ValuationInfo(
            assessed=reconciled.value("assessed_value"),
            market_estimate=reconciled.value("market_estimate"),
            tax_annual=reconciled.value("tax_amount"),
            list_price=reconciled.value("price"),
            price_history=history,
        )

    def _build_neighborhood(self, reconciled: ReconciledFields) -> NeighborhoodInfo:
        schools: list[SchoolInfo] = []
        for entry in reconciled.value("schools") or []:
            if isinstance(entry, dict) and entry.get("name"):
                schools.append(
                    SchoolInfo(
                        name=str(entry["name"]),
                        type=normalize_school_type(entry.get("type")),
                        rating=coerce_number(entry.get("rating")),
                        distance=coerce_number(_leading_number(entry.get("distance"))),
                    )
                )

        return NeighborhoodInfo(
            walk_score=_as_int(reconciled.value("walk_score")),
            transit_score=_as_int(reconciled.value("transit_score")),
            bike_score=_as_int(reconciled.value("bike_score")),
            school_district=reconciled.value("school_district"),
            schools=schools,
        )


# ─── Helpers ────────────────────────────────────────────────────────


def _as_int(value: Any) -> int | None:
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(round(value))
    return None


def _leading_number(value: Any) -> Any:
    """'0.4 mi' → '0.4'; anything else passes through for coerce_number."""
    if isinstance(value, str) and value.strip():
        return value.split()[0]
    return value


def _build_hoa(raw: Any) -> HOAInfo | None:
    if not isinstance(raw, dict):
        return None
    fee = coerce_number(raw.get("fee"))
    if fee is None:
        return None
    frequency = str(raw.get("frequency") or "monthly").lower()
    return HOAInfo(fee=fee, frequency=frequency if frequency in _HOA_FREQUENCIES else "monthly")


def _confidence_map(records: list[SourceFactRecord]) -> dict[str, float]:
    confidence = {r.source.value: r.confidence for r in records}
    confidence["overall"] = max(confidence.values(), default=0.0)
    return confidence


def _input_hash(records: list[SourceFactRecord]) -> str:
    """SHA-256 over the source payloads, independent of arrival order."""
    canonical = sorted(
        ({"source": r.source.value, "payload": r.payload} for r in records),
        key=lambda item: item["source"],
    )
    serialized = json.dumps(canonical, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()
