"""
Best-effort normalizers for free-text address and measurement strings.

Same philosophy as a conservative regex extractor: when a string does not
match a pattern we return None (or an empty component) instead of
guessing or raising. Missing pieces are a legitimate absence, and the
completeness score downstream reflects the gap.
"""

from __future__ import annotations

import math
import re
from typing import Any

from .models import AreaMeasurement, PropertyAddress

SQFT_PER_ACRE = 43_560.0
SQFT_PER_SQM = 10.7639

_STATE_ZIP = re.compile(r"([A-Z]{2})?\s*(\d{5}(?:-\d{4})?)?", re.IGNORECASE)
_ACRES = re.compile(r"([\d.]+)\s*acres?")
_SQFT = re.compile(r"([\d.]+)\s*(?:sq\.?\s*ft|sqft|sf)")
_BARE_NUMBER = re.compile(r"([\d.]+)")


# ─── Address ────────────────────────────────────────────────────────


def parse_address(text: str) -> PropertyAddress:
    """Split '123 Main St, Austin, TX 78701' into components.

    Fixed positions: first segment street, second city, third "STATE ZIP".
    Anything past the third segment is ignored. A geocoder would do better;
    this only needs to be good enough for display and completeness.
    """
    parts = [p.strip() for p in text.split(",")]

    street = parts[0] if parts and parts[0] else text.strip()
    city = parts[1] if len(parts) > 1 else ""
    state = ""
    zip_code = ""

    if len(parts) > 2:
        match = _STATE_ZIP.match(parts[2])
        if match:
            state = (match.group(1) or "").upper()
            zip_code = match.group(2) or ""

    return PropertyAddress(
        street=street,
        city=city,
        state=state,
        zip=zip_code,
        formatted=text.strip(),
    )


# ─── Area ───────────────────────────────────────────────────────────


def parse_area(value: Any) -> AreaMeasurement | None:
    """Parse '0.25 acres', '10,890 sq ft' or '7500' into an AreaMeasurement.

    Order matters: acres first, then the sqft family, then a bare number
    (assumed square feet). Plain numbers pass straight through as sqft.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return AreaMeasurement(value=float(value), unit="sqft") if 0 < value < math.inf else None

    normalized = str(value).lower().replace(",", "")

    for pattern, unit in ((_ACRES, "acres"), (_SQFT, "sqft"), (_BARE_NUMBER, "sqft")):
        match = pattern.search(normalized)
        if match:
            number = _to_float(match.group(1))
            if number is not None:
                return AreaMeasurement(value=number, unit=unit)
    return None


def to_square_feet(area: AreaMeasurement | None) -> float | None:
    if area is None:
        return None
    if area.unit == "acres":
        return area.value * SQFT_PER_ACRE
    if area.unit == "sqm":
        return area.value * SQFT_PER_SQM
    return area.value


# ─── Scalars ────────────────────────────────────────────────────────


def coerce_number(value: Any) -> float | None:
    """Turn provider numbers ('1,998', '$450,000', 3) into floats. Garbage, NaN and inf → None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        number = _to_float(re.sub(r"[$,\s]", "", str(value)))
    if number is None or not math.isfinite(number):
        return None
    return number


def _to_float(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        return None


# ─── Category Normalizers ───────────────────────────────────────────


def normalize_property_type(raw: str | None) -> str | None:
    """Map listing-site wording onto our property-type vocabulary.

    Absent input stays absent; unrecognised wording falls back to single-family.
    """
    if not raw:
        return None

    normalized = raw.lower()
    if "condo" in normalized:
        return "condo"
    if "townhouse" in normalized or "town home" in normalized:
        return "townhouse"
    if any(word in normalized for word in ("multi", "duplex", "triplex")):
        return "multi-family"
    if "manufactured" in normalized or "mobile" in normalized:
        return "manufactured"
    if "commercial" in normalized:
        return "commercial"
    if "land" in normalized or "lot" in normalized:
        return "land"
    return "single-family"


def normalize_foundation(raw: str | None) -> str | None:
    if not raw:
        return None
    normalized = raw.lower()
    for keyword in ("slab", "basement", "crawl"):
        if keyword in normalized:
            return keyword
    return "other"


def normalize_school_type(raw: str | None) -> str:
    normalized = (raw or "").lower()
    for keyword in ("elementary", "middle", "high"):
        if keyword in normalized:
            return keyword
    return "private"


def normalize_price_event(raw: str | None) -> str:
    normalized = (raw or "").lower()
    if "sold" in normalized:
        return "sold"
    if "list" in normalized:
        return "listed"
    return "price-change"
