"""
Heuristic room-layout synthesizer.

When no floor plan exists we still owe the 3-D viewer something to draw.
This module turns four scalars (living area, stories, bedrooms, bathrooms)
into a plausible set of rectangular rooms.

Strategy:
  1. Split living area evenly across stories.
  2. Build a room catalog with relative area weights.
  3. Put common areas downstairs and private rooms upstairs (multi-story),
     or everything on one floor (single-story).
  4. Normalise weights per floor → target area per room.
  5. Stack rooms in two fixed-width columns with a running offset.
  6. Emit a closed four-wall rectangle and one placeholder door per room.

The output is deterministic: ids are uuid5 values derived from the inputs,
so the same statistics always produce byte-identical rooms. Every layout
is tagged source=heuristic with confidence 0.4 — a placeholder, never a
measurement.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Iterable

from .config import DEFAULT_ROOM_CATALOG, RoomCatalog, RoomTemplate
from .models import (
    LayoutSource,
    Opening,
    Point,
    PropertyDetails,
    RoomContext,
    RoomDimensions,
    RoomLayout,
    RoomPosition,
    Wall,
)
from .normalize import to_square_feet

logger = logging.getLogger(__name__)

_ROOM_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "property-reconciler/rooms")


class RoomLayoutSynthesizer:
    """Generates heuristic RoomContext lists from reconciled property details."""

    def __init__(self, catalog: RoomCatalog = DEFAULT_ROOM_CATALOG):
        self.catalog = catalog

    # ─── Public API ─────────────────────────────────────────────────

    def synthesize(
        self,
        details: PropertyDetails,
        property_id: str = "generated",
        story_height: float | None = None,
    ) -> list[RoomContext]:
        """Lay out rooms for a property.

        Args:
            details: Reconciled details; missing counts fall back to catalog defaults.
            property_id: Parent record id, also the seed for room ids.
            story_height: Overrides the catalog ceiling height when known.
        """
        catalog = self.catalog
        area = to_square_feet(details.living_area)
        living_area = area if area and area > 0 else catalog.default_living_area
        stories = max(details.stories or 1, 1)
        area_per_story = living_area / stories
        ceiling = story_height or catalog.ceiling_height

        rooms: list[RoomContext] = []
        for level, templates in self.assign_floors(details, stories):
            rooms.extend(
                self._layout_floor(level, templates, area_per_story, ceiling, property_id)
            )

        logger.info(
            "Synthesized %d heuristic room(s) over %d floor(s) from %.0f sqft",
            len(rooms), stories, living_area,
        )
        return rooms

    def build_catalog(self, details: PropertyDetails) -> tuple[
        list[RoomTemplate], list[RoomTemplate], list[RoomTemplate]
    ]:
        """Return (common areas, bedrooms, full bathrooms) for these details."""
        catalog = self.catalog
        bedroom_count = details.bedrooms or catalog.default_bedrooms
        full_baths = math.floor(details.bathrooms or catalog.default_bathrooms)

        bedrooms = [
            RoomTemplate("primary-bedroom", "Primary Bedroom", catalog.primary_bedroom_weight)
            if i == 0
            else RoomTemplate("bedroom", f"Bedroom {i + 1}", catalog.bedroom_weight)
            for i in range(bedroom_count)
        ]
        bathrooms = [
            RoomTemplate("primary-bathroom", "Primary Bath", catalog.primary_bathroom_weight)
            if i == 0
            else RoomTemplate("full-bathroom", f"Bath {i + 1}", catalog.bathroom_weight)
            for i in range(full_baths)
        ]
        return list(catalog.common_rooms), bedrooms, bathrooms

    def assign_floors(
        self, details: PropertyDetails, stories: int
    ) -> list[tuple[int, list[RoomTemplate]]]:
        """Single story: everything on floor 1 except the powder room.

        Multi-story: common areas (powder room included) on floor 1, all
        bedrooms and bathrooms on floor 2 regardless of how many stories exist.
        """
        common, bedrooms, bathrooms = self.build_catalog(details)

        if stories == 1:
            downstairs = [
                t for t in common if t.type not in self.catalog.single_story_exclusions
            ]
            floors = [(1, downstairs + bedrooms + bathrooms)]
        else:
            floors = [(1, common), (2, bedrooms + bathrooms)]

        return [(level, templates) for level, templates in floors if templates]

    # ─── Geometry ───────────────────────────────────────────────────

    def _layout_floor(
        self,
        level: int,
        templates: list[RoomTemplate],
        area_per_story: float,
        ceiling: float,
        property_id: str,
    ) -> list[RoomContext]:
        total_weight = sum(t.weight for t in templates)
        column_width = math.sqrt(area_per_story) / 2
        column_offsets = [0.0, 0.0]  # Running depth of the left and right columns

        rooms: list[RoomContext] = []
        for index, template in enumerate(templates):
            area = area_per_story * (template.weight / total_weight)
            length = area / column_width
            column = index % 2

            position = RoomPosition(
                x=0.0 if column == 0 else column_width,
                y=(level - 1) * ceiling,
                z=column_offsets[column],
            )
            column_offsets[column] += length

            seed = f"{property_id}/{level}/{index}/{template.type}"
            rooms.append(
                RoomContext(
                    id=str(uuid.uuid5(_ROOM_NAMESPACE, seed)),
                    property_id=property_id,
                    name=template.name,
                    type=template.type,
                    floor=level,
                    dimensions=RoomDimensions(
                        length=length, width=column_width, height=ceiling, sqft=area
                    ),
                    position=position,
                    layout=self._rectangle_layout(column_width, length, ceiling, seed),
                )
            )
        return rooms

    def _rectangle_layout(
        self, width: float, length: float, ceiling: float, seed: str
    ) -> RoomLayout:
        """Counter-clockwise rectangle starting at the origin, door centred on wall 0."""
        catalog = self.catalog
        corners = [
            Point(x=0.0, y=0.0),
            Point(x=width, y=0.0),
            Point(x=width, y=length),
            Point(x=0.0, y=length),
        ]
        walls = [
            Wall(
                start=corners[i],
                end=corners[(i + 1) % len(corners)],
                thickness=catalog.wall_thickness,
                height=ceiling,
            )
            for i in range(len(corners))
        ]
        door = Opening(
            id=str(uuid.uuid5(_ROOM_NAMESPACE, f"{seed}/door/0")),
            type="door",
            wall_index=0,
            position=width / 2,
            width=catalog.door_width,
            height=catalog.door_height,
        )
        return RoomLayout(
            walls=walls,
            openings=[door],
            ceiling_height=ceiling,
            confidence=catalog.confidence,
            source=LayoutSource.HEURISTIC,
        )


def merge_rooms(
    existing: Iterable[RoomContext], synthesized: Iterable[RoomContext]
) -> list[RoomContext]:
    """Combine previously attached rooms with a fresh heuristic layout.

    Rooms whose layout came from vision, user measurement or a scan are
    never replaced. Any floor that holds one of them keeps only those rooms;
    every other floor takes the synthesized rooms.
    """
    measured = [r for r in existing if r.layout.source != LayoutSource.HEURISTIC]
    measured_floors = {r.floor for r in measured}
    fresh = [r for r in synthesized if r.floor not in measured_floors]
    return sorted(measured + fresh, key=lambda r: r.floor)
