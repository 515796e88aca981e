"""Disposal facility lookup.

Only a static per-category table is provided. A geolocation-backed service
can be swapped in by implementing ``FacilityLookup``.
"""

from __future__ import annotations

from typing import Protocol

from ecosort.results import WasteCategory


class FacilityLookup(Protocol):
    """Protocol for finding disposal facilities for a category."""

    async def nearest_facilities(self, category: WasteCategory) -> list[str]:
        """Return facility names, nearest first."""
        ...


STATIC_FACILITIES: dict[WasteCategory, tuple[str, ...]] = {
    WasteCategory.BIODEGRADABLE: ("Community Compost Center", "Green Garden Hub"),
    WasteCategory.RECYCLABLE: ("City Recycling Center", "EcoPoint Station"),
    WasteCategory.HAZARDOUS: ("Hazardous Waste Facility", "Electronics Recycling Center"),
}


class StaticFacilityLookup:
    """Returns the same facilities for every caller location."""

    async def nearest_facilities(self, category: WasteCategory) -> list[str]:
        return list(STATIC_FACILITIES[category])
