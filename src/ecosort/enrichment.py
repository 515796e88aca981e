"""Deterministic disposal metadata keyed by waste category.

Everything here is a pure lookup. The only non-deterministic choice, the
sub-category and material guess, draws from a caller-supplied
``random.Random`` so a seeded generator gives reproducible output.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from ecosort.results import (
    ClassificationDetails,
    EnvironmentalImpact,
    ImageQuality,
    LightingCondition,
    WasteCategory,
)

if TYPE_CHECKING:
    import random

    from ecosort.results import ImageQualityReport

MAX_REPORTED_CONFIDENCE: int = 99
POOR_QUALITY_FACTOR: float = 0.8
LOW_LIGHT_FACTOR: float = 0.9

# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

RECOMMENDATIONS: dict[WasteCategory, tuple[str, ...]] = {
    WasteCategory.BIODEGRADABLE: (
        "Compost in your garden or community compost bin",
        "Remove any non-organic materials before composting",
        "Consider setting up a home composting system",
    ),
    WasteCategory.RECYCLABLE: (
        "Clean the item before recycling",
        "Check local recycling guidelines for this material",
        "Take to your nearest recycling center",
        "Consider reusing before recycling",
    ),
    WasteCategory.HAZARDOUS: (
        "Do not put in regular trash",
        "Take to specialized hazardous waste facility",
        "Check for manufacturer take-back programs",
        "Store safely until proper disposal",
    ),
}

SUB_CATEGORIES: dict[WasteCategory, tuple[str, ...]] = {
    WasteCategory.BIODEGRADABLE: ("Food waste", "Garden waste", "Paper products", "Natural materials"),
    WasteCategory.RECYCLABLE: ("Plastic container", "Glass bottle", "Metal can", "Paper product"),
    WasteCategory.HAZARDOUS: ("Electronic waste", "Battery", "Chemical container", "Paint container"),
}

MATERIALS: dict[WasteCategory, tuple[str, ...]] = {
    WasteCategory.BIODEGRADABLE: ("Organic matter", "Plant-based", "Natural fiber", "Biodegradable plastic"),
    WasteCategory.RECYCLABLE: ("PET plastic", "Aluminum", "Glass", "Cardboard", "Steel"),
    WasteCategory.HAZARDOUS: ("Lithium battery", "Lead", "Chemical compound", "Electronic components"),
}

# kg CO2, kWh, litres
ENVIRONMENTAL_IMPACT: dict[WasteCategory, tuple[float, float, float]] = {
    WasteCategory.BIODEGRADABLE: (2.3, 15.0, 25.0),
    WasteCategory.RECYCLABLE: (4.7, 35.0, 50.0),
    WasteCategory.HAZARDOUS: (1.2, 8.0, 12.0),
}

REDUCTION_TIPS: dict[WasteCategory, tuple[str, ...]] = {
    WasteCategory.BIODEGRADABLE: (
        "Start composting at home to reduce organic waste",
        "Buy only what you need to minimize food waste",
        "Use reusable containers instead of disposable ones",
    ),
    WasteCategory.RECYCLABLE: (
        "Rinse containers before recycling",
        "Choose products with minimal packaging",
        "Reuse items before recycling them",
    ),
    WasteCategory.HAZARDOUS: (
        "Buy rechargeable batteries instead of disposable ones",
        "Look for eco-friendly alternatives",
        "Participate in manufacturer take-back programs",
    ),
}

ALTERNATIVE_DISPOSAL: dict[WasteCategory, tuple[str, ...]] = {
    WasteCategory.BIODEGRADABLE: ("Home composting", "Community garden donation", "Worm composting"),
    WasteCategory.RECYCLABLE: ("Upcycling projects", "Donation to local schools", "DIY crafts"),
    WasteCategory.HAZARDOUS: ("Manufacturer take-back", "Special collection events", "Electronics stores"),
}

# kg CO2e saved by proper disposal of one item
CARBON_FOOTPRINT_KG: dict[WasteCategory, float] = {
    WasteCategory.BIODEGRADABLE: 0.8,
    WasteCategory.RECYCLABLE: 2.3,
    WasteCategory.HAZARDOUS: 1.1,
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def recommendations(category: WasteCategory) -> list[str]:
    return list(RECOMMENDATIONS[category])


def environmental_impact(category: WasteCategory) -> EnvironmentalImpact:
    co2, energy, water = ENVIRONMENTAL_IMPACT[category]
    return EnvironmentalImpact(co2_saved=co2, energy_saved=energy, water_saved=water)


def reduction_tips(category: WasteCategory) -> list[str]:
    return list(REDUCTION_TIPS[category])


def alternative_disposal(category: WasteCategory) -> list[str]:
    return list(ALTERNATIVE_DISPOSAL[category])


def carbon_footprint_kg(category: WasteCategory) -> float:
    return CARBON_FOOTPRINT_KG[category]


def pick_sub_category(category: WasteCategory, rng: random.Random) -> str:
    return rng.choice(SUB_CATEGORIES[category])


def pick_material(category: WasteCategory, rng: random.Random) -> str:
    return rng.choice(MATERIALS[category])


def build_details(
    category: WasteCategory,
    rng: random.Random,
    nearest_facilities: list[str],
) -> ClassificationDetails:
    """Assemble the full details block for a category."""
    return ClassificationDetails(
        sub_category=pick_sub_category(category, rng),
        material=pick_material(category, rng),
        recommendations=recommendations(category),
        environmental_impact=environmental_impact(category),
        reduction_tips=reduction_tips(category),
        nearest_facilities=nearest_facilities,
    )


# ---------------------------------------------------------------------------
# Confidence adjustment
# ---------------------------------------------------------------------------


def clamp_confidence(confidence: float) -> int:
    """Clamp to [0, 99] and round half up."""
    bounded = min(float(MAX_REPORTED_CONFIDENCE), max(0.0, confidence))
    return int(math.floor(bounded + 0.5))


def adjust_confidence(raw_confidence: float, report: ImageQualityReport) -> int:
    """Down-weight a 0-100 confidence for a degraded capture.

    Poor quality and low lighting each apply a multiplier; both compose when
    both hold. The result never exceeds 99.
    """
    adjusted = raw_confidence
    if report.quality == ImageQuality.POOR:
        adjusted *= POOR_QUALITY_FACTOR
    if report.lighting_condition == LightingCondition.LOW:
        adjusted *= LOW_LIGHT_FACTOR
    return clamp_confidence(adjusted)
