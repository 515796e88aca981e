"""Classification result types shared by every backend and the API."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class WasteCategory(StrEnum):
    """Disposal category. Member order matches the model's output order."""

    BIODEGRADABLE = "biodegradable"
    RECYCLABLE = "recyclable"
    HAZARDOUS = "hazardous"


class Backend(StrEnum):
    """Inference backend that produced a result."""

    ON_DEVICE = "on_device"
    REMOTE = "remote"
    SIMULATED = "simulated"


class ImageQuality(StrEnum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class LightingCondition(StrEnum):
    GOOD = "good"
    LOW = "low"
    OVEREXPOSED = "overexposed"


class ImageQualityReport(BaseModel):
    """Brightness-derived quality assessment of an input image."""

    quality: ImageQuality
    lighting_condition: LightingCondition
    clarity: float = Field(ge=0.0, le=100.0)
    object_count: int = Field(ge=0)


class EnvironmentalImpact(BaseModel):
    """Savings from disposing of one item correctly."""

    co2_saved: float | None = None
    energy_saved: float | None = None
    water_saved: float | None = None


class ClassificationDetails(BaseModel):
    sub_category: str | None = None
    material: str | None = None
    recommendations: list[str] = []
    environmental_impact: EnvironmentalImpact | None = None
    reduction_tips: list[str] = []
    nearest_facilities: list[str] = []


class ClassificationResult(BaseModel):
    """A classified waste item with disposal metadata."""

    category: WasteCategory
    confidence: int = Field(ge=0, le=99, description="Confidence percentage, never reported as 100")
    processing_time_ms: int = Field(ge=0)
    backend: Backend
    image_analysis: ImageQualityReport | None = None
    details: ClassificationDetails = Field(default_factory=ClassificationDetails)
    alternative_disposal: list[str] = []
    carbon_footprint_kg: float | None = Field(default=None, description="kg CO2e saved by proper disposal")
