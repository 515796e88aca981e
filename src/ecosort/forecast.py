"""Household waste generation forecast."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

WEEKS_PER_MONTH: float = 4.3

# kg per person per week
WEEKLY_KG_PER_PERSON: dict[str, float] = {
    "biodegradable": 3.2,
    "recyclable": 2.8,
    "hazardous": 0.3,
}

FORECAST_RECOMMENDATIONS: tuple[str, ...] = (
    "Consider starting a composting system",
    "Switch to bulk buying to reduce packaging",
    "Set up a household recycling station",
)

POTENTIAL_COST_SAVINGS: float = 45.5
POTENTIAL_ENVIRONMENTAL_SAVINGS: tuple[str, ...] = (
    "2.3 kg CO2 reduction",
    "15L water saved",
    "8kWh energy saved",
)


class HouseholdProfile(BaseModel):
    household_size: int = Field(default=2, ge=1)
    household_type: Literal["apartment", "house", "office"] = "apartment"


class WeeklyWaste(BaseModel):
    biodegradable: float
    recyclable: float
    hazardous: float


class MonthlyForecast(BaseModel):
    total: float
    breakdown: dict[str, float]


class PotentialSavings(BaseModel):
    cost: float
    environmental: list[str]


class WasteForecast(BaseModel):
    household_type: Literal["apartment", "house", "office"]
    weekly_waste: WeeklyWaste
    monthly_forecast: MonthlyForecast
    recommendations: list[str]
    potential_savings: PotentialSavings


def generate_waste_forecast(profile: HouseholdProfile) -> WasteForecast:
    """Estimate weekly and monthly waste (kg) for a household."""
    size = profile.household_size
    weekly = WeeklyWaste(**{category: rate * size for category, rate in WEEKLY_KG_PER_PERSON.items()})

    total = (weekly.biodegradable + weekly.recyclable + weekly.hazardous) * WEEKS_PER_MONTH
    breakdown = {
        "Food waste": weekly.biodegradable * 0.7 * WEEKS_PER_MONTH,
        "Plastic packaging": weekly.recyclable * 0.5 * WEEKS_PER_MONTH,
        "Paper products": weekly.recyclable * 0.3 * WEEKS_PER_MONTH,
        "Electronics": weekly.hazardous * 0.8 * WEEKS_PER_MONTH,
    }

    return WasteForecast(
        household_type=profile.household_type,
        weekly_waste=weekly,
        monthly_forecast=MonthlyForecast(total=total, breakdown=breakdown),
        recommendations=list(FORECAST_RECOMMENDATIONS),
        potential_savings=PotentialSavings(
            cost=POTENTIAL_COST_SAVINGS,
            environmental=list(POTENTIAL_ENVIRONMENTAL_SAVINGS),
        ),
    )
