"""Tests for the household waste forecast."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ecosort.forecast import HouseholdProfile, generate_waste_forecast


class TestGenerateWasteForecast:
    def test_defaults_to_two_person_apartment(self) -> None:
        forecast = generate_waste_forecast(HouseholdProfile())

        assert forecast.household_type == "apartment"
        assert forecast.weekly_waste.biodegradable == pytest.approx(6.4)
        assert forecast.weekly_waste.recyclable == pytest.approx(5.6)
        assert forecast.weekly_waste.hazardous == pytest.approx(0.6)

    def test_monthly_breakdown(self) -> None:
        forecast = generate_waste_forecast(HouseholdProfile(household_size=1, household_type="office"))

        breakdown = forecast.monthly_forecast.breakdown
        assert forecast.monthly_forecast.total == pytest.approx(6.3 * 4.3)
        assert breakdown["Food waste"] == pytest.approx(3.2 * 0.7 * 4.3)
        assert breakdown["Plastic packaging"] == pytest.approx(2.8 * 0.5 * 4.3)
        assert breakdown["Paper products"] == pytest.approx(2.8 * 0.3 * 4.3)
        assert breakdown["Electronics"] == pytest.approx(0.3 * 0.8 * 4.3)

    def test_fixed_recommendations_and_savings(self) -> None:
        forecast = generate_waste_forecast(HouseholdProfile(household_size=4))
        assert len(forecast.recommendations) == 3
        assert forecast.potential_savings.cost == 45.5
        assert "15L water saved" in forecast.potential_savings.environmental

    def test_household_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            HouseholdProfile(household_size=0)
