"""Waste classification through an external HTTP API.

The endpoint receives the raw upload as multipart field ``image`` and answers
with JSON. Both camelCase and snake_case payloads are accepted; fields the
API leaves out are filled from the local enrichment tables, and
recommendations are always taken from local policy.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import httpx
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from ecosort import enrichment
from ecosort.errors import NotConfiguredError, RemoteApiError
from ecosort.results import (
    Backend,
    ClassificationDetails,
    ClassificationResult,
    EnvironmentalImpact,
    WasteCategory,
)

if TYPE_CHECKING:
    import random

    from ecosort.config import Settings
    from ecosort.facilities import FacilityLookup
    from ecosort.orchestrator import FileBlob

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response payload
# ---------------------------------------------------------------------------


class _RemoteImpact(BaseModel):
    co2_saved: float | None = Field(None, validation_alias=AliasChoices("co2Saved", "co2_saved"))
    energy_saved: float | None = Field(None, validation_alias=AliasChoices("energySaved", "energy_saved"))
    water_saved: float | None = Field(None, validation_alias=AliasChoices("waterSaved", "water_saved"))


class _RemoteDetails(BaseModel):
    sub_category: str | None = Field(None, validation_alias=AliasChoices("subCategory", "sub_category"))
    material: str | None = None
    environmental_impact: _RemoteImpact | None = Field(
        None, validation_alias=AliasChoices("environmentalImpact", "environmental_impact")
    )
    reduction_tips: list[str] | None = Field(
        None, validation_alias=AliasChoices("wasteReductionTips", "reduction_tips")
    )
    nearest_facilities: list[str] | None = Field(
        None, validation_alias=AliasChoices("nearestFacilities", "nearest_facilities")
    )


class RemotePayload(BaseModel):
    """Tolerant view of the remote API response. Unknown keys are ignored."""

    category: str | None = Field(None, validation_alias=AliasChoices("type", "category"))
    confidence: float | None = None
    details: _RemoteDetails | None = None
    alternative_disposal: list[str] | None = Field(
        None, validation_alias=AliasChoices("alternativeDisposal", "alternative_disposal")
    )
    carbon_footprint_kg: float | None = Field(
        None, validation_alias=AliasChoices("carbonFootprint", "carbon_footprint", "carbon_footprint_kg")
    )


def parse_category(value: str | None) -> WasteCategory:
    if not value:
        raise RemoteApiError("Remote response has no category")
    try:
        return WasteCategory(value.strip().lower())
    except ValueError:
        raise RemoteApiError(f"Remote response has unknown category: {value!r}") from None


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class RemoteApiClassifier:
    """Submits uploads to the configured classification endpoint."""

    def __init__(
        self,
        settings: Settings,
        facilities: FacilityLookup,
        rng: random.Random,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = settings.classifier_api_endpoint
        self._api_key = settings.classifier_api_key
        self._timeout = settings.classifier_api_timeout
        self._facilities = facilities
        self._rng = rng
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint)

    async def classify_via_api(self, file: FileBlob) -> ClassificationResult:
        """Classify an uploaded file remotely.

        Raises:
            NotConfiguredError: If no endpoint is configured.
            RemoteApiError: On transport failure, non-2xx status, or an
                unusable response body.
        """
        if not self._endpoint:
            raise NotConfiguredError("ML API endpoint not configured")

        start = time.perf_counter()
        response = await self._post(self._endpoint, file)
        if not response.is_success:
            raise RemoteApiError(
                f"API request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = RemotePayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteApiError(f"Malformed API response: {e}") from None

        result = await self._to_result(payload)
        result.processing_time_ms = int((time.perf_counter() - start) * 1000)
        return result

    async def _post(self, endpoint: str, file: FileBlob) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        files = {"image": (file.filename, file.content, file.content_type)}
        try:
            if self._client is not None:
                return await self._client.post(endpoint, files=files, headers=headers, timeout=self._timeout)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.post(endpoint, files=files, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteApiError(f"API request failed: {e}") from e

    async def _to_result(self, payload: RemotePayload) -> ClassificationResult:
        category = parse_category(payload.category)
        if payload.confidence is None:
            logger.warning("Remote response for %s has no confidence; reporting 0", category)
        confidence = enrichment.clamp_confidence(payload.confidence or 0.0)

        remote = payload.details or _RemoteDetails()
        impact = (
            EnvironmentalImpact(**remote.environmental_impact.model_dump())
            if remote.environmental_impact is not None
            else enrichment.environmental_impact(category)
        )
        details = ClassificationDetails(
            sub_category=remote.sub_category or enrichment.pick_sub_category(category, self._rng),
            material=remote.material or enrichment.pick_material(category, self._rng),
            recommendations=enrichment.recommendations(category),
            environmental_impact=impact,
            reduction_tips=remote.reduction_tips or enrichment.reduction_tips(category),
            nearest_facilities=remote.nearest_facilities or await self._facilities.nearest_facilities(category),
        )
        return ClassificationResult(
            category=category,
            confidence=confidence,
            processing_time_ms=0,
            backend=Backend.REMOTE,
            details=details,
            alternative_disposal=payload.alternative_disposal or enrichment.alternative_disposal(category),
            carbon_footprint_kg=(
                payload.carbon_footprint_kg
                if payload.carbon_footprint_kg is not None
                else enrichment.carbon_footprint_kg(category)
            ),
        )
