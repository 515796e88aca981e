"""Simulated classification used when no real backend can answer.

Waits a short random delay so the response time resembles real inference,
then returns a random category with high confidence.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from ecosort import enrichment
from ecosort.results import Backend, ClassificationResult, WasteCategory

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable

    from ecosort.facilities import FacilityLookup

MIN_CONFIDENCE: int = 85
MAX_CONFIDENCE: int = 99


class SimulatedClassifier:
    """Random classifier driven by an injectable ``random.Random``.

    Tests pass a seeded generator and a no-op ``sleep`` to get exact,
    instant results.
    """

    def __init__(
        self,
        facilities: FacilityLookup,
        rng: random.Random,
        min_delay: float = 0.35,
        max_delay: float = 0.75,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_delay > max_delay:
            raise ValueError(f"min_delay {min_delay} exceeds max_delay {max_delay}")
        self._facilities = facilities
        self._rng = rng
        self._min_delay = min_delay
        self._max_delay = max_delay
        self._sleep = sleep

    async def classify(self) -> ClassificationResult:
        start = time.perf_counter()
        await self._sleep(self._rng.uniform(self._min_delay, self._max_delay))

        category = self._rng.choice(tuple(WasteCategory))
        confidence = self._rng.randint(MIN_CONFIDENCE, MAX_CONFIDENCE)
        facilities = await self._facilities.nearest_facilities(category)
        return ClassificationResult(
            category=category,
            confidence=confidence,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            backend=Backend.SIMULATED,
            details=enrichment.build_details(category, self._rng, facilities),
            alternative_disposal=enrichment.alternative_disposal(category),
            carbon_footprint_kg=enrichment.carbon_footprint_kg(category),
        )
