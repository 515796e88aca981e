"""On-device waste classification with a loaded ONNX model."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import numpy as np

from ecosort import enrichment
from ecosort.errors import InferenceError
from ecosort.ml.preprocessing import preprocess_for_classification
from ecosort.ml.quality import analyze_image_quality
from ecosort.results import Backend, ClassificationResult, WasteCategory

if TYPE_CHECKING:
    import random

    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

    from ecosort.facilities import FacilityLookup
    from ecosort.ml.inference import InferencePool
    from ecosort.ml.model_manager import LoadedModel

logger = logging.getLogger(__name__)

CATEGORY_ORDER: tuple[WasteCategory, ...] = tuple(WasteCategory)


def run_session(session: InferenceSession, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
    """Execute the model and return the flat per-category score vector."""
    input_name = session.get_inputs()[0].name
    outputs = session.run(None, {input_name: tensor})
    return np.asarray(outputs[0], dtype=np.float32).reshape(-1)


def to_probabilities(scores: NDArray[np.float32]) -> NDArray[np.float32]:
    """Pass probabilities through unchanged; softmax anything else."""
    if np.all(scores >= 0.0) and np.isclose(float(scores.sum()), 1.0, atol=1e-3):
        return scores
    exp = np.exp(scores - np.max(scores))
    return (exp / exp.sum()).astype(np.float32)


class OnDeviceClassifier:
    """Runs the loaded model on a decoded image and enriches the result."""

    def __init__(self, pool: InferencePool, facilities: FacilityLookup, rng: random.Random) -> None:
        self._pool = pool
        self._facilities = facilities
        self._rng = rng

    async def classify(self, model: LoadedModel, image: NDArray[np.uint8]) -> ClassificationResult:
        """Classify a decoded HxWxC uint8 image.

        Raises:
            InferenceError: If preprocessing or model execution fails, or the
                model output does not have one score per category.
        """
        start = time.perf_counter()
        try:
            report = analyze_image_quality(image)
            tensor = preprocess_for_classification(image)
            scores = await self._pool.run(run_session, model.session, tensor)
        except TimeoutError:
            raise InferenceError("Inference queue timed out") from None
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e

        if scores.shape != (len(CATEGORY_ORDER),) or not np.all(np.isfinite(scores)):
            raise InferenceError(f"Expected {len(CATEGORY_ORDER)} finite scores, got shape {scores.shape}")

        probabilities = to_probabilities(scores)
        best = int(np.argmax(probabilities))
        category = CATEGORY_ORDER[best]
        confidence = enrichment.adjust_confidence(float(probabilities[best]) * 100.0, report)

        facilities = await self._facilities.nearest_facilities(category)
        result = ClassificationResult(
            category=category,
            confidence=confidence,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            backend=Backend.ON_DEVICE,
            image_analysis=report,
            details=enrichment.build_details(category, self._rng, facilities),
            alternative_disposal=enrichment.alternative_disposal(category),
            carbon_footprint_kg=enrichment.carbon_footprint_kg(category),
        )
        logger.debug(
            "On-device result %s (%d%%, quality=%s, lighting=%s) with %s",
            category,
            confidence,
            report.quality,
            report.lighting_condition,
            model.info.name,
        )
        return result
