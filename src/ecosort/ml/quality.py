"""Brightness-based image quality analysis.

The whole report is derived from one number, the mean luminance of the
image, so identical pixel data always produces an identical report.
Object detection is not performed; ``object_count`` is a fixed placeholder.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ecosort.results import ImageQuality, ImageQualityReport, LightingCondition

if TYPE_CHECKING:
    from numpy.typing import NDArray

# Quality buckets: (GOOD_LOW, GOOD_HIGH) is good, (FAIR_LOW, GOOD_LOW] is fair.
GOOD_LOW: float = 100.0
GOOD_HIGH: float = 200.0
FAIR_LOW: float = 50.0

LIGHTING_LOW: float = 80.0
LIGHTING_OVEREXPOSED: float = 180.0

PLACEHOLDER_OBJECT_COUNT: int = 1


def mean_luminance(image: NDArray[np.uint8]) -> float:
    """Average of the per-pixel RGB mean over the full image.

    Accepts HxW grayscale or HxWxC arrays; an alpha channel is ignored.
    An empty image has luminance 0.
    """
    if image.size == 0:
        return 0.0
    if image.ndim == 3:
        image = image[..., :3]
    return float(np.mean(image, dtype=np.float64))


def classify_quality(luminance: float) -> ImageQuality:
    if GOOD_LOW < luminance < GOOD_HIGH:
        return ImageQuality.GOOD
    if FAIR_LOW < luminance <= GOOD_LOW:
        return ImageQuality.FAIR
    return ImageQuality.POOR


def classify_lighting(luminance: float) -> LightingCondition:
    if luminance > LIGHTING_OVEREXPOSED:
        return LightingCondition.OVEREXPOSED
    if luminance < LIGHTING_LOW:
        return LightingCondition.LOW
    return LightingCondition.GOOD


def clarity_score(luminance: float) -> float:
    return min(100.0, max(0.0, (luminance - FAIR_LOW) / 1.5))


def analyze_image_quality(image: NDArray[np.uint8]) -> ImageQualityReport:
    """Score an image for quality and lighting from its mean luminance."""
    luminance = mean_luminance(image)
    return ImageQualityReport(
        quality=classify_quality(luminance),
        lighting_condition=classify_lighting(luminance),
        clarity=clarity_score(luminance),
        object_count=PLACEHOLDER_OBJECT_COUNT,
    )
