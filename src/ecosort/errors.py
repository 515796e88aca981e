"""Exception types raised across the classification pipeline.

None of these are fatal to ``ClassificationOrchestrator.classify``: backend
errors are caught there and answered with a simulated result.
"""

from __future__ import annotations


class EcoSortError(Exception):
    """Base class for EcoSort errors."""


class ModelLoadError(EcoSortError):
    """No model source could produce a usable inference session."""


class InferenceError(EcoSortError):
    """On-device preprocessing or model execution failed."""


class NotConfiguredError(EcoSortError):
    """The remote classification API has no endpoint configured."""


class RemoteApiError(EcoSortError):
    """The remote classification API failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ImageValidationError(EcoSortError):
    """An uploaded file is not an acceptable image."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code
