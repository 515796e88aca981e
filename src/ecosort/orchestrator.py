"""Backend selection and fallback for waste classification.

Per call the orchestrator picks exactly one primary backend:

1. ``ON_DEVICE`` when the model is loaded and the request is a decoded image,
2. ``REMOTE`` when an API endpoint is configured and the request is a file,
3. ``SIMULATED`` otherwise.

If the primary backend raises, the call falls through once to the simulated
classifier, so ``classify`` always returns a result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from ecosort.results import Backend

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from ecosort.ml.classifier import OnDeviceClassifier
    from ecosort.ml.model_manager import ModelInfo, ModelLifecycleManager
    from ecosort.ml.remote import RemoteApiClassifier
    from ecosort.ml.simulated import SimulatedClassifier
    from ecosort.results import ClassificationResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class RequestKind(StrEnum):
    DECODED_IMAGE = "decoded_image"
    FILE_BLOB = "file_blob"


@dataclass(frozen=True)
class FileBlob:
    """An opaque uploaded file, suitable for remote submission."""

    content: bytes
    filename: str = "image.jpg"
    content_type: str = "image/jpeg"


@dataclass(frozen=True)
class ClassificationRequest:
    """Input to ``classify``: either decoded pixels or an opaque file.

    Use ``from_image`` / ``from_file``; ``kind`` says which payload is set.
    """

    kind: RequestKind
    image: NDArray[np.uint8] | None = None
    file: FileBlob | None = None

    @classmethod
    def from_image(cls, image: NDArray[np.uint8]) -> ClassificationRequest:
        return cls(kind=RequestKind.DECODED_IMAGE, image=image)

    @classmethod
    def from_file(
        cls,
        content: bytes,
        filename: str = "image.jpg",
        content_type: str = "image/jpeg",
    ) -> ClassificationRequest:
        return cls(kind=RequestKind.FILE_BLOB, file=FileBlob(content, filename, content_type))


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackendAvailability:
    model_loaded: bool
    remote_configured: bool


def select_backend(kind: RequestKind, availability: BackendAvailability) -> Backend:
    """Pick the primary backend for a request of the given kind."""
    if availability.model_loaded and kind is RequestKind.DECODED_IMAGE:
        return Backend.ON_DEVICE
    if availability.remote_configured and kind is RequestKind.FILE_BLOB:
        return Backend.REMOTE
    return Backend.SIMULATED


class ClassificationOrchestrator:
    """Entry point for classification; never propagates backend failures."""

    def __init__(
        self,
        model_manager: ModelLifecycleManager,
        on_device: OnDeviceClassifier,
        remote: RemoteApiClassifier,
        simulated: SimulatedClassifier,
    ) -> None:
        self._model_manager = model_manager
        self._on_device = on_device
        self._remote = remote
        self._simulated = simulated

    def availability(self) -> BackendAvailability:
        return BackendAvailability(
            model_loaded=self._model_manager.is_ready(),
            remote_configured=self._remote.is_configured,
        )

    async def classify(self, request: ClassificationRequest) -> ClassificationResult:
        backend = select_backend(request.kind, self.availability())
        logger.debug("Classifying %s with %s backend", request.kind, backend)

        if backend is Backend.SIMULATED:
            return await self._simulated.classify()

        try:
            return await self._run_primary(backend, request)
        except Exception as e:
            logger.warning("%s classification failed, using simulated result: %s", backend, e)
        return await self._simulated.classify()

    async def _run_primary(self, backend: Backend, request: ClassificationRequest) -> ClassificationResult:
        if backend is Backend.ON_DEVICE:
            model = self._model_manager.loaded_model()
            if model is None or request.image is None:
                raise RuntimeError("On-device backend selected without a loaded model and image")
            return await self._on_device.classify(model, request.image)

        if request.file is None:
            raise RuntimeError("Remote backend selected without a file")
        return await self._remote.classify_via_api(request.file)

    def get_model_info(self) -> ModelInfo | None:
        return self._model_manager.get_model_info()

    def is_ready(self) -> bool:
        return self._model_manager.is_ready()
