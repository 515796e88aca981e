"""Tests for backend selection and the simulated fallback."""

from __future__ import annotations

import random
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import numpy as np
import pytest
from pydantic import ValidationError

from ecosort.config import Settings
from ecosort.errors import InferenceError
from ecosort.facilities import StaticFacilityLookup
from ecosort.ml.model_manager import LoadState, ModelLifecycleManager
from ecosort.ml.remote import RemoteApiClassifier
from ecosort.ml.simulated import SimulatedClassifier
from ecosort.orchestrator import (
    BackendAvailability,
    ClassificationOrchestrator,
    ClassificationRequest,
    RequestKind,
    select_backend,
)
from ecosort.results import Backend, ClassificationResult, WasteCategory

IMAGE_REQUEST = ClassificationRequest.from_image(np.full((16, 16, 3), 128, dtype=np.uint8))
FILE_REQUEST = ClassificationRequest.from_file(b"jpeg-bytes", filename="can.jpg")


async def _no_sleep(_seconds: float) -> None:
    return None


def _simulated(seed: int = 42) -> SimulatedClassifier:
    return SimulatedClassifier(StaticFacilityLookup(), random.Random(seed), sleep=_no_sleep)


def _result(backend: Backend) -> ClassificationResult:
    return ClassificationResult(
        category=WasteCategory.RECYCLABLE,
        confidence=77,
        processing_time_ms=3,
        backend=backend,
    )


def _manager(ready: bool) -> MagicMock:
    manager = MagicMock()
    manager.is_ready.return_value = ready
    manager.loaded_model.return_value = MagicMock() if ready else None
    return manager


def _remote(configured: bool) -> MagicMock:
    remote = MagicMock()
    remote.is_configured = configured
    remote.classify_via_api = AsyncMock(return_value=_result(Backend.REMOTE))
    return remote


def _on_device() -> MagicMock:
    on_device = MagicMock()
    on_device.classify = AsyncMock(return_value=_result(Backend.ON_DEVICE))
    return on_device


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


class TestSelectBackend:
    @pytest.mark.parametrize(
        ("kind", "model_loaded", "remote_configured", "expected"),
        [
            (RequestKind.DECODED_IMAGE, True, True, Backend.ON_DEVICE),
            (RequestKind.DECODED_IMAGE, True, False, Backend.ON_DEVICE),
            (RequestKind.DECODED_IMAGE, False, True, Backend.SIMULATED),
            (RequestKind.DECODED_IMAGE, False, False, Backend.SIMULATED),
            (RequestKind.FILE_BLOB, True, True, Backend.REMOTE),
            (RequestKind.FILE_BLOB, False, True, Backend.REMOTE),
            (RequestKind.FILE_BLOB, True, False, Backend.SIMULATED),
            (RequestKind.FILE_BLOB, False, False, Backend.SIMULATED),
        ],
    )
    def test_eligibility(
        self, kind: RequestKind, model_loaded: bool, remote_configured: bool, expected: Backend
    ) -> None:
        availability = BackendAvailability(model_loaded=model_loaded, remote_configured=remote_configured)
        assert select_backend(kind, availability) is expected

    def test_request_constructors_set_kind(self) -> None:
        assert IMAGE_REQUEST.kind is RequestKind.DECODED_IMAGE
        assert IMAGE_REQUEST.file is None
        assert FILE_REQUEST.kind is RequestKind.FILE_BLOB
        assert FILE_REQUEST.file is not None
        assert FILE_REQUEST.file.filename == "can.jpg"


# ---------------------------------------------------------------------------
# Dispatch and fallback
# ---------------------------------------------------------------------------


class TestClassificationOrchestrator:
    async def test_uses_on_device_for_images_when_loaded(self) -> None:
        on_device = _on_device()
        orchestrator = ClassificationOrchestrator(_manager(True), on_device, _remote(True), _simulated())

        result = await orchestrator.classify(IMAGE_REQUEST)

        assert result.backend is Backend.ON_DEVICE
        on_device.classify.assert_awaited_once()

    async def test_uses_remote_for_files_when_configured(self) -> None:
        remote = _remote(True)
        orchestrator = ClassificationOrchestrator(_manager(True), _on_device(), remote, _simulated())

        result = await orchestrator.classify(FILE_REQUEST)

        assert result.backend is Backend.REMOTE
        remote.classify_via_api.assert_awaited_once_with(FILE_REQUEST.file)

    async def test_unconfigured_remote_is_never_called(self) -> None:
        remote = _remote(False)
        orchestrator = ClassificationOrchestrator(_manager(False), _on_device(), remote, _simulated())

        result = await orchestrator.classify(FILE_REQUEST)

        assert result.backend is Backend.SIMULATED
        remote.classify_via_api.assert_not_awaited()

    async def test_image_without_loaded_model_is_simulated(self) -> None:
        on_device = _on_device()
        orchestrator = ClassificationOrchestrator(_manager(False), on_device, _remote(True), _simulated())

        result = await orchestrator.classify(IMAGE_REQUEST)

        assert result.backend is Backend.SIMULATED
        on_device.classify.assert_not_awaited()

    async def test_inference_error_falls_back_to_simulated(self) -> None:
        on_device = _on_device()
        on_device.classify.side_effect = InferenceError("session exploded")
        remote = _remote(True)
        orchestrator = ClassificationOrchestrator(_manager(True), on_device, remote, _simulated())

        result = await orchestrator.classify(IMAGE_REQUEST)

        assert result.backend is Backend.SIMULATED
        # Exactly one fallback, straight to simulated.
        remote.classify_via_api.assert_not_awaited()
        on_device.classify.assert_awaited_once()

    async def test_unexpected_error_falls_back_to_simulated(self) -> None:
        on_device = _on_device()
        on_device.classify.side_effect = ZeroDivisionError("bug")
        orchestrator = ClassificationOrchestrator(_manager(True), on_device, _remote(False), _simulated())

        result = await orchestrator.classify(IMAGE_REQUEST)

        assert result.backend is Backend.SIMULATED

    @pytest.mark.parametrize(
        "failure",
        [
            httpx.Response(500, json={"error": "boom"}),
            httpx.ReadTimeout("read timed out"),
        ],
    )
    async def test_remote_failures_fall_back_to_simulated(self, failure: object) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if isinstance(failure, Exception):
                raise failure
            assert isinstance(failure, httpx.Response)
            return failure

        settings = Settings(classifier_api_endpoint="https://classifier.example/api")
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        remote = RemoteApiClassifier(settings, StaticFacilityLookup(), random.Random(0), client=client)
        orchestrator = ClassificationOrchestrator(_manager(False), _on_device(), remote, _simulated())

        result = await orchestrator.classify(FILE_REQUEST)

        assert result.backend is Backend.SIMULATED
        assert 85 <= result.confidence <= 99

    async def test_failed_model_load_routes_to_simulated(self, tmp_path: Path) -> None:
        manager = ModelLifecycleManager(Settings(models_dir=str(tmp_path)))
        with patch("ecosort.ml.model_manager.build_demo_model", side_effect=RuntimeError("no memory")):
            await manager.load()
        assert manager.load_state is LoadState.ERROR

        on_device = _on_device()
        orchestrator = ClassificationOrchestrator(manager, on_device, _remote(False), _simulated())

        result = await orchestrator.classify(IMAGE_REQUEST)

        assert result.backend is Backend.SIMULATED
        on_device.classify.assert_not_awaited()
        assert orchestrator.is_ready() is False
        info = orchestrator.get_model_info()
        assert info is not None
        assert info.error is not None

    async def test_model_info_before_load_is_none(self, tmp_path: Path) -> None:
        manager = ModelLifecycleManager(Settings(models_dir=str(tmp_path)))
        orchestrator = ClassificationOrchestrator(manager, _on_device(), _remote(False), _simulated())
        assert orchestrator.get_model_info() is None
        assert orchestrator.is_ready() is False


# ---------------------------------------------------------------------------
# Simulated classifier
# ---------------------------------------------------------------------------


class TestSimulatedClassifier:
    async def test_seeded_output_is_exact(self) -> None:
        expected = random.Random(42)
        expected.uniform(0.35, 0.75)
        expected_category = expected.choice(tuple(WasteCategory))
        expected_confidence = expected.randint(85, 99)

        first = await _simulated(42).classify()
        second = await _simulated(42).classify()

        assert first.category is expected_category
        assert first.confidence == expected_confidence
        assert first.details == second.details
        assert first.backend is Backend.SIMULATED

    async def test_delay_and_confidence_bounds(self) -> None:
        delays: list[float] = []

        async def record(seconds: float) -> None:
            delays.append(seconds)

        for seed in range(50):
            simulated = SimulatedClassifier(StaticFacilityLookup(), random.Random(seed), sleep=record)
            result = await simulated.classify()
            assert 85 <= result.confidence <= 99
            assert result.category in set(WasteCategory)

        assert all(0.35 <= delay <= 0.75 for delay in delays)

    async def test_result_arrives_within_fallback_window(self) -> None:
        orchestrator = ClassificationOrchestrator(
            _manager(False),
            _on_device(),
            _remote(False),
            SimulatedClassifier(StaticFacilityLookup(), random.Random()),
        )

        start = time.perf_counter()
        result = await orchestrator.classify(IMAGE_REQUEST)
        elapsed = time.perf_counter() - start

        assert 0.35 <= elapsed < 1.0
        assert 85 <= result.confidence <= 99
        assert result.category in set(WasteCategory)

    def test_rejects_inverted_delay_bounds(self) -> None:
        with pytest.raises(ValueError, match="exceeds"):
            SimulatedClassifier(StaticFacilityLookup(), random.Random(), min_delay=1.0, max_delay=0.5)

    def test_settings_reject_inverted_delay_bounds(self) -> None:
        with pytest.raises(ValidationError, match="exceeds"):
            Settings(simulated_min_delay=1.0, simulated_max_delay=0.5)
        settings = Settings(simulated_min_delay=0.5, simulated_max_delay=0.5)
        assert settings.simulated_min_delay == settings.simulated_max_delay
