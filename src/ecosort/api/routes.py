"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status

from ecosort.api.middleware import verify_api_key
from ecosort.api.schemas import ErrorResponse, HealthResponse, ModelInfoResponse
from ecosort.errors import ImageValidationError
from ecosort.forecast import HouseholdProfile, WasteForecast, generate_waste_forecast
from ecosort.ml.preprocessing import decode_image, validate_upload
from ecosort.orchestrator import ClassificationRequest
from ecosort.results import ClassificationResult

if TYPE_CHECKING:
    from ecosort.config import Settings
    from ecosort.ml.inference import InferencePool
    from ecosort.ml.model_manager import ModelLifecycleManager
    from ecosort.orchestrator import ClassificationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_orchestrator(request: Request) -> ClassificationOrchestrator:
    orchestrator: ClassificationOrchestrator = request.app.state.orchestrator
    return orchestrator


def _get_model_manager(request: Request) -> ModelLifecycleManager:
    manager: ModelLifecycleManager = request.app.state.model_manager
    return manager


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


@router.post(
    "/classify",
    response_model=ClassificationResult,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
    },
    summary="Classify a waste item image",
)
async def classify(
    request: Request,
    file: UploadFile,
    submit: Literal["image", "file"] = "image",
) -> ClassificationResult:
    """Classify an uploaded image into a disposal category.

    ``submit=image`` decodes the upload so the on-device model can run on it;
    ``submit=file`` forwards the raw upload to the remote classification API.
    Once the upload passes validation a result is always returned.
    """
    settings = _get_settings(request)

    try:
        # Reject on the declared size before reading the body into memory.
        if file.size is not None:
            validate_upload(file.content_type, file.size, settings.max_file_size)
        content = await file.read(settings.max_file_size + 1)
        validate_upload(file.content_type, len(content), settings.max_file_size)
        if submit == "image":
            classification_request = ClassificationRequest.from_image(
                decode_image(content, max_pixels=settings.max_image_pixels)
            )
        else:
            classification_request = ClassificationRequest.from_file(
                content,
                filename=file.filename or "image",
                content_type=file.content_type or "application/octet-stream",
            )
    except ImageValidationError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from None

    result = await _get_orchestrator(request).classify(classification_request)
    logger.info(
        "Classified %s as %s (%d%%) via %s in %dms",
        file.filename,
        result.category,
        result.confidence,
        result.backend,
        result.processing_time_ms,
    )
    return result


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health and backend availability."""
    manager = _get_model_manager(request)
    pool = _get_inference_pool(request)
    availability = _get_orchestrator(request).availability()
    return HealthResponse(
        status="ok",
        model_ready=availability.model_loaded,
        load_state=manager.load_state.value,
        offline_mode=manager.is_offline_mode(),
        remote_api_configured=availability.remote_configured,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelInfoResponse | None,
    summary="Current on-device model",
)
async def model_info(request: Request) -> ModelInfoResponse | None:
    """Return the latest load attempt's metadata, or null before any attempt."""
    info = _get_orchestrator(request).get_model_info()
    return ModelInfoResponse.from_info(info) if info is not None else None


@router.post(
    "/model/reload",
    response_model=ModelInfoResponse,
    summary="Reload the on-device model",
)
async def reload_model(request: Request) -> ModelInfoResponse:
    """Start a fresh load attempt and wait for it to finish."""
    info = await _get_model_manager(request).reload()
    return ModelInfoResponse.from_info(info)


@router.post(
    "/forecast",
    response_model=WasteForecast,
    summary="Forecast household waste generation",
)
async def forecast(profile: HouseholdProfile) -> WasteForecast:
    """Estimate weekly and monthly waste for a household profile."""
    return generate_waste_forecast(profile)
