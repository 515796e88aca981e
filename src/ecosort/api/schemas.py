"""Pydantic request/response schemas for the EcoSort API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from ecosort.ml.model_manager import ModelInfo


class TrainingDataInfo(BaseModel):
    samples: int
    accuracy: float
    last_updated: str


class ModelInfoResponse(BaseModel):
    """Metadata and load state of the on-device model."""

    name: str | None
    version: str | None
    accuracy_percent: float | None
    supported_formats: list[str]
    load_state: str = Field(description="One of 'idle', 'loading', 'loaded', 'error'")
    offline_capable: bool
    source: str | None = Field(description="One of 'offline_cache', 'remote', 'demo' once loaded")
    size_mb: float | None
    training_data: TrainingDataInfo | None
    error: str | None

    @classmethod
    def from_info(cls, info: ModelInfo) -> ModelInfoResponse:
        training = info.training_data
        return cls(
            name=info.name,
            version=info.version,
            accuracy_percent=info.accuracy_percent,
            supported_formats=sorted(info.supported_formats),
            load_state=info.load_state.value,
            offline_capable=info.offline_capable,
            source=info.source.value if info.source is not None else None,
            size_mb=info.size_mb,
            training_data=(
                TrainingDataInfo(
                    samples=training.samples,
                    accuracy=training.accuracy,
                    last_updated=training.last_updated,
                )
                if training is not None
                else None
            ),
            error=info.error,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    model_ready: bool
    load_state: str
    offline_mode: bool
    remote_api_configured: bool
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
