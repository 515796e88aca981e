"""Environment-based configuration for EcoSort."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from ECOSORT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ECOSORT_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    log_level: str = "INFO"

    # Authentication for this service's own API (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    inference_queue_timeout: float = Field(default=5.0, gt=0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=5_242_880, ge=1)

    # Model lifecycle
    models_dir: str = ".ecosort/models"
    remote_model_url: str | None = None
    preload_model: bool = True

    # Remote classification API (None = disabled)
    classifier_api_endpoint: str | None = None
    classifier_api_key: str | None = None
    classifier_api_timeout: float | None = Field(default=None, gt=0)

    # Simulated fallback
    simulated_min_delay: float = Field(default=0.35, ge=0)
    simulated_max_delay: float = Field(default=0.75, ge=0)
    random_seed: int | None = None

    @model_validator(mode="after")
    def check_simulated_delays(self) -> Settings:
        if self.simulated_min_delay > self.simulated_max_delay:
            raise ValueError(
                f"simulated_min_delay {self.simulated_min_delay} exceeds simulated_max_delay {self.simulated_max_delay}"
            )
        return self


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
