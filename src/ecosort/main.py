"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ecosort import __version__
from ecosort.api.routes import router
from ecosort.config import Settings, get_settings
from ecosort.facilities import StaticFacilityLookup
from ecosort.ml.classifier import OnDeviceClassifier
from ecosort.ml.inference import InferencePool
from ecosort.ml.model_manager import ModelLifecycleManager
from ecosort.ml.remote import RemoteApiClassifier
from ecosort.ml.simulated import SimulatedClassifier
from ecosort.orchestrator import ClassificationOrchestrator

logger = logging.getLogger(__name__)


def build_orchestrator(
    settings: Settings,
    pool: InferencePool,
    model_manager: ModelLifecycleManager,
    http_client: httpx.AsyncClient | None = None,
) -> ClassificationOrchestrator:
    """Wire the classification backends around a shared model manager.

    ``ECOSORT_RANDOM_SEED`` makes the sub-category picks and the simulated
    fallback reproducible; unset, the generator is seeded from OS entropy.
    ``http_client`` is reused for every remote API call; the caller owns it.
    """
    rng = random.Random(settings.random_seed)
    facilities = StaticFacilityLookup()
    return ClassificationOrchestrator(
        model_manager=model_manager,
        on_device=OnDeviceClassifier(pool, facilities, rng),
        remote=RemoteApiClassifier(settings, facilities, rng, client=http_client),
        simulated=SimulatedClassifier(
            facilities,
            rng,
            min_delay=settings.simulated_min_delay,
            max_delay=settings.simulated_max_delay,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting EcoSort (device=%s, max_concurrent=%s, remote_model=%s, api_endpoint=%s)",
        settings.device,
        settings.max_concurrent,
        settings.remote_model_url or "-",
        settings.classifier_api_endpoint or "-",
    )

    inference_pool = InferencePool(settings)
    model_manager = ModelLifecycleManager(settings)
    http_client = httpx.AsyncClient(timeout=settings.classifier_api_timeout)
    app.state.inference_pool = inference_pool
    app.state.model_manager = model_manager
    app.state.http_client = http_client
    app.state.orchestrator = build_orchestrator(settings, inference_pool, model_manager, http_client)

    preload: asyncio.Task[object] | None = None
    if settings.preload_model:
        preload = asyncio.create_task(model_manager.load(), name="ecosort-model-preload")

    logger.info("EcoSort ready")
    yield

    logger.info("Shutting down EcoSort")
    if preload is not None and not preload.done():
        preload.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await preload
    await model_manager.shutdown()
    await http_client.aclose()
    inference_pool.shutdown()
    logger.info("EcoSort shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="EcoSort",
        description="Waste image classification with on-device, remote and simulated backends",
        version=__version__,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()
