"""Bounded execution of on-device inference.

Architecture:
    async caller -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> ONNX session.run

A call that cannot get a slot within ``inference_queue_timeout`` raises
TimeoutError; the on-device classifier turns that into InferenceError so the
orchestrator can fall back.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from ecosort.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferencePool:
    """Owns the semaphore and worker threads used for ONNX inference."""

    def __init__(self, settings: Settings) -> None:
        self._timeout = settings.inference_queue_timeout
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="ecosort-inference",
        )
        self._active_count = 0
        self._queue_depth = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a blocking function on a worker thread once a slot is free.

        Raises:
            TimeoutError: If no slot frees up within the queue timeout.
        """
        with self._counted("_queue_depth"):
            try:
                await asyncio.wait_for(self._semaphore.acquire(), timeout=self._timeout)
            except TimeoutError:
                logger.warning("Inference queue full for %.1fs, giving up", self._timeout)
                raise

        try:
            with self._counted("_active_count"):
                loop = asyncio.get_running_loop()
                return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()

    @contextmanager
    def _counted(self, counter: str) -> Iterator[None]:
        with self._counter_lock:
            setattr(self, counter, getattr(self, counter) + 1)
        try:
            yield
        finally:
            with self._counter_lock:
                setattr(self, counter, getattr(self, counter) - 1)

    @property
    def active_count(self) -> int:
        """Number of inference calls currently executing."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of calls waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
