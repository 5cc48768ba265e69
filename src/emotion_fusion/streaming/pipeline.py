"""Async reading pipeline connecting independent producers → engine → consumers."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from emotion_fusion.exceptions import InvalidReadingError
from emotion_fusion.fusion.engine import EmotionFusionEngine
from emotion_fusion.models import EmotionReading, FusedEstimate

logger = structlog.get_logger(__name__)

QueuedReading = tuple[str, EmotionReading | Mapping[str, Any]]


class ReadingPipeline:
    """In-process async queue that serialises readings into one engine.

    Producers (camera-frame callback, text analyser, interaction
    heuristics, manual UI) publish on their own cadence; a single consumer
    loop applies readings to the engine one at a time, so consecutive
    readings of a source are never interleaved.  Each resulting estimate
    is forwarded to the registered async consumers.
    """

    def __init__(self, engine: EmotionFusionEngine, maxsize: int = 10_000) -> None:
        self._engine = engine
        self._queue: asyncio.Queue[QueuedReading] = asyncio.Queue(maxsize=maxsize)
        self._consumers: list[Callable[[FusedEstimate], Awaitable[None]]] = []
        self._running = False
        self._processed_total = 0
        self._rejected_total = 0

    # ── Configuration ─────────────────────────────────────────

    def add_consumer(self, fn: Callable[[FusedEstimate], Awaitable[None]]) -> None:
        """Register an async callback that receives every fused estimate."""
        self._consumers.append(fn)

    # ── Producer side ─────────────────────────────────────────

    async def publish(self, source_id: str, reading: EmotionReading | Mapping[str, Any]) -> None:
        """Enqueue a reading for the engine."""
        await self._queue.put((source_id, reading))

    async def publish_batch(self, items: list[QueuedReading]) -> None:
        for item in items:
            await self._queue.put(item)

    # ── Consumer loop ─────────────────────────────────────────

    async def start(self) -> None:
        """Start the consumer loop (run as a background task)."""
        self._running = True
        logger.info("pipeline.started", consumers=len(self._consumers))

        last_stats_time = time.monotonic()

        while self._running:
            try:
                source_id, reading = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                await self._process(source_id, reading)
            finally:
                self._queue.task_done()

            # Periodic stats every 60 seconds
            now = time.monotonic()
            if now - last_stats_time >= 60:
                logger.info(
                    "pipeline.stats",
                    processed_total=self._processed_total,
                    rejected_total=self._rejected_total,
                    queue_pending=self._queue.qsize(),
                )
                last_stats_time = now

    async def _process(self, source_id: str, reading: EmotionReading | Mapping[str, Any]) -> None:
        try:
            estimate = self._engine.update_source(source_id, reading)
        except ValueError as exc:
            self._rejected_total += 1
            reason = exc.reason if isinstance(exc, InvalidReadingError) else str(exc)
            logger.warning("pipeline.reading_rejected", source=source_id, reason=reason)
            return

        self._processed_total += 1
        for consumer in self._consumers:
            try:
                await consumer(estimate)
            except Exception as exc:
                logger.error(
                    "pipeline.consumer_error",
                    consumer=getattr(consumer, "__qualname__", repr(consumer)),
                    error=str(exc),
                )

    async def drain(self) -> None:
        """Wait until every queued reading has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Gracefully stop the consumer loop."""
        self._running = False
        logger.info("pipeline.stopped", processed_total=self._processed_total)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def processed(self) -> int:
        return self._processed_total

    @property
    def rejected(self) -> int:
        return self._rejected_total
