"""FastAPI application — HTTP surface over one fusion engine.

The application owns its engine (``app.state.engine``) and the reading
pipeline started in the lifespan (``app.state.pipeline``).  Build
independent applications with :func:`create_app`; ``app`` is the
default instance used by ``emotion-fusion serve``.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress

import structlog
from fastapi import FastAPI

from emotion_fusion import __version__
from emotion_fusion.api.middleware import setup_middleware
from emotion_fusion.api.routes.fusion import router as fusion_router
from emotion_fusion.api.routes.sources import router as sources_router
from emotion_fusion.config import Settings, get_settings
from emotion_fusion.fusion.engine import EmotionFusionEngine
from emotion_fusion.streaming.pipeline import ReadingPipeline

logger = structlog.get_logger(__name__)


def create_app(
    engine: EmotionFusionEngine | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build an application around *engine* (a fresh one when omitted)."""
    settings = settings or get_settings()
    engine = engine or EmotionFusionEngine(settings)
    if settings.register_default_sources:
        engine.register_sources(settings.default_sources)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hooks."""
        pipeline = ReadingPipeline(engine)
        task = asyncio.create_task(pipeline.start())
        app.state.pipeline = pipeline
        logger.info("server.started", method=engine.fusion_method.value)

        yield  # ← application runs

        await pipeline.stop()
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        app.state.pipeline = None
        logger.info("server.stopped")

    app = FastAPI(
        title="Emotion Fusion API",
        description="Multi-source emotion-state estimation with conflict tracking.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.pipeline = None

    setup_middleware(app)
    app.include_router(sources_router)
    app.include_router(fusion_router)

    @app.get("/health", tags=["system"])
    async def health():
        pipeline = app.state.pipeline
        return {
            "status": "ok",
            "method": engine.fusion_method.value,
            "sources": len(engine.get_source_weights()),
            "pipeline_pending": pipeline.pending if pipeline else 0,
        }

    return app


app = create_app()
