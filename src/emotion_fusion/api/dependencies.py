"""Request-scoped accessors for the objects owned by the application."""

from __future__ import annotations

from fastapi import HTTPException, Request

from emotion_fusion.fusion.engine import EmotionFusionEngine
from emotion_fusion.streaming.pipeline import ReadingPipeline


def get_engine(request: Request) -> EmotionFusionEngine:
    return request.app.state.engine


def get_pipeline(request: Request) -> ReadingPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(503, "Reading pipeline not ready.")
    return pipeline
