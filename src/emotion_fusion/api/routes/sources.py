"""Source registration, reading ingestion and weight routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from emotion_fusion.api.dependencies import get_engine, get_pipeline
from emotion_fusion.api.schemas import (
    IngestRequest,
    ReadingRequest,
    RegisterSourceRequest,
    WeightRequest,
)
from emotion_fusion.exceptions import InvalidReadingError
from emotion_fusion.fusion.engine import EmotionFusionEngine
from emotion_fusion.models import EmotionReading
from emotion_fusion.streaming.pipeline import ReadingPipeline

router = APIRouter(tags=["sources"])


@router.get("/sources")
async def list_sources(engine: EmotionFusionEngine = Depends(get_engine)):
    """Weight, reliability and update count of every registered source."""
    return {
        source_id: info.model_dump(mode="json")
        for source_id, info in engine.get_source_weights().items()
    }


@router.post("/sources", status_code=201)
async def register_source(
    req: RegisterSourceRequest,
    engine: EmotionFusionEngine = Depends(get_engine),
):
    state = engine.register_source(req.source_id, req.initial_weight)
    return state.model_dump(mode="json")


@router.post("/sources/{source_id}/readings")
async def submit_reading(
    source_id: str,
    req: ReadingRequest,
    engine: EmotionFusionEngine = Depends(get_engine),
):
    """Apply a reading immediately and return the resulting estimate."""
    try:
        estimate = engine.update_source(
            source_id, EmotionReading(category=req.category, confidence=req.confidence)
        )
    except InvalidReadingError as exc:
        raise HTTPException(422, exc.reason) from exc
    return estimate.model_dump(mode="json")


@router.put("/sources/{source_id}/weight")
async def adjust_weight(
    source_id: str,
    req: WeightRequest,
    engine: EmotionFusionEngine = Depends(get_engine),
):
    try:
        known = engine.adjust_source_weight(source_id, req.weight)
    except ValueError as exc:
        raise HTTPException(422, str(exc)) from exc
    if not known:
        raise HTTPException(404, f"Unknown source {source_id!r}.")
    return engine.get_source_weights()[source_id].model_dump(mode="json")


@router.post("/ingest", status_code=202)
async def ingest(req: IngestRequest, pipeline: ReadingPipeline = Depends(get_pipeline)):
    """Queue a reading for the serialising pipeline."""
    await pipeline.publish(
        req.source_id, EmotionReading(category=req.category, confidence=req.confidence)
    )
    return {"queued": True, "pending": pipeline.pending}
