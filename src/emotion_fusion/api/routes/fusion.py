"""Fused estimate, method selection, history and conflict routes."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query

from emotion_fusion.api.dependencies import get_engine
from emotion_fusion.api.schemas import MethodRequest, ResolveRequest
from emotion_fusion.exceptions import UnknownFusionMethodError
from emotion_fusion.fusion.engine import EmotionFusionEngine

router = APIRouter(tags=["fusion"])


def _window(seconds: int) -> timedelta | None:
    """Lookback for a ``seconds`` query; ``None`` (unlimited) past timedelta.max."""
    try:
        return timedelta(seconds=seconds)
    except OverflowError:
        return None


@router.get("/fusion")
async def get_fused(engine: EmotionFusionEngine = Depends(get_engine)):
    """Current estimate, recomputed from the active sources."""
    return engine.get_fused_emotion().model_dump(mode="json")


@router.put("/fusion/method")
async def set_method(req: MethodRequest, engine: EmotionFusionEngine = Depends(get_engine)):
    try:
        engine.set_fusion_method(req.method)
    except UnknownFusionMethodError as exc:
        raise HTTPException(422, str(exc)) from exc
    return {"method": engine.fusion_method.value}


@router.get("/fusion/history")
async def get_history(
    seconds: int | None = Query(None, ge=1),
    engine: EmotionFusionEngine = Depends(get_engine),
):
    entries = (
        engine.get_fusion_history() if seconds is None else engine.get_fusion_history(_window(seconds))
    )
    return {"count": len(entries), "history": [e.model_dump(mode="json") for e in entries]}


@router.get("/conflicts")
async def get_conflicts(
    seconds: int | None = Query(None, ge=1),
    engine: EmotionFusionEngine = Depends(get_engine),
):
    records = engine.get_conflicts() if seconds is None else engine.get_conflicts(_window(seconds))
    return {"count": len(records), "conflicts": [r.model_dump(mode="json") for r in records]}


@router.post("/conflicts/resolve")
async def resolve_conflict(req: ResolveRequest, engine: EmotionFusionEngine = Depends(get_engine)):
    record = engine.resolve_conflict(req.preferred_source, note=req.note)
    if record is None:
        raise HTTPException(404, "No unresolved conflict, or unknown preferred source.")
    return record.model_dump(mode="json")


@router.post("/reset")
async def reset(engine: EmotionFusionEngine = Depends(get_engine)):
    engine.reset()
    return {"reset": True}
