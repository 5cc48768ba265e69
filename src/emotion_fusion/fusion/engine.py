"""Emotion fusion engine — the public entry point of the estimator.

This module provides :class:`EmotionFusionEngine`, which ties together:

1. The source registry (readings, weights, reliability, recency)
2. The selected fusion strategy
3. The conflict detector
4. The history and conflict ledgers
5. The event bus

An update flows through those stages in that order: reliability is
recomputed, the active sources are fused, conflicts are checked, the
result is appended to history and finally a ``fusion_update`` event is
published.

The engine is plain synchronous code without internal locking.  Callers
feeding it from several producers must serialise access, for example
through :class:`emotion_fusion.streaming.pipeline.ReadingPipeline`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

import structlog

from emotion_fusion.config import Settings, get_settings
from emotion_fusion.events.bus import (
    ConflictDetectedEvent,
    ConflictResolvedEvent,
    EventBus,
    FusionUpdateEvent,
    ResetEvent,
)
from emotion_fusion.fusion.conflicts import ConflictDetector
from emotion_fusion.fusion.ledger import Ledger
from emotion_fusion.fusion.registry import SourceRegistry, clamp01
from emotion_fusion.fusion.space import AffectSpace
from emotion_fusion.fusion.strategies import FusionContext, get_strategy, resolve_method
from emotion_fusion.models import (
    ConflictRecord,
    ConflictResolution,
    EmotionReading,
    FusedEstimate,
    FusionMethod,
    HistoryEntry,
    SourceState,
    SourceWeight,
    utcnow,
)

logger = structlog.get_logger(__name__)

_FALLBACK_CONFIDENCE = 0.1
_RESOLUTION_BOOST = 1.2

# Sentinel so that ``None`` can mean "no lookback limit".
_DEFAULT_LOOKBACK: Any = object()


class EmotionFusionEngine:
    """Multi-source affective-state estimator.

    Parameters
    ----------
    settings : Settings | None
        Tunables (decay, thresholds, ledger sizes, initial method).
        Defaults to :func:`get_settings`.
    space : AffectSpace | None
        Category table.  Defaults to the built-in eleven-label table.
    events : EventBus | None
        Bus notifications are published on.  A private bus is created
        when omitted.
    clock : Callable[[], datetime] | None
        Source of "now"; defaults to UTC wall-clock time.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        space: AffectSpace | None = None,
        events: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._space = space or AffectSpace()
        self._events = events or EventBus()
        self._clock = clock or utcnow

        s = self._settings
        self._registry = SourceRegistry(
            self._space,
            default_weight=s.default_source_weight,
            time_decay=s.time_decay,
            min_confidence=s.min_confidence,
            reliability_decay_seconds=s.reliability_decay_seconds,
        )
        self._detector = ConflictDetector(self._space, threshold=s.conflict_threshold)
        self._history: Ledger[HistoryEntry] = Ledger(s.history_limit)
        self._conflicts: Ledger[ConflictRecord] = Ledger(s.conflict_limit)
        self._method = resolve_method(s.fusion_method)
        self._strategy = get_strategy(self._method)

    # ── Properties ────────────────────────────────────────────

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def space(self) -> AffectSpace:
        return self._space

    @property
    def fusion_method(self) -> FusionMethod:
        return self._method

    def current_conflict_level(self) -> float:
        """Conflict level among the sources active right now."""
        return self._detector.conflict_level(self._registry.active_sources(self._clock()))

    # ── Sources ───────────────────────────────────────────────

    def register_source(self, source_id: str, initial_weight: float | None = None) -> SourceState:
        """Create *source_id* if absent; existing sources are left as they are."""
        return self._registry.register(source_id, initial_weight).model_copy(deep=True)

    def register_sources(self, weights: Mapping[str, float]) -> None:
        """Register several sources with their initial weights."""
        for source_id, weight in weights.items():
            self._registry.register(source_id, weight)

    def update_source(
        self,
        source_id: str,
        reading: EmotionReading | Mapping[str, Any],
    ) -> FusedEstimate:
        """Apply a new reading and return the resulting fused estimate.

        Raises :class:`~emotion_fusion.exceptions.InvalidReadingError` for
        an unknown category or a confidence outside [0, 1]; the source is
        then left exactly as it was.
        """
        now = self._clock()
        try:
            self._registry.update(source_id, reading, now)
        except ValueError as exc:
            logger.warning("fusion.reading_rejected", source=source_id, error=str(exc))
            raise

        active = self._registry.active_sources(now)
        estimate = self._fuse(active, now)

        conflict = self._detector.check(active, now)
        if conflict is not None:
            self._conflicts.append(conflict)
            self._events.publish(
                ConflictDetectedEvent(
                    timestamp=now,
                    conflict_id=conflict.id,
                    level=conflict.level,
                    sources=conflict.sources,
                    categories=conflict.categories,
                )
            )

        self._history.append(
            HistoryEntry(
                timestamp=now,
                sources={s.source_id: s.reading.category for s in self._registry if s.reading},
                fused=estimate,
                weights={s.source_id: s.weight for s in self._registry},
            )
        )
        self._events.publish(FusionUpdateEvent(timestamp=now, estimate=estimate))
        return estimate

    def adjust_source_weight(self, source_id: str, weight: float) -> bool:
        """Override a source's weight (clamped to [0, 1]).  ``False`` if unknown.

        Raises ``ValueError`` for a non-finite weight.
        """
        try:
            known = self._registry.set_weight(source_id, weight)
        except ValueError:
            logger.warning("fusion.invalid_weight", source=source_id, weight=repr(weight))
            raise
        if not known:
            logger.warning("fusion.unknown_source", source=source_id, operation="adjust_weight")
            return False
        logger.info("fusion.weight_adjusted", source=source_id, weight=clamp01(weight))
        return True

    def get_source_weights(self) -> dict[str, SourceWeight]:
        return {
            s.source_id: SourceWeight(
                weight=s.weight,
                reliability=s.reliability,
                last_update=s.last_update,
                update_count=s.update_count,
            )
            for s in self._registry
        }

    def get_source(self, source_id: str) -> SourceState | None:
        state = self._registry.get(source_id)
        return state.model_copy(deep=True) if state else None

    def active_sources(self) -> list[str]:
        return [s.source_id for s in self._registry.active_sources(self._clock())]

    # ── Fusion ────────────────────────────────────────────────

    def get_fused_emotion(self) -> FusedEstimate:
        """Recompute the estimate from the currently active sources."""
        now = self._clock()
        return self._fuse(self._registry.active_sources(now), now)

    def set_fusion_method(self, method: FusionMethod | str) -> None:
        """Switch algorithm; source state is untouched.

        Raises :class:`~emotion_fusion.exceptions.UnknownFusionMethodError`.
        """
        resolved = resolve_method(method)
        self._strategy = get_strategy(resolved)
        self._method = resolved
        logger.info("fusion.method_changed", method=resolved.value)

    def _fuse(self, active: list[SourceState], now: datetime) -> FusedEstimate:
        if active:
            ctx = FusionContext(
                space=self._space,
                now=now,
                min_confidence=self._settings.min_confidence,
                normalize_conflict=self._settings.ds_normalize_conflict,
            )
            estimate = self._strategy.fuse(active, ctx)
            if estimate is not None:
                return estimate
            logger.debug("fusion.degenerate_evidence", method=self._method.value, sources=len(active))
        return self._fallback(now)

    def _fallback(self, now: datetime) -> FusedEstimate:
        return FusedEstimate(
            category=self._space.fallback_category,
            confidence=_FALLBACK_CONFIDENCE,
            method=FusionMethod.FALLBACK,
            timestamp=now,
        )

    # ── Conflicts ─────────────────────────────────────────────

    def resolve_conflict(self, preferred_source_id: str, note: str = "") -> ConflictRecord | None:
        """Resolve the oldest unresolved conflict in favour of a source.

        The preferred source's weight is multiplied by 1.2 (capped at 1).
        Returns the resolved record, or ``None`` when the source is unknown
        or nothing is pending.
        """
        state = self._registry.get(preferred_source_id)
        if state is None:
            logger.warning(
                "fusion.unknown_source", source=preferred_source_id, operation="resolve_conflict"
            )
            return None

        pending = next((c for c in self._conflicts if not c.resolved), None)
        if pending is None:
            return None

        now = self._clock()
        pending.resolved = True
        pending.resolution = ConflictResolution(
            preferred_source=preferred_source_id, note=note, resolved_at=now
        )
        state.weight = clamp01(state.weight * _RESOLUTION_BOOST)

        logger.info(
            "fusion.conflict_resolved",
            conflict_id=pending.id,
            preferred_source=preferred_source_id,
            weight=round(state.weight, 4),
        )
        self._events.publish(
            ConflictResolvedEvent(
                timestamp=now,
                conflict_id=pending.id,
                preferred_source=preferred_source_id,
                note=note,
            )
        )
        return pending.model_copy(deep=True)

    def get_conflicts(self, duration: timedelta | None = _DEFAULT_LOOKBACK) -> list[ConflictRecord]:
        """Conflict records newer than ``now - duration`` (all when ``None``)."""
        return [c.model_copy(deep=True) for c in self._conflicts.since(self._cutoff(duration))]

    # ── History ───────────────────────────────────────────────

    def get_fusion_history(self, duration: timedelta | None = _DEFAULT_LOOKBACK) -> list[HistoryEntry]:
        """History entries newer than ``now - duration`` (all when ``None``), oldest first."""
        return self._history.since(self._cutoff(duration))

    def _cutoff(self, duration: Any) -> datetime | None:
        if duration is _DEFAULT_LOOKBACK:
            duration = timedelta(seconds=self._settings.history_lookback_seconds)
        if duration is None:
            return None
        try:
            return self._clock() - duration
        except OverflowError:
            # Window reaches past datetime.min: no limit.
            return None

    # ── Lifecycle ─────────────────────────────────────────────

    def reset(self) -> None:
        """Forget all sources, history and conflicts."""
        self._registry.clear()
        self._history.clear()
        self._conflicts.clear()
        logger.info("fusion.reset")
        self._events.publish(ResetEvent(timestamp=self._clock()))
