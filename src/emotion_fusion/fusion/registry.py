"""Source registry — per-source readings, adaptive weights and reliability.

Reliability is a blend of three consistency factors between a source's
two most recent readings:

=======================  ================================  ======
Factor                   Value                             Weight
=======================  ================================  ======
Temporal consistency     exp(-Δt / 10 s)                   0.3
Category consistency     1.0 if unchanged, else 0.5        0.4
Confidence consistency   1 - |Δconfidence| / 2             0.3
=======================  ================================  ======

The source weight then follows reliability as ``reliability * 0.8 + 0.1``,
which keeps recomputed weights in [0.1, 0.9].
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError

from emotion_fusion.exceptions import InvalidReadingError
from emotion_fusion.fusion.space import AffectSpace, label
from emotion_fusion.models import EmotionReading, SourceReading, SourceState

logger = structlog.get_logger(__name__)

_TEMPORAL_FACTOR = 0.3
_CATEGORY_FACTOR = 0.4
_CONFIDENCE_FACTOR = 0.3
_CATEGORY_CHANGED = 0.5


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def compute_reliability(
    previous: SourceReading,
    current: SourceReading,
    *,
    decay_seconds: float = 10.0,
) -> float:
    """Blend temporal, category and confidence consistency into [0, 1]."""
    elapsed = max(0.0, (current.timestamp - previous.timestamp).total_seconds())
    temporal = math.exp(-elapsed / decay_seconds)
    category = 1.0 if current.category == previous.category else _CATEGORY_CHANGED
    confidence = 1.0 - abs(current.confidence - previous.confidence) / 2

    return clamp01(
        temporal * _TEMPORAL_FACTOR
        + category * _CATEGORY_FACTOR
        + confidence * _CONFIDENCE_FACTOR
    )


def weight_from_reliability(reliability: float) -> float:
    return reliability * 0.8 + 0.1


class SourceRegistry:
    """Owns every :class:`SourceState`.

    Parameters
    ----------
    space : AffectSpace
        Label table readings are validated against.
    default_weight : float
        Weight given to sources registered without one (including
        auto-registration on first update).
    time_decay : float
        Per-second exponential decay applied to a reading's confidence
        when deciding whether the source is still active.
    min_confidence : float
        Decayed confidence a source must exceed to take part in fusion.
    reliability_decay_seconds : float
        Time constant of the temporal-consistency factor.
    """

    def __init__(
        self,
        space: AffectSpace,
        *,
        default_weight: float = 0.1,
        time_decay: float = 0.1,
        min_confidence: float = 0.3,
        reliability_decay_seconds: float = 10.0,
    ) -> None:
        self._space = space
        self._default_weight = clamp01(default_weight)
        self._time_decay = time_decay
        self._min_confidence = min_confidence
        self._reliability_decay = reliability_decay_seconds
        self._sources: dict[str, SourceState] = {}

    # ── Registration ──────────────────────────────────────────

    def register(self, source_id: str, initial_weight: float | None = None) -> SourceState:
        """Create a source if it does not exist yet; return its state."""
        if not source_id:
            raise ValueError("source_id must be a non-empty string.")
        if initial_weight is not None and not math.isfinite(initial_weight):
            raise ValueError(f"initial weight must be a finite number, got {initial_weight!r}.")
        existing = self._sources.get(source_id)
        if existing is not None:
            return existing

        weight = self._default_weight if initial_weight is None else clamp01(initial_weight)
        state = SourceState(source_id=source_id, weight=weight)
        self._sources[source_id] = state
        logger.info("fusion.source_registered", source=source_id, weight=weight)
        return state

    def get(self, source_id: str) -> SourceState | None:
        return self._sources.get(source_id)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __iter__(self) -> Iterator[SourceState]:
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)

    def clear(self) -> None:
        self._sources.clear()

    # ── Updates ───────────────────────────────────────────────

    def validate(self, source_id: str, reading: EmotionReading | Mapping[str, Any]) -> EmotionReading:
        """Parse and check a raw reading, raising :class:`InvalidReadingError`."""
        if not isinstance(reading, EmotionReading):
            try:
                reading = EmotionReading.model_validate(reading)
            except ValidationError as exc:
                raise InvalidReadingError(source_id, str(exc)) from exc

        category = label(reading.category)
        if category not in self._space:
            raise InvalidReadingError(
                source_id,
                f"unknown category {category!r}; expected one of {self._space.categories}",
            )
        if not math.isfinite(reading.confidence) or not 0.0 <= reading.confidence <= 1.0:
            raise InvalidReadingError(
                source_id, f"confidence {reading.confidence!r} outside [0, 1]"
            )
        return EmotionReading(category=category, confidence=reading.confidence)

    def update(
        self,
        source_id: str,
        reading: EmotionReading | Mapping[str, Any],
        now: datetime,
    ) -> SourceState:
        """Store a new reading, auto-registering unknown sources.

        Nothing is modified when the reading is rejected.
        """
        checked = self.validate(source_id, reading)
        state = self.register(source_id)

        previous = state.reading
        current = SourceReading(
            category=checked.category,
            confidence=checked.confidence,
            timestamp=now,
        )
        state.reading = current
        state.last_update = now
        state.update_count += 1

        if previous is not None:
            state.reliability = compute_reliability(
                previous, current, decay_seconds=self._reliability_decay
            )
            state.weight = clamp01(weight_from_reliability(state.reliability))

        logger.debug(
            "fusion.source_updated",
            source=source_id,
            category=current.category,
            confidence=current.confidence,
            weight=round(state.weight, 4),
            reliability=round(state.reliability, 4),
        )
        return state

    def set_weight(self, source_id: str, weight: float) -> bool:
        """Overwrite a source's weight (clamped).  ``False`` if unknown.

        Raises ``ValueError`` for a non-finite weight.
        """
        state = self._sources.get(source_id)
        if state is None:
            return False
        if not math.isfinite(weight):
            raise ValueError(f"weight must be a finite number, got {weight!r}.")
        state.weight = clamp01(weight)
        return True

    # ── Recency ───────────────────────────────────────────────

    def decayed_confidence(self, state: SourceState, now: datetime) -> float:
        if state.reading is None:
            return 0.0
        elapsed = max(0.0, (now - state.reading.timestamp).total_seconds())
        return state.reading.confidence * math.exp(-self._time_decay * elapsed)

    def is_recent(self, state: SourceState, now: datetime) -> bool:
        """Whether the decayed confidence still exceeds ``min_confidence``."""
        return self.decayed_confidence(state, now) > self._min_confidence

    def active_sources(self, now: datetime) -> list[SourceState]:
        """Sources with a reading that are still recent, in registration order."""
        return [s for s in self._sources.values() if s.reading is not None and self.is_recent(s, now)]
