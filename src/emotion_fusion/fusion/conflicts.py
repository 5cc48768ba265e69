"""Conflict detector — flags disagreement among active sources."""

from __future__ import annotations

from datetime import datetime
from itertools import combinations

import structlog

from emotion_fusion.fusion.space import MAX_CONFLICT_DISTANCE, AffectSpace
from emotion_fusion.models import ConflictParticipant, ConflictRecord, SourceState

logger = structlog.get_logger(__name__)


class ConflictDetector:
    """Measure how far apart the active sources' categories are.

    The conflict level is the mean pairwise distance between the sources'
    (valence, arousal) points, normalised by :data:`MAX_CONFLICT_DISTANCE`
    and capped at 1.  A record is produced only when the level exceeds
    *threshold* and the sources do not all report the same category.
    """

    def __init__(self, space: AffectSpace, threshold: float = 0.5) -> None:
        self._space = space
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def conflict_level(self, sources: list[SourceState]) -> float:
        readings = [s.reading for s in sources if s.reading is not None]
        if len(readings) < 2:
            return 0.0

        distances = [
            self._space.conflict_distance(a.category, b.category)
            for a, b in combinations(readings, 2)
        ]
        return min(1.0, (sum(distances) / len(distances)) / MAX_CONFLICT_DISTANCE)

    def check(self, sources: list[SourceState], now: datetime) -> ConflictRecord | None:
        """Return a new unresolved record if *sources* disagree, else ``None``."""
        active = [s for s in sources if s.reading is not None]
        if len(active) < 2:
            return None
        if len({s.reading.category for s in active}) < 2:
            return None

        level = self.conflict_level(active)
        if level <= self._threshold:
            return None

        record = ConflictRecord(
            timestamp=now,
            participants=[
                ConflictParticipant(
                    source_id=s.source_id,
                    category=s.reading.category,
                    confidence=s.reading.confidence,
                )
                for s in active
            ],
            level=level,
        )
        logger.info(
            "fusion.conflict_detected",
            conflict_id=record.id,
            level=round(level, 4),
            sources=record.sources,
            categories=record.categories,
        )
        return record
