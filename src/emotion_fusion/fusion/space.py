"""Affect space — the immutable category → (valence, arousal, engagement) table.

The table is configuration, not code: an :class:`AffectSpace` is built once
and injected into the engine, so alternate affect models only need a
different mapping.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping, Sequence
from enum import Enum
from types import MappingProxyType

from emotion_fusion.models import EmotionCategory, EmotionVector

# Largest Euclidean distance between two points of [-1, 1]^3.
MAX_VECTOR_DISTANCE = math.sqrt(12)

# Empirical largest distance in the (valence, arousal) plane.
MAX_CONFLICT_DISTANCE = 2.8


def _vec(valence: float, arousal: float, engagement: float) -> EmotionVector:
    return EmotionVector(valence=valence, arousal=arousal, engagement=engagement)


DEFAULT_EMOTION_MODELS: Mapping[str, EmotionVector] = MappingProxyType({
    EmotionCategory.HAPPY.value: _vec(0.8, 0.6, 0.9),
    EmotionCategory.SAD.value: _vec(-0.8, -0.4, 0.2),
    EmotionCategory.ANGRY.value: _vec(-0.7, 0.8, 0.4),
    EmotionCategory.FRUSTRATED.value: _vec(-0.6, 0.5, 0.3),
    EmotionCategory.CONFUSED.value: _vec(-0.3, 0.2, 0.4),
    EmotionCategory.BORED.value: _vec(-0.4, -0.7, 0.1),
    EmotionCategory.EXCITED.value: _vec(0.9, 0.9, 1.0),
    EmotionCategory.NEUTRAL.value: _vec(0.0, 0.0, 0.5),
    EmotionCategory.ANXIOUS.value: _vec(-0.5, 0.7, 0.6),
    EmotionCategory.PROUD.value: _vec(0.7, 0.5, 0.8),
    EmotionCategory.SURPRISED.value: _vec(0.3, 0.9, 0.7),
})


def label(category: str | Enum) -> str:
    """Plain string form of a category label."""
    return category.value if isinstance(category, Enum) else str(category)


def euclidean(a: Sequence[float], b: Sequence[float]) -> float:
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


class AffectSpace:
    """Read-only view over an emotion-category table.

    Parameters
    ----------
    models : Mapping[str, EmotionVector]
        Category label → vector.  Iteration order is kept and breaks ties
        (the first category wins).
    fallback_category : str
        Label reported when there is no usable evidence; must be in
        *models*.
    """

    def __init__(
        self,
        models: Mapping[str, EmotionVector] = DEFAULT_EMOTION_MODELS,
        fallback_category: str = EmotionCategory.NEUTRAL.value,
    ) -> None:
        table = {label(k): v for k, v in models.items()}
        if len(table) < 2:
            raise ValueError("An affect space needs at least two categories.")
        fallback = label(fallback_category)
        if fallback not in table:
            raise ValueError(
                f"Fallback category {fallback!r} is not in the affect table. "
                f"Available: {list(table)}"
            )
        self._models: Mapping[str, EmotionVector] = MappingProxyType(table)
        self._fallback = fallback

    # ── Lookup ────────────────────────────────────────────────

    @property
    def models(self) -> Mapping[str, EmotionVector]:
        return self._models

    @property
    def categories(self) -> list[str]:
        return list(self._models)

    @property
    def fallback_category(self) -> str:
        return self._fallback

    def __contains__(self, category: object) -> bool:
        if not isinstance(category, str):
            return False
        return label(category) in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def vector(self, category: str) -> EmotionVector:
        """Return the vector of *category* (``KeyError`` if unknown)."""
        return self._models[label(category)]

    # ── Geometry ──────────────────────────────────────────────

    def nearest(self, point: Sequence[float]) -> tuple[str, float]:
        """Map *point* back to the closest category.

        Returns ``(category, similarity)`` where similarity is
        ``1 - distance / MAX_VECTOR_DISTANCE``.
        """
        best = self._fallback
        best_distance = math.inf
        for category, vec in self._models.items():
            distance = euclidean(point, vec.as_tuple())
            if distance < best_distance:
                best, best_distance = category, distance
        similarity = max(0.0, 1.0 - best_distance / MAX_VECTOR_DISTANCE)
        return best, similarity

    def conflict_distance(self, a: str, b: str) -> float:
        """Distance between two categories on the valence/arousal plane only."""
        va, vb = self.vector(a), self.vector(b)
        return euclidean((va.valence, va.arousal), (vb.valence, vb.arousal))
