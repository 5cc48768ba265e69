"""Fusion strategies — combine the active sources into one estimate.

Three interchangeable algorithms share the :class:`FusionStrategy`
contract and are looked up by :class:`FusionMethod`:

==================  ===========================================================
Method              Combination
==================  ===========================================================
weighted_average    Weighted mean of category vectors, mapped back to the
                    nearest category.  Confidence = mean source confidence
                    scaled down by weight dispersion.
bayesian            Flat prior 0.1 per category, multiplied by
                    confidence × weight for each reported category, then
                    normalised.  Confidence = 1 - normalised entropy.
dempster_shafer     One simple mass function per source ({category}, Θ),
                    combined pairwise.  The conflict term K is fixed at 0
                    unless ``normalize_conflict`` is set.
==================  ===========================================================

A strategy returns ``None`` when the evidence cannot produce a meaningful
estimate (zero total weight, no positive mass); the engine substitutes
the fallback estimate.
"""

from __future__ import annotations

import math
import statistics
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from emotion_fusion.exceptions import UnknownFusionMethodError
from emotion_fusion.fusion.space import AffectSpace
from emotion_fusion.models import (
    EmotionVector,
    FusedEstimate,
    FusionMethod,
    SourceContribution,
    SourceState,
)

_BAYES_PRIOR = 0.1
_UNCERTAINTY = "uncertainty"


@dataclass(frozen=True, slots=True)
class FusionContext:
    """Everything a strategy needs besides the sources themselves."""

    space: AffectSpace
    now: datetime
    min_confidence: float = 0.3
    normalize_conflict: bool = False


def contributions(sources: list[SourceState]) -> list[SourceContribution]:
    return [
        SourceContribution(
            source_id=s.source_id,
            category=s.reading.category,
            confidence=s.reading.confidence,
            weight=s.weight,
        )
        for s in sources
        if s.reading is not None
    ]


def weight_diversity(weights: list[float]) -> float | None:
    """``1 - min(1, stddev / mean)``; ``None`` when the mean is zero."""
    if len(weights) <= 1:
        return 1.0
    mean = statistics.fmean(weights)
    if mean <= 0:
        return None
    return 1.0 - min(1.0, statistics.pstdev(weights) / mean)


def normalized_entropy(distribution: dict[str, float]) -> float:
    """Shannon entropy divided by log2 of the number of outcomes."""
    if len(distribution) < 2:
        return 0.0
    entropy = -sum(p * math.log2(p) for p in distribution.values() if p > 0)
    return entropy / math.log2(len(distribution))


# ── Strategy contract ────────────────────────────────────────


class FusionStrategy(ABC):
    """Contract every fusion algorithm implements.

    *sources* are the active sources only, each with a reading.
    """

    method: FusionMethod

    @abstractmethod
    def fuse(self, sources: list[SourceState], ctx: FusionContext) -> FusedEstimate | None:
        """Combine *sources*; return ``None`` to request the fallback."""


# ── Weighted average ─────────────────────────────────────────


class WeightedAverageFusion(FusionStrategy):
    """Vector-space fusion over (valence, arousal, engagement)."""

    method = FusionMethod.WEIGHTED_AVERAGE

    def fuse(self, sources: list[SourceState], ctx: FusionContext) -> FusedEstimate | None:
        if not sources:
            return None

        vectors = [ctx.space.vector(s.reading.category).as_tuple() for s in sources]
        fusion_weights = [s.weight * s.reading.confidence for s in sources]
        total = sum(fusion_weights)
        if total <= 0:
            return None

        fused = [0.0, 0.0, 0.0]
        for vec, w in zip(vectors, fusion_weights):
            share = w / total
            for i in range(3):
                fused[i] += vec[i] * share

        diversity = weight_diversity([s.weight for s in sources])
        if diversity is None:
            return None

        category, similarity = ctx.space.nearest(fused)
        mean_confidence = statistics.fmean(s.reading.confidence for s in sources)

        return FusedEstimate(
            category=category,
            confidence=max(0.0, min(1.0, mean_confidence * diversity)),
            method=self.method,
            timestamp=ctx.now,
            contributions=contributions(sources),
            vector=EmotionVector(valence=fused[0], arousal=fused[1], engagement=fused[2]),
            similarity=similarity,
        )


# ── Naive Bayesian ───────────────────────────────────────────


class BayesianFusion(FusionStrategy):
    """Naive Bayesian update from a flat prior.

    Each source multiplies its category's running value by
    ``confidence * weight``.  Both factors are at most 1, so a reported
    category can only lose mass relative to the untouched ones.
    """

    method = FusionMethod.BAYESIAN

    def fuse(self, sources: list[SourceState], ctx: FusionContext) -> FusedEstimate | None:
        if not sources:
            return None

        values = dict.fromkeys(ctx.space.categories, _BAYES_PRIOR)
        for s in sources:
            values[s.reading.category] *= s.reading.confidence * s.weight

        total = sum(values.values())
        if total <= 0:
            return None
        probabilities = {k: v / total for k, v in values.items()}

        # First category wins ties.
        category = max(probabilities, key=probabilities.__getitem__)
        entropy = normalized_entropy(probabilities)
        confidence = max(ctx.min_confidence, 1.0 - entropy)

        return FusedEstimate(
            category=category,
            confidence=max(0.0, min(1.0, confidence)),
            method=self.method,
            timestamp=ctx.now,
            contributions=contributions(sources),
            probabilities=probabilities,
            entropy=entropy,
        )


# ── Dempster-Shafer ──────────────────────────────────────────


def combine_masses(
    m1: dict[str, float],
    m2: dict[str, float],
    *,
    normalize: bool = False,
) -> dict[str, float] | None:
    """Combine two mass functions over singletons and Θ (``"uncertainty"``).

    Focal intersections: {a}∩{a} = {a}, {a}∩Θ = {a}, Θ∩Θ = Θ; {a}∩{b} is
    empty and its product is the conflict K.  Without *normalize* K is
    taken as 0 and the empty-set mass is dropped.  With *normalize* the
    result is divided by ``1 - K``; total conflict returns ``None``.
    """
    theta1 = m1.get(_UNCERTAINTY, 0.0)
    theta2 = m2.get(_UNCERTAINTY, 0.0)
    combined: dict[str, float] = {}
    conflict = 0.0

    for a, ma in m1.items():
        if a == _UNCERTAINTY:
            continue
        for b, mb in m2.items():
            if b == _UNCERTAINTY:
                continue
            if a == b:
                combined[a] = combined.get(a, 0.0) + ma * mb
            else:
                conflict += ma * mb
        combined[a] = combined.get(a, 0.0) + ma * theta2

    for b, mb in m2.items():
        if b != _UNCERTAINTY:
            combined[b] = combined.get(b, 0.0) + theta1 * mb

    combined[_UNCERTAINTY] = theta1 * theta2

    if normalize:
        if conflict >= 1.0:
            return None
        scale = 1.0 / (1.0 - conflict)
        combined = {k: v * scale for k, v in combined.items()}
    return combined


class DempsterShaferFusion(FusionStrategy):
    """Evidence combination with simple support functions."""

    method = FusionMethod.DEMPSTER_SHAFER

    def fuse(self, sources: list[SourceState], ctx: FusionContext) -> FusedEstimate | None:
        if not sources:
            return None

        mass_functions = []
        for s in sources:
            support = s.reading.confidence * s.weight
            mass_functions.append({s.reading.category: support, _UNCERTAINTY: 1.0 - support})

        combined: dict[str, float] | None = dict(mass_functions[0])
        for mass in mass_functions[1:]:
            combined = combine_masses(combined, mass, normalize=ctx.normalize_conflict)
            if combined is None:
                return None

        uncertainty = combined.pop(_UNCERTAINTY, 0.0)
        category, best = None, 0.0
        for candidate in ctx.space.categories:
            belief = combined.get(candidate, 0.0)
            if belief > best:
                category, best = candidate, belief
        if category is None:
            return None

        confidence = max(ctx.min_confidence, 1.0 - uncertainty)
        return FusedEstimate(
            category=category,
            confidence=max(0.0, min(1.0, confidence)),
            method=self.method,
            timestamp=ctx.now,
            contributions=contributions(sources),
            masses=combined,
            uncertainty=uncertainty,
        )


# ── Registry ──────────────────────────────────────────────────

_REGISTRY: dict[FusionMethod, type[FusionStrategy]] = {
    FusionMethod.WEIGHTED_AVERAGE: WeightedAverageFusion,
    FusionMethod.BAYESIAN: BayesianFusion,
    FusionMethod.DEMPSTER_SHAFER: DempsterShaferFusion,
}


def register_strategy(method: FusionMethod, cls: type[FusionStrategy]) -> None:
    """Register (or replace) the strategy class for a method."""
    _REGISTRY[method] = cls


def resolve_method(method: FusionMethod | str) -> FusionMethod:
    """Coerce *method* and check that a strategy exists for it."""
    try:
        resolved = FusionMethod(method)
    except ValueError:
        resolved = None
    if resolved is None or resolved not in _REGISTRY:
        raise UnknownFusionMethodError(
            f"No fusion strategy registered for {method!r}. "
            f"Available: {[m.value for m in _REGISTRY]}"
        )
    return resolved


def get_strategy(method: FusionMethod | str) -> FusionStrategy:
    """Instantiate the strategy for *method*.

    Raises :class:`UnknownFusionMethodError` if none is registered.
    """
    return _REGISTRY[resolve_method(method)]()


def available_methods() -> list[FusionMethod]:
    """Return methods that have a registered strategy."""
    return list(_REGISTRY.keys())
