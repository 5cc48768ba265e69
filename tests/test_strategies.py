"""Tests for the three fusion strategies."""

from __future__ import annotations

import pytest

from emotion_fusion.exceptions import UnknownFusionMethodError
from emotion_fusion.fusion.strategies import (
    BayesianFusion,
    DempsterShaferFusion,
    FusionContext,
    WeightedAverageFusion,
    available_methods,
    combine_masses,
    get_strategy,
    normalized_entropy,
    weight_diversity,
)
from emotion_fusion.models import FusionMethod, SourceReading, SourceState


def _source(clock, source_id: str, category: str, confidence: float, weight: float) -> SourceState:
    return SourceState(
        source_id=source_id,
        weight=weight,
        reading=SourceReading(category=category, confidence=confidence, timestamp=clock()),
    )


@pytest.fixture
def ctx(space, clock) -> FusionContext:
    return FusionContext(space=space, now=clock(), min_confidence=0.3)


# ── Weighted average ─────────────────────────────────────────


class TestWeightedAverage:
    def test_single_full_weight_source(self, ctx, clock):
        est = WeightedAverageFusion().fuse([_source(clock, "facial", "proud", 0.8, 1.0)], ctx)
        assert est.category == "proud"
        assert est.confidence == pytest.approx(0.8)
        assert est.similarity == pytest.approx(1.0)
        assert est.vector.valence == pytest.approx(0.7)
        assert est.method is FusionMethod.WEIGHTED_AVERAGE

    def test_unanimous_sources(self, ctx, clock):
        sources = [
            _source(clock, "facial", "happy", 0.9, 0.5),
            _source(clock, "text", "happy", 0.6, 0.3),
        ]
        est = WeightedAverageFusion().fuse(sources, ctx)
        assert est.category == "happy"
        # mean confidence 0.75 × diversity (1 - 0.1 / 0.4)
        assert est.confidence == pytest.approx(0.75 * 0.75)
        assert [c.source_id for c in est.contributions] == ["facial", "text"]

    def test_mixed_sources_land_between(self, ctx, clock):
        sources = [
            _source(clock, "facial", "angry", 0.8, 0.1),
            _source(clock, "text", "happy", 0.8, 0.1),
        ]
        est = WeightedAverageFusion().fuse(sources, ctx)
        assert est.vector.valence == pytest.approx(0.05)
        assert est.vector.arousal == pytest.approx(0.7)
        assert est.vector.engagement == pytest.approx(0.65)
        assert est.category == "surprised"
        assert est.confidence == pytest.approx(0.8)

    def test_zero_weights_request_fallback(self, ctx, clock):
        sources = [
            _source(clock, "facial", "angry", 0.8, 0.0),
            _source(clock, "text", "happy", 0.8, 0.0),
        ]
        assert WeightedAverageFusion().fuse(sources, ctx) is None

    def test_diversity_helper(self):
        assert weight_diversity([0.4]) == 1.0
        assert weight_diversity([0.2, 0.2]) == pytest.approx(1.0)
        assert weight_diversity([0.0, 0.0]) is None
        assert weight_diversity([1.0, 0.0, 0.0, 0.0]) == 0.0


# ── Bayesian ─────────────────────────────────────────────────


class TestBayesian:
    def test_distribution_is_normalised(self, ctx, clock):
        sources = [
            _source(clock, "facial", "happy", 0.9, 0.5),
            _source(clock, "text", "sad", 0.8, 0.3),
        ]
        est = BayesianFusion().fuse(sources, ctx)
        assert sum(est.probabilities.values()) == pytest.approx(1.0)
        assert set(est.probabilities) == set(ctx.space.categories)
        assert est.method is FusionMethod.BAYESIAN

    def test_update_multiplies_reported_category(self, ctx, clock):
        est = BayesianFusion().fuse([_source(clock, "facial", "happy", 0.9, 0.5)], ctx)
        total = 10 * 0.1 + 0.1 * 0.45
        assert est.probabilities["happy"] == pytest.approx(0.045 / total)
        assert est.probabilities["neutral"] == pytest.approx(0.1 / total)
        # Untouched categories keep the larger share; first of them wins.
        assert est.category == "sad"

    def test_confidence_floored_at_min_confidence(self, ctx, clock):
        est = BayesianFusion().fuse([_source(clock, "facial", "happy", 0.9, 0.5)], ctx)
        assert est.entropy > 0.99
        assert est.confidence == pytest.approx(0.3)

    def test_entropy_helper(self):
        assert normalized_entropy({"a": 0.5, "b": 0.5}) == pytest.approx(1.0)
        assert normalized_entropy({"a": 1.0, "b": 0.0}) == pytest.approx(0.0)
        assert normalized_entropy({"a": 1.0}) == 0.0


# ── Dempster-Shafer ──────────────────────────────────────────


class TestDempsterShafer:
    def test_single_source(self, ctx, clock):
        est = DempsterShaferFusion().fuse([_source(clock, "facial", "happy", 0.9, 0.5)], ctx)
        assert est.category == "happy"
        assert est.masses["happy"] == pytest.approx(0.45)
        assert est.uncertainty == pytest.approx(0.55)
        assert est.confidence == pytest.approx(0.45)

    def test_agreeing_sources_reinforce(self, ctx, clock):
        sources = [
            _source(clock, "facial", "happy", 0.9, 0.5),
            _source(clock, "text", "happy", 0.6, 0.3),
        ]
        est = DempsterShaferFusion().fuse(sources, ctx)
        assert est.masses["happy"] == pytest.approx(0.45 * 0.18 + 0.45 * 0.82 + 0.55 * 0.18)
        assert est.uncertainty == pytest.approx(0.55 * 0.82)
        assert est.confidence == pytest.approx(1 - 0.55 * 0.82)

    def test_conflict_term_fixed_at_zero(self, ctx, clock):
        sources = [
            _source(clock, "facial", "happy", 0.9, 0.5),
            _source(clock, "text", "sad", 0.8, 0.3),
        ]
        est = DempsterShaferFusion().fuse(sources, ctx)
        assert est.category == "happy"
        assert est.masses["happy"] == pytest.approx(0.45 * 0.76)
        assert est.masses["sad"] == pytest.approx(0.55 * 0.24)
        assert est.uncertainty == pytest.approx(0.55 * 0.76)
        # Conflict mass 0.45 × 0.24 is dropped, not redistributed.
        assert sum(est.masses.values()) + est.uncertainty == pytest.approx(1 - 0.45 * 0.24)

    def test_normalised_combination(self, space, clock):
        ctx = FusionContext(space=space, now=clock(), min_confidence=0.3, normalize_conflict=True)
        sources = [
            _source(clock, "facial", "happy", 0.9, 0.5),
            _source(clock, "text", "sad", 0.8, 0.3),
        ]
        est = DempsterShaferFusion().fuse(sources, ctx)
        scale = 1 / (1 - 0.45 * 0.24)
        assert est.uncertainty == pytest.approx(0.55 * 0.76 * scale)
        assert sum(est.masses.values()) + est.uncertainty == pytest.approx(1.0)

    def test_total_conflict_requests_fallback(self, space, clock):
        sources = [
            _source(clock, "facial", "happy", 1.0, 1.0),
            _source(clock, "text", "sad", 1.0, 1.0),
        ]
        normalised = FusionContext(space=space, now=clock(), normalize_conflict=True)
        assert DempsterShaferFusion().fuse(sources, normalised) is None
        # Without normalisation every singleton mass vanishes as well.
        plain = FusionContext(space=space, now=clock())
        assert DempsterShaferFusion().fuse(sources, plain) is None

    def test_combine_masses_is_order_independent(self):
        a = {"happy": 0.4, "uncertainty": 0.6}
        b = {"angry": 0.3, "uncertainty": 0.7}
        assert combine_masses(a, b) == pytest.approx(combine_masses(b, a))


# ── Registry ──────────────────────────────────────────────────


class TestStrategyRegistry:
    def test_available(self):
        assert set(available_methods()) == {
            FusionMethod.WEIGHTED_AVERAGE,
            FusionMethod.BAYESIAN,
            FusionMethod.DEMPSTER_SHAFER,
        }

    def test_lookup_by_string(self):
        assert isinstance(get_strategy("bayesian"), BayesianFusion)

    @pytest.mark.parametrize("method", ["fallback", "kalman", ""])
    def test_unknown_method(self, method):
        with pytest.raises(UnknownFusionMethodError, match="No fusion strategy"):
            get_strategy(method)
