"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Callable

import pytest

from emotion_fusion.config import Settings
from emotion_fusion.events.bus import EventBus
from emotion_fusion.fusion.engine import EmotionFusionEngine
from emotion_fusion.fusion.space import AffectSpace


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 10, 14, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def space() -> AffectSpace:
    return AffectSpace()


@pytest.fixture
def make_engine(clock: FakeClock) -> Callable[..., EmotionFusionEngine]:
    """Factory for engines sharing the test clock; keyword args override settings."""

    def _make(events: EventBus | None = None, **overrides: Any) -> EmotionFusionEngine:
        return EmotionFusionEngine(Settings(_env_file=None, **overrides), events=events, clock=clock)

    return _make


@pytest.fixture
def engine(make_engine) -> EmotionFusionEngine:
    return make_engine()
