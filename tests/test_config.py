"""Tests for settings loading."""

from emotion_fusion.config import Settings
from emotion_fusion.models import FusionMethod


def test_defaults():
    s = Settings(_env_file=None)
    assert s.fusion_method is FusionMethod.WEIGHTED_AVERAGE
    assert s.time_decay == 0.1
    assert s.min_confidence == 0.3
    assert s.conflict_threshold == 0.5
    assert s.history_limit == 100
    assert s.ds_normalize_conflict is False
    assert s.default_sources["facial"] == 0.5


def test_environment_override(monkeypatch):
    monkeypatch.setenv("EMOTION_FUSION_FUSION_METHOD", "dempster_shafer")
    monkeypatch.setenv("EMOTION_FUSION_HISTORY_LIMIT", "25")
    monkeypatch.setenv("EMOTION_FUSION_DS_NORMALIZE_CONFLICT", "true")

    s = Settings(_env_file=None)

    assert s.fusion_method is FusionMethod.DEMPSTER_SHAFER
    assert s.history_limit == 25
    assert s.ds_normalize_conflict is True
