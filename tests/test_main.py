"""Tests for the command-line replay."""

from __future__ import annotations

import io
import json

import pytest

from emotion_fusion.config import get_settings
from emotion_fusion.main import replay
from emotion_fusion.models import FusionMethod


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.setenv("EMOTION_FUSION_FUSION_METHOD", "weighted_average")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _write(tmp_path, records):
    path = tmp_path / "readings.jsonl"
    path.write_text("\n".join(r if isinstance(r, str) else json.dumps(r) for r in records) + "\n")
    return path


def test_replay_prints_estimates_and_summary(tmp_path):
    path = _write(
        tmp_path,
        [
            {"source": "facial", "category": "angry", "confidence": 0.8, "timestamp": "2026-01-10T14:00:00+00:00"},
            {"source": "text", "emotion": "happy", "confidence": 0.8, "timestamp": "2026-01-10T14:00:01+00:00"},
        ],
    )
    out, err = io.StringIO(), io.StringIO()

    status = replay(path, out=out, err=err)

    lines = out.getvalue().splitlines()
    assert status == 0
    assert len(lines) == 3
    assert json.loads(lines[0])["category"] == "angry"
    summary = json.loads(lines[-1])
    assert summary["updates"] == 2
    assert summary["rejected"] == 0
    assert summary["conflicts"] == 1
    assert summary["method"] == "weighted_average"
    assert err.getvalue() == ""


def test_replay_reports_rejected_lines(tmp_path):
    path = _write(
        tmp_path,
        [
            {"source": "facial", "category": "happy", "confidence": 0.9},
            {"source": "facial", "category": "furious", "confidence": 0.9},
            "not json",
            {"category": "happy", "confidence": 0.9},
        ],
    )
    out, err = io.StringIO(), io.StringIO()

    status = replay(path, out=out, err=err)

    assert status == 1
    summary = json.loads(out.getvalue().splitlines()[-1])
    assert summary["updates"] == 1
    assert summary["rejected"] == 3
    assert "line 2: rejected" in err.getvalue()


def test_replay_with_method(tmp_path):
    path = _write(tmp_path, [{"source": "facial", "category": "sad", "confidence": 0.9}])
    out = io.StringIO()

    replay(path, method=FusionMethod.DEMPSTER_SHAFER, out=out, err=io.StringIO())

    first = json.loads(out.getvalue().splitlines()[0])
    assert first["method"] == "dempster_shafer"
    assert first["category"] == "sad"
