"""Centralised engine settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from emotion_fusion.models import FusionMethod, KnownSource

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _preset_weights() -> dict[str, float]:
    """Initial weights of the well-known producers."""
    return {
        KnownSource.FACIAL.value: 0.5,
        KnownSource.TEXT.value: 0.3,
        KnownSource.BEHAVIOR.value: 0.15,
        KnownSource.MANUAL.value: 0.05,
    }


class Settings(BaseSettings):
    """All runtime configuration for the emotion-fusion engine and service.

    Values are read from environment variables first, then from a *.env*
    file located at the project root.  Every variable lives in the flat
    ``EMOTION_FUSION_`` namespace (stripped automatically by
    *pydantic-settings*).
    """

    model_config = SettingsConfigDict(
        env_prefix="EMOTION_FUSION_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Fusion ────────────────────────────────────────────────
    fusion_method: FusionMethod = FusionMethod.WEIGHTED_AVERAGE
    time_decay: float = Field(0.1, ge=0.0)  # per-second decay of reading confidence
    min_confidence: float = Field(0.3, ge=0.0, le=1.0)
    ds_normalize_conflict: bool = False  # textbook Dempster normalisation

    # ── Sources & reliability ─────────────────────────────────
    default_source_weight: float = Field(0.1, ge=0.0, le=1.0)
    reliability_decay_seconds: float = Field(10.0, gt=0.0)
    default_sources: dict[str, float] = Field(default_factory=_preset_weights)
    register_default_sources: bool = True

    # ── Conflicts ─────────────────────────────────────────────
    conflict_threshold: float = Field(0.5, ge=0.0, le=1.0)

    # ── Ledgers ───────────────────────────────────────────────
    history_limit: int = Field(100, ge=1)
    conflict_limit: int = Field(100, ge=1)
    history_lookback_seconds: int = Field(3600, ge=1)

    # ── Service ───────────────────────────────────────────────
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
