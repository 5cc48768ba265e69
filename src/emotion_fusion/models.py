"""Shared Pydantic models used across the engine.

These models represent:
- The fixed emotion label set and its affect-space vectors
- Readings as produced by external sources, and per-source state
- Fused estimates with their per-source contribution breakdown
- Conflict records and history entries kept by the ledgers
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field


def utcnow() -> datetime:
    """Default engine clock: timezone-aware UTC now."""
    return datetime.now(UTC)


# ── Enums ─────────────────────────────────────────────────────


class EmotionCategory(str, Enum):
    """Default emotion labels.

    Declaration order matches the default affect table and is used for
    tie-breaking (first label wins).
    """

    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    FRUSTRATED = "frustrated"
    CONFUSED = "confused"
    BORED = "bored"
    EXCITED = "excited"
    NEUTRAL = "neutral"
    ANXIOUS = "anxious"
    PROUD = "proud"
    SURPRISED = "surprised"


class FusionMethod(str, Enum):
    """Fusion algorithms.  ``FALLBACK`` tags estimates made without evidence."""

    WEIGHTED_AVERAGE = "weighted_average"
    BAYESIAN = "bayesian"
    DEMPSTER_SHAFER = "dempster_shafer"
    FALLBACK = "fallback"


class KnownSource(str, Enum):
    """Well-known evidence producers."""

    FACIAL = "facial"  # expression classifier, per camera frame
    TEXT = "text"  # sentiment analyser, per message
    BEHAVIOR = "behavior"  # interaction heuristics
    MANUAL = "manual"  # user override


# ── Affect space ─────────────────────────────────────────────


class EmotionVector(BaseModel):
    """Position of a category in (valence, arousal, engagement) space."""

    model_config = ConfigDict(frozen=True)

    valence: float
    arousal: float
    engagement: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.valence, self.arousal, self.engagement)


# ── Readings & sources ───────────────────────────────────────


class EmotionReading(BaseModel):
    """A reading as handed over by a producer.

    Range and label checks happen in the source registry so that a
    rejection can name the source.  Producers that still send the
    ``emotion`` key are accepted.
    """

    model_config = ConfigDict(frozen=True)

    category: str = Field(validation_alias=AliasChoices("category", "emotion"))
    # Strict: booleans and numeric strings are rejected, ints are accepted.
    confidence: float = Field(strict=True)


class SourceReading(BaseModel):
    """A validated reading stamped with its capture time."""

    model_config = ConfigDict(frozen=True)

    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime


class SourceState(BaseModel):
    """Registry-owned state of one evidence source."""

    source_id: str
    reading: SourceReading | None = None
    weight: float = Field(0.1, ge=0.0, le=1.0)
    reliability: float = Field(0.5, ge=0.0, le=1.0)
    update_count: int = 0
    last_update: datetime | None = None


class SourceWeight(BaseModel):
    """Public snapshot of a source's trust figures."""

    weight: float
    reliability: float
    last_update: datetime | None = None
    update_count: int = 0


# ── Fused estimate ───────────────────────────────────────────


class SourceContribution(BaseModel):
    """One source's share in a fused estimate."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    category: str
    confidence: float
    weight: float


class FusedEstimate(BaseModel):
    """The engine's combined judgment.  Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    method: FusionMethod
    timestamp: datetime
    contributions: list[SourceContribution] = Field(default_factory=list)

    # ── Weighted average
    vector: EmotionVector | None = None
    similarity: float | None = None

    # ── Bayesian
    probabilities: dict[str, float] | None = None
    entropy: float | None = None

    # ── Dempster-Shafer
    masses: dict[str, float] | None = None
    uncertainty: float | None = None

    @property
    def is_fallback(self) -> bool:
        return self.method is FusionMethod.FALLBACK


# ── Conflicts ────────────────────────────────────────────────


class ConflictParticipant(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str
    category: str
    confidence: float


class ConflictResolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    preferred_source: str
    note: str = ""
    resolved_at: datetime


class ConflictRecord(BaseModel):
    """Disagreement among active sources at one point in time."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime
    participants: list[ConflictParticipant]
    level: float = Field(ge=0.0, le=1.0)
    resolved: bool = False
    resolution: ConflictResolution | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def categories(self) -> list[str]:
        """Distinct categories in participant order."""
        return list(dict.fromkeys(p.category for p in self.participants))

    @property
    def sources(self) -> list[str]:
        return [p.source_id for p in self.participants]


# ── History ──────────────────────────────────────────────────


class HistoryEntry(BaseModel):
    """Snapshot taken after every update-triggered fusion."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    sources: dict[str, str]  # source id → last reported category
    fused: FusedEstimate
    weights: dict[str, float]
