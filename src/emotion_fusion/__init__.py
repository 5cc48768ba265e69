"""Multi-source emotion-state fusion.

Independent evidence streams (facial-expression classifier, text
sentiment, behavioural heuristics, manual override) report
``{category, confidence}`` readings; :class:`EmotionFusionEngine` turns
them into one continuously updated estimate, tracks how trustworthy each
source has been, and records when sources disagree.
"""

from emotion_fusion.events import EventBus, EventType, Subscription
from emotion_fusion.exceptions import FusionError, InvalidReadingError, UnknownFusionMethodError
from emotion_fusion.fusion import AffectSpace, EmotionFusionEngine
from emotion_fusion.models import (
    ConflictRecord,
    EmotionCategory,
    EmotionReading,
    EmotionVector,
    FusedEstimate,
    FusionMethod,
    HistoryEntry,
    KnownSource,
    SourceWeight,
)

__version__ = "0.1.0"

__all__ = [
    "AffectSpace",
    "ConflictRecord",
    "EmotionCategory",
    "EmotionFusionEngine",
    "EmotionReading",
    "EmotionVector",
    "EventBus",
    "EventType",
    "FusedEstimate",
    "FusionError",
    "FusionMethod",
    "HistoryEntry",
    "InvalidReadingError",
    "KnownSource",
    "SourceWeight",
    "Subscription",
    "UnknownFusionMethodError",
]
