"""Fusion core — registry, strategies, conflict detection and the engine.

Architecture
------------
1. **Affect space** (`space.py`) — immutable category → vector table
2. **Source registry** (`registry.py`) — readings, reliability, recency
3. **Strategies** (`strategies.py`) — weighted average, naive Bayesian,
   simplified Dempster-Shafer
4. **Conflict detector** (`conflicts.py`) — valence/arousal disagreement
5. **Ledgers** (`ledger.py`) — bounded history and conflict logs
6. **Engine** (`engine.py`) — orchestrates the above and publishes events
"""

from emotion_fusion.fusion.engine import EmotionFusionEngine
from emotion_fusion.fusion.space import (
    DEFAULT_EMOTION_MODELS,
    MAX_CONFLICT_DISTANCE,
    MAX_VECTOR_DISTANCE,
    AffectSpace,
)
from emotion_fusion.fusion.strategies import (
    FusionStrategy,
    available_methods,
    get_strategy,
    register_strategy,
)

__all__ = [
    "DEFAULT_EMOTION_MODELS",
    "MAX_CONFLICT_DISTANCE",
    "MAX_VECTOR_DISTANCE",
    "AffectSpace",
    "EmotionFusionEngine",
    "FusionStrategy",
    "available_methods",
    "get_strategy",
    "register_strategy",
]
