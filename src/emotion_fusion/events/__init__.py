"""Event sub-package — typed notifications from the engine."""

from emotion_fusion.events.bus import (
    ConflictDetectedEvent,
    ConflictResolvedEvent,
    EventBus,
    EventType,
    FusionEvent,
    FusionUpdateEvent,
    PublishResult,
    ResetEvent,
    Subscription,
)

__all__ = [
    "ConflictDetectedEvent",
    "ConflictResolvedEvent",
    "EventBus",
    "EventType",
    "FusionEvent",
    "FusionUpdateEvent",
    "PublishResult",
    "ResetEvent",
    "Subscription",
]
