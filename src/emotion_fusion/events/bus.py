"""Event bus — typed, synchronous fan-out of engine notifications.

Architecture
~~~~~~~~~~~~
* **FusionEvent** — frozen base payload; one subclass per :class:`EventType`.
* **EventBus** — ordered listener list with error isolation.
* **Subscription** — handle returned by ``subscribe()``; call
  ``unsubscribe()`` to detach.

Listeners run in registration order on the publishing thread.  A listener
that raises is logged and skipped; the remaining listeners still run and
the exception never reaches the publisher.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

from emotion_fusion.models import FusedEstimate

logger = structlog.get_logger(__name__)


class EventType(str, Enum):
    FUSION_UPDATE = "fusion_update"
    CONFLICT_DETECTED = "conflict_detected"
    CONFLICT_RESOLVED = "conflict_resolved"
    RESET = "reset"


# ── Payloads ──────────────────────────────────────────────────


class FusionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: ClassVar[EventType]
    timestamp: datetime


class FusionUpdateEvent(FusionEvent):
    event_type: ClassVar[EventType] = EventType.FUSION_UPDATE
    estimate: FusedEstimate


class ConflictDetectedEvent(FusionEvent):
    event_type: ClassVar[EventType] = EventType.CONFLICT_DETECTED
    conflict_id: str
    level: float
    sources: list[str]
    categories: list[str]


class ConflictResolvedEvent(FusionEvent):
    event_type: ClassVar[EventType] = EventType.CONFLICT_RESOLVED
    conflict_id: str
    preferred_source: str
    note: str = ""


class ResetEvent(FusionEvent):
    event_type: ClassVar[EventType] = EventType.RESET


Listener = Callable[[FusionEvent], None]


# ── Results & handles ─────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome summary for a single ``publish()`` call."""

    event_type: EventType
    delivered: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def all_ok(self) -> bool:
        return len(self.failed) == 0


@dataclass(frozen=True, slots=True)
class Subscription:
    """Handle for one registered listener."""

    bus: EventBus = field(repr=False)
    token: int
    event_type: EventType | None

    def unsubscribe(self) -> bool:
        """Detach the listener.  Returns ``False`` if it was already gone."""
        return self.bus.unsubscribe(self)

    @property
    def active(self) -> bool:
        return self.bus.is_subscribed(self)


@dataclass(slots=True)
class _Entry:
    token: int
    event_type: EventType | None
    listener: Listener


# ── Bus ───────────────────────────────────────────────────────


class EventBus:
    """Deliver events to listeners, isolating listener failures."""

    def __init__(self) -> None:
        self._entries: list[_Entry] = []
        self._tokens = itertools.count(1)

    def subscribe(self, event_type: EventType | str | None, listener: Listener) -> Subscription:
        """Register *listener* for *event_type*, or for every event when ``None``."""
        resolved = None if event_type is None else EventType(event_type)
        entry = _Entry(token=next(self._tokens), event_type=resolved, listener=listener)
        self._entries.append(entry)
        return Subscription(bus=self, token=entry.token, event_type=resolved)

    def unsubscribe(self, subscription: Subscription) -> bool:
        for i, entry in enumerate(self._entries):
            if entry.token == subscription.token:
                self._entries.pop(i)
                return True
        return False

    def is_subscribed(self, subscription: Subscription) -> bool:
        return any(e.token == subscription.token for e in self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def listener_count(self, event_type: EventType | None = None) -> int:
        if event_type is None:
            return len(self._entries)
        return sum(1 for e in self._entries if e.event_type in (None, event_type))

    def publish(self, event: FusionEvent) -> PublishResult:
        """Call every matching listener in registration order."""
        delivered = 0
        failed: list[str] = []

        # Snapshot so listeners may (un)subscribe while being called.
        for entry in list(self._entries):
            if entry.event_type is not None and entry.event_type is not event.event_type:
                continue
            try:
                entry.listener(event)
                delivered += 1
            except Exception:
                name = getattr(entry.listener, "__qualname__", repr(entry.listener))
                logger.exception(
                    "events.listener_error",
                    event_type=event.event_type.value,
                    listener=name,
                )
                failed.append(name)

        return PublishResult(event_type=event.event_type, delivered=delivered, failed=failed)
