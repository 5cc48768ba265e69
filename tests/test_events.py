"""Tests for the event bus."""

from __future__ import annotations

from emotion_fusion.events.bus import (
    ConflictResolvedEvent,
    EventBus,
    EventType,
    ResetEvent,
)


def _reset(clock) -> ResetEvent:
    return ResetEvent(timestamp=clock())


class TestEventBus:
    def test_registration_order(self, clock):
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe(EventType.RESET, lambda e: calls.append("first"))
        bus.subscribe(EventType.RESET, lambda e: calls.append("second"))
        bus.subscribe(None, lambda e: calls.append("wildcard"))

        result = bus.publish(_reset(clock))

        assert calls == ["first", "second", "wildcard"]
        assert result.delivered == 3
        assert result.all_ok

    def test_filters_by_event_type(self, clock):
        bus = EventBus()
        calls = []
        bus.subscribe("conflict_resolved", calls.append)

        bus.publish(_reset(clock))
        event = ConflictResolvedEvent(timestamp=clock(), conflict_id="c1", preferred_source="facial")
        bus.publish(event)

        assert calls == [event]

    def test_failing_listener_is_isolated(self, clock):
        bus = EventBus()
        calls = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(EventType.RESET, broken)
        bus.subscribe(EventType.RESET, calls.append)

        result = bus.publish(_reset(clock))

        assert len(calls) == 1
        assert result.delivered == 1
        assert not result.all_ok
        assert len(result.failed) == 1

    def test_unsubscribe(self, clock):
        bus = EventBus()
        calls = []
        sub = bus.subscribe(EventType.RESET, calls.append)
        assert sub.active

        assert sub.unsubscribe() is True
        assert sub.unsubscribe() is False
        assert not sub.active

        bus.publish(_reset(clock))
        assert calls == []

    def test_listener_count(self):
        bus = EventBus()
        bus.subscribe(EventType.RESET, print)
        bus.subscribe(EventType.FUSION_UPDATE, print)
        bus.subscribe(None, print)

        assert bus.listener_count() == 3
        assert bus.listener_count(EventType.RESET) == 2
        bus.clear()
        assert bus.listener_count() == 0

    def test_listener_may_unsubscribe_while_called(self, clock):
        bus = EventBus()
        calls = []
        holder = {}

        def once(event):
            calls.append(event)
            holder["sub"].unsubscribe()

        holder["sub"] = bus.subscribe(None, once)
        bus.publish(_reset(clock))
        bus.publish(_reset(clock))

        assert len(calls) == 1
