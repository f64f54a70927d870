"""Tests for the in-memory event bus."""

import pytest

from helmsman.domain.entities.failover_record import (
    FailoverFinishedEvent,
    FailoverStartedEvent,
)
from helmsman.domain.events.event_base import DomainEvent
from helmsman.infrastructure.event_bus import EventBus


class TestEventBus:
    @pytest.mark.asyncio
    async def test_dispatch_by_type(self):
        bus = EventBus()
        started, finished = [], []

        async def on_started(event):
            started.append(event)

        async def on_finished(event):
            finished.append(event)

        bus.subscribe(FailoverStartedEvent, on_started)
        bus.subscribe(FailoverFinishedEvent, on_finished)
        await bus.publish([FailoverStartedEvent(failed_region="a"), FailoverFinishedEvent()])

        assert len(started) == 1
        assert started[0].failed_region == "a"
        assert len(finished) == 1

    @pytest.mark.asyncio
    async def test_base_class_subscription_receives_everything(self):
        bus = EventBus()
        seen = []

        async def on_any(event):
            seen.append(event.event_type)

        bus.subscribe(DomainEvent, on_any)
        await bus.publish([FailoverStartedEvent(), FailoverFinishedEvent()])

        assert seen == ["FailoverStartedEvent", "FailoverFinishedEvent"]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_delivery(self):
        bus = EventBus()
        seen = []

        async def broken(event):
            raise RuntimeError("handler bug")

        async def healthy(event):
            seen.append(event)

        bus.subscribe(DomainEvent, broken)
        bus.subscribe(FailoverStartedEvent, healthy)
        await bus.publish([FailoverStartedEvent()])

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        await EventBus().publish([FailoverStartedEvent()])

    def test_event_to_dict(self):
        event = FailoverStartedEvent(failed_region="a", target_region="b", reason="r")
        data = event.to_dict()
        assert data["event_type"] == "FailoverStartedEvent"
        assert data["failed_region"] == "a"
        assert "occurred_at" in data
