"""Unit tests for EventBus."""

from __future__ import annotations

import asyncio
import contextlib
import logging

import pytest

from panel_bridge.bus import ALL, EventBus
from panel_bridge.echo import EchoFilter
from panel_bridge.protocol.envelope import Envelope
from panel_bridge.protocol.messages import MessageType


@pytest.fixture
def echo() -> EchoFilter:
    return EchoFilter()


@pytest.fixture
def bus(echo: EchoFilter) -> EventBus:
    return EventBus(echo)


def event(type_name: str = "settingsChanged", correlation_id: str | None = None) -> Envelope:
    return Envelope(type=type_name, payload={"n": 1}, correlation_id=correlation_id)


class TestSubscribe:
    def test_delivers_matching_type(self, bus):
        seen = []
        bus.subscribe(MessageType.SETTINGS_CHANGED, seen.append)

        count = bus.publish(event("settingsChanged"))

        assert count == 1
        assert [e.type for e in seen] == ["settingsChanged"]

    def test_skips_other_types(self, bus):
        seen = []
        bus.subscribe(MessageType.SHOW_INFO, seen.append)

        count = bus.publish(event("settingsChanged"))

        assert count == 0
        assert seen == []

    def test_string_filter(self, bus):
        seen = []
        bus.subscribe("hostOnlyEvent", seen.append)

        bus.publish(event("hostOnlyEvent"))

        assert len(seen) == 1

    def test_all_filter_receives_everything(self, bus):
        seen = []
        bus.subscribe(ALL, seen.append)

        bus.publish(event("settingsChanged"))
        bus.publish(event("showInfo"))

        assert [e.type for e in seen] == ["settingsChanged", "showInfo"]

    def test_registration_order(self, bus):
        order = []
        bus.subscribe(ALL, lambda e: order.append("first"))
        bus.subscribe(MessageType.SETTINGS_CHANGED, lambda e: order.append("second"))
        bus.subscribe(ALL, lambda e: order.append("third"))

        bus.publish(event())

        assert order == ["first", "second", "third"]

    def test_shared_filter(self, bus):
        a, b = [], []
        bus.subscribe(MessageType.SETTINGS_CHANGED, a.append)
        bus.subscribe(MessageType.SETTINGS_CHANGED, b.append)

        bus.publish(event())

        assert len(a) == len(b) == 1
        assert bus.subscriber_count(MessageType.SETTINGS_CHANGED) == 2


class TestUnsubscribe:
    def test_unsubscribe_stops_delivery(self, bus):
        seen = []
        unsubscribe = bus.subscribe(ALL, seen.append)

        unsubscribe()
        bus.publish(event())

        assert seen == []

    def test_unsubscribe_is_idempotent(self, bus):
        """Calling unsubscribe twice has no effect beyond the first call."""
        kept = []
        unsubscribe = bus.subscribe(ALL, lambda e: None)
        bus.subscribe(ALL, kept.append)

        unsubscribe()
        unsubscribe()
        bus.publish(event())

        assert bus.subscriber_count() == 1
        assert len(kept) == 1

    def test_unsubscribe_inside_handler(self, bus):
        """A handler removing itself still gets the current envelope only."""
        seen = []
        later = []

        def once(envelope):
            seen.append(envelope)
            unsubscribe()

        unsubscribe = bus.subscribe(ALL, once)
        bus.subscribe(ALL, later.append)

        bus.publish(event())
        bus.publish(event())

        assert len(seen) == 1
        assert len(later) == 2

    def test_unsubscribe_sibling_mid_fanout_does_not_affect_current_pass(self, bus):
        seen = []
        unsubscribe_second = None

        def first(envelope):
            unsubscribe_second()

        bus.subscribe(ALL, first)
        unsubscribe_second = bus.subscribe(ALL, seen.append)

        bus.publish(event())
        bus.publish(event())

        assert len(seen) == 1

    def test_subscribe_mid_fanout_waits_for_next_publish(self, bus):
        late = []

        def adder(envelope):
            bus.subscribe(ALL, late.append)

        bus.subscribe(MessageType.SETTINGS_CHANGED, adder)

        bus.publish(event("settingsChanged"))
        assert late == []

        bus.publish(event("showInfo"))
        assert len(late) == 1


class TestIsolation:
    def test_throwing_handler_does_not_block_siblings(self, bus, caplog):
        seen = []

        def broken(envelope):
            raise RuntimeError("subscriber bug")

        bus.subscribe(ALL, seen.append)
        bus.subscribe(ALL, broken)
        bus.subscribe(ALL, seen.append)

        with caplog.at_level(logging.ERROR):
            count = bus.publish(event())

        assert count == 3
        assert len(seen) == 2
        assert "subscriber bug" in caplog.text

    @pytest.mark.asyncio
    async def test_async_handler_is_scheduled(self, bus):
        seen = []

        async def handler(envelope):
            await asyncio.sleep(0)
            seen.append(envelope.type)

        bus.subscribe(ALL, handler)
        bus.publish(event())
        assert seen == []

        await asyncio.sleep(0.01)
        assert seen == ["settingsChanged"]

    @pytest.mark.asyncio
    async def test_async_handler_failure_is_logged(self, bus, caplog):
        seen = []

        async def broken(envelope):
            raise ValueError("async subscriber bug")

        bus.subscribe(ALL, broken)
        bus.subscribe(ALL, seen.append)

        with caplog.at_level(logging.ERROR):
            bus.publish(event())
            await asyncio.sleep(0.01)

        assert len(seen) == 1
        assert "async subscriber bug" in caplog.text


class TestEchoSuppression:
    @pytest.mark.asyncio
    async def test_echo_is_dropped(self, bus, echo):
        seen = []
        bus.subscribe(ALL, seen.append)
        echo.record_sent("req_mine")

        count = bus.publish(event(correlation_id="req_mine"))

        assert count == 0
        assert seen == []
        assert bus.suppressed_count == 1
        echo.clear()

    @pytest.mark.asyncio
    async def test_unknown_correlation_id_is_delivered(self, bus):
        """A correlated envelope we did not send is an ordinary event."""
        seen = []
        bus.subscribe(ALL, seen.append)

        count = bus.publish(event(correlation_id="req_host"))

        assert count == 1
        assert bus.published_count == 1

    @pytest.mark.asyncio
    async def test_unmatched_correlated_event_is_logged_at_debug(self, bus, caplog):
        with caplog.at_level(logging.DEBUG, logger="panel_bridge.bus"):
            bus.publish(event(correlation_id="req_host"))

        assert "req_host" in caplog.text


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_yields_matching_envelopes(self, bus):
        received = []

        async def consume():
            async with contextlib.aclosing(bus.stream(MessageType.AI_ANALYSIS_PROGRESS)) as stream:
                async for envelope in stream:
                    received.append(envelope.payload)
                    if len(received) == 2:
                        break

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)

        bus.publish(Envelope(type="aiAnalysisProgress", payload=1))
        bus.publish(Envelope(type="showInfo", payload="ignored"))
        bus.publish(Envelope(type="aiAnalysisProgress", payload=2))
        await asyncio.wait_for(task, timeout=1.0)

        assert received == [1, 2]
        assert bus.subscriber_count() == 0


class TestClear:
    def test_clear_removes_everything(self, bus):
        seen = []
        bus.subscribe(ALL, seen.append)

        bus.clear()
        bus.publish(event())

        assert seen == []
        assert bus.subscriber_count() == 0
