"""Event channel tests."""

from __future__ import annotations

import logging

import pytest

from daytrack.services.events import EventChannel


def test_subscribers_receive_payload_in_subscription_order() -> None:
    channel: EventChannel[str] = EventChannel("demo")
    received: list[str] = []
    channel.subscribe(lambda payload: received.append(f"a:{payload}"))
    channel.subscribe(lambda payload: received.append(f"b:{payload}"))

    channel.emit("x")

    assert received == ["a:x", "b:x"]
    assert len(channel) == 2


def test_unsubscribe_stops_delivery() -> None:
    channel: EventChannel[int] = EventChannel("demo")
    received: list[int] = []
    handle = channel.subscribe(received.append)

    assert channel.unsubscribe(handle) is True
    assert channel.unsubscribe(handle) is False
    channel.emit(1)

    assert received == []
    assert len(channel) == 0


def test_failing_subscriber_is_logged_and_others_still_run(
    caplog: pytest.LogCaptureFixture,
) -> None:
    channel: EventChannel[int] = EventChannel("demo")
    received: list[int] = []

    def broken(_payload: int) -> None:
        raise ValueError("bad subscriber")

    channel.subscribe(broken)
    channel.subscribe(received.append)

    with caplog.at_level(logging.ERROR, logger="daytrack.services.events"):
        channel.emit(5)

    assert received == [5]
    assert "Subscriber 1 of demo failed" in caplog.text


def test_subscriber_may_unsubscribe_during_emit() -> None:
    channel: EventChannel[int] = EventChannel("demo")
    received: list[int] = []
    handles: list[int] = []

    def once(payload: int) -> None:
        received.append(payload)
        channel.unsubscribe(handles[0])

    handles.append(channel.subscribe(once))
    channel.emit(1)
    channel.emit(2)

    assert received == [1]
