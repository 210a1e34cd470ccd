"""Tests for the event bus and subscription scopes."""

from __future__ import annotations

import logging

import pytest

from transcript_viewer.event_bus import EventBus, SubscriptionScope


def test_publish_delivers_in_subscription_order() -> None:
    bus = EventBus()
    seen: list[tuple[str, object]] = []
    bus.subscribe("topic", lambda payload: seen.append(("a", payload)))
    bus.subscribe("topic", lambda payload: seen.append(("b", payload)))
    assert bus.publish("topic", 1) == 2
    assert seen == [("a", 1), ("b", 1)]


def test_publish_without_subscribers() -> None:
    assert EventBus().publish("nobody", "x") == 0


def test_cancel_is_idempotent_and_removes_topic() -> None:
    bus = EventBus()
    subscription = bus.subscribe("topic", lambda payload: None)
    subscription.cancel()
    subscription.cancel()
    assert not subscription.active
    assert bus.subscriber_count("topic") == 0
    assert bus.publish("topic") == 0


def test_handler_cancelled_during_publish_is_skipped() -> None:
    bus = EventBus()
    seen: list[str] = []
    later = None

    def first(payload: object) -> None:
        seen.append("first")
        assert later is not None
        later.cancel()

    bus.subscribe("topic", first)
    later = bus.subscribe("topic", lambda payload: seen.append("later"))
    bus.publish("topic")
    assert seen == ["first"]


def test_scope_releases_all_subscriptions() -> None:
    bus = EventBus()
    scope = SubscriptionScope(bus)
    seen: list[object] = []
    scope.subscribe("a", seen.append)
    scope.subscribe("b", seen.append)
    assert not scope.is_empty
    scope.close()
    assert scope.is_empty
    bus.publish("a", 1)
    bus.publish("b", 2)
    assert seen == []
    assert bus.subscriber_count("a") == 0
    scope.close()


def test_failing_handler_does_not_stop_delivery(
    caplog: pytest.LogCaptureFixture,
) -> None:
    bus = EventBus()
    seen: list[object] = []

    def broken(payload: object) -> None:
        raise RuntimeError("view failed")

    bus.subscribe("topic", broken)
    bus.subscribe("topic", seen.append)
    with caplog.at_level(logging.ERROR, logger="transcript_viewer.event_bus"):
        assert bus.publish("topic", 1) == 1
    assert seen == [1]
    assert "Handler for topic failed" in caplog.text
