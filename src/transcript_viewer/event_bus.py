"""Synchronous publish/subscribe bus with explicitly scoped subscriptions."""

from __future__ import annotations

from collections import defaultdict
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Subscription:
    """Handle for one handler on one topic; ``cancel`` is idempotent."""

    def __init__(self, bus: "EventBus", topic: str, handler: Handler) -> None:
        self._bus: Optional[EventBus] = bus
        self.topic = topic
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._bus is not None

    def cancel(self) -> None:
        bus = self._bus
        if bus is None:
            return
        self._bus = None
        bus._remove(self)


class EventBus:
    """Delivers payloads to the handlers subscribed to a topic, in order."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        subscription = Subscription(self, topic, handler)
        self._subscriptions[topic].append(subscription)
        return subscription

    def publish(self, topic: str, payload: Any = None) -> int:
        """Call every active handler for ``topic``; return how many succeeded."""
        delivered = 0
        for subscription in list(self._subscriptions.get(topic, ())):
            if not subscription.active:
                continue
            try:
                subscription.handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", topic)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, ()))

    def _remove(self, subscription: Subscription) -> None:
        handlers = self._subscriptions.get(subscription.topic)
        if not handlers:
            return
        try:
            handlers.remove(subscription)
        except ValueError:
            return
        if not handlers:
            del self._subscriptions[subscription.topic]


class SubscriptionScope:
    """Owns a group of subscriptions released together on state exit."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._subscriptions: list[Subscription] = []

    @property
    def is_empty(self) -> bool:
        return not self._subscriptions

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        subscription = self._bus.subscribe(topic, handler)
        self._subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.cancel()
        if subscriptions:
            logger.debug("Released %d subscriptions", len(subscriptions))
