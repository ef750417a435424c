"""
Async pub/sub message bus.

Delivers engine events to subscribers with topic-based routing and
wildcard patterns. Handler failures are isolated from each other and
from the publisher.
"""

from collections import defaultdict
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import anyio
import structlog
from ulid import ULID

from segengine.bus.topics import Topic
from segengine.core.signals import Message

logger = structlog.get_logger()

MessageHandler = Callable[[Message], Coroutine[Any, Any, None]]


@dataclass
class Subscription:
    """A subscription to a topic pattern."""

    id: str
    pattern: str
    handler: MessageHandler
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class MessageBusStats:
    """Statistics for the message bus."""

    total_messages_published: int = 0
    total_messages_delivered: int = 0
    total_subscriptions: int = 0
    total_errors: int = 0


class MessageBus:
    """Async pub/sub message bus with wildcard topic routing."""

    def __init__(self, max_concurrent_handlers: int = 100) -> None:
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._subscriptions_by_id: dict[str, Subscription] = {}
        self._stats = MessageBusStats()
        self._max_concurrent = max_concurrent_handlers
        self._limiter: anyio.CapacityLimiter | None = None
        self._log = logger.bind(component="message_bus")

    @property
    def stats(self) -> MessageBusStats:
        return self._stats

    async def subscribe(self, pattern: str | Topic, handler: MessageHandler) -> str:
        """Subscribe to a topic pattern. Returns the subscription id."""
        pattern_str = str(pattern)
        subscription = Subscription(id=str(ULID()), pattern=pattern_str, handler=handler)

        self._subscriptions[pattern_str].append(subscription)
        self._subscriptions_by_id[subscription.id] = subscription
        self._stats.total_subscriptions += 1

        self._log.debug("subscribed", pattern=pattern_str, subscription_id=subscription.id)
        return subscription.id

    async def unsubscribe(self, pattern_or_id: str | Topic) -> bool:
        """Remove a subscription by id, or every subscription for a pattern."""
        key = str(pattern_or_id)

        if key in self._subscriptions_by_id:
            sub = self._subscriptions_by_id.pop(key)
            self._subscriptions[sub.pattern] = [
                s for s in self._subscriptions[sub.pattern] if s.id != sub.id
            ]
            self._stats.total_subscriptions -= 1
            self._log.debug("unsubscribed", subscription_id=key)
            return True

        subs = self._subscriptions.pop(key, [])
        for sub in subs:
            self._subscriptions_by_id.pop(sub.id, None)
        self._stats.total_subscriptions -= len(subs)
        if subs:
            self._log.debug("unsubscribed_all", pattern=key, count=len(subs))
        return bool(subs)

    def _handler_limiter(self) -> anyio.CapacityLimiter:
        # Created on first publish so it binds to the running event loop
        if self._limiter is None:
            self._limiter = anyio.CapacityLimiter(self._max_concurrent)
        return self._limiter

    def _matching(self, topic: str) -> list[Subscription]:
        """Subscriptions whose pattern matches ``topic``, in subscription order."""
        target = Topic(topic)
        return [sub for sub in self._subscriptions_by_id.values() if target.matches(sub.pattern)]

    async def publish(self, message: Message) -> int:
        """
        Deliver a message to every matching subscriber.

        Handlers run concurrently, at most ``max_concurrent_handlers`` at
        a time. A failing handler is logged and counted; it does not
        affect the others. Returns the number of handlers that succeeded.
        """
        self._stats.total_messages_published += 1

        subscribers = self._matching(message.topic)
        if not subscribers:
            self._log.debug("no_subscribers", topic=message.topic)
            return 0

        limiter = self._handler_limiter()
        failed: list[str] = []

        async def deliver(sub: Subscription) -> None:
            async with limiter:
                try:
                    await sub.handler(message)
                except Exception:
                    failed.append(sub.id)
                    self._log.exception(
                        "handler_failed",
                        topic=message.topic,
                        subscription_id=sub.id,
                    )

        async with anyio.create_task_group() as tg:
            for sub in subscribers:
                tg.start_soon(deliver, sub)

        delivered = len(subscribers) - len(failed)
        self._stats.total_messages_delivered += delivered
        self._stats.total_errors += len(failed)

        self._log.debug(
            "published",
            topic=message.topic,
            message_id=message.id,
            delivered=delivered,
            failed=len(failed),
        )
        return delivered

    def get_subscriptions(self, pattern: str | None = None) -> list[Subscription]:
        """Get current subscriptions, optionally for one pattern."""
        if pattern is None:
            return list(self._subscriptions_by_id.values())
        return list(self._subscriptions.get(pattern, []))

    def clear(self) -> None:
        """Remove all subscriptions."""
        count = len(self._subscriptions_by_id)
        self._subscriptions.clear()
        self._subscriptions_by_id.clear()
        self._stats.total_subscriptions = 0
        self._log.info("cleared", removed_subscriptions=count)
