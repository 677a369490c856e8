"""Publish/subscribe fan-out decoupling producers from consumers.

Handlers may be plain callables or coroutine functions. Each topic delivers
events one at a time in publish order, and within an event to subscribers in
subscription order. A failing handler is logged and skipped; it never stops
delivery to the remaining handlers or reaches the publisher.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[T], "Awaitable[None] | None"]


class Subscription:
    """Stable handle returned by :meth:`Topic.subscribe`.

    ``unsubscribe()`` is idempotent. A subscription cancelled while an event
    is being dispatched does not receive that event if its turn has not come.
    """

    def __init__(self, topic: Topic[Any], subscription_id: int, handler: Callable[[Any], Any]) -> None:
        self._topic = topic
        self.id = subscription_id
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._topic._remove(self)

    def __repr__(self) -> str:
        return f"Subscription(topic={self._topic.name!r}, id={self.id}, active={self._active})"


class Topic(Generic[T]):
    """A single named event stream with an ordered subscriber registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []
        self._ids = itertools.count(1)
        self._lock: asyncio.Lock | None = None

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: Handler[T]) -> Subscription:
        subscription = Subscription(self, next(self._ids), handler)
        self._subscriptions.append(subscription)
        logger.debug("Subscribed %r", subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        # Rebind rather than mutate so an in-flight dispatch keeps its snapshot.
        self._subscriptions = [s for s in self._subscriptions if s is not subscription]
        logger.debug("Unsubscribed %r", subscription)

    async def publish(self, event: T) -> int:
        """Deliver ``event`` to every active subscriber.

        Returns:
            Number of handlers that completed without raising.
        """
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            delivered = 0
            for subscription in tuple(self._subscriptions):
                if not subscription.active:
                    continue
                try:
                    result = subscription.handler(event)
                    if inspect.isawaitable(result):
                        await result
                    delivered += 1
                except Exception:
                    logger.exception(
                        "Handler %r on topic %s failed", subscription.handler, self.name
                    )
            return delivered


class DispatchBus:
    """Fans out telemetry samples and relaxation moments.

    Usage::

        bus = DispatchBus()
        sub = bus.subscribe_moment(gate.enqueue)
        await bus.publish_moment(moment)
        sub.unsubscribe()
    """

    def __init__(self) -> None:
        self.data: Topic[Any] = Topic("data")
        self.moments: Topic[Any] = Topic("moments")

    def subscribe_data(self, handler: Handler[Any]) -> Subscription:
        return self.data.subscribe(handler)

    def subscribe_moment(self, handler: Handler[Any]) -> Subscription:
        return self.moments.subscribe(handler)

    async def publish_data(self, sample: Any) -> int:
        return await self.data.publish(sample)

    async def publish_moment(self, moment: Any) -> int:
        return await self.moments.publish(moment)
