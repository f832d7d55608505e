"""In-process change feed.

Units of work publish a ChangeEvent for every committed row-level
mutation. Subscribers filter by entity type and, optionally, by session
scope. Each subscription owns a bounded queue; when it is full the oldest
event is dropped, since any later event still triggers a full re-fetch.
Duplicates and reordering are harmless to consumers by contract.
"""

import asyncio
import logging
from typing import Iterable, Optional

from blurranker.config import settings
from blurranker.models.common import EntityType
from blurranker.models.event import ChangeEvent

logger = logging.getLogger("blurranker.dal.change_feed")

_CLOSED = object()


class Subscription:
    """A filtered, bounded stream of change events.

    Iterate with ``async for event in subscription``; iteration ends once
    the subscription is closed.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        entities: frozenset[EntityType],
        scope: Optional[str],
        maxsize: int,
    ) -> None:
        self._feed = feed
        self.entities = entities
        self.scope = scope
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._ended = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: ChangeEvent) -> bool:
        if event.entity not in self.entities:
            return False
        # Unscoped events reach every subscriber of that entity type.
        return self.scope is None or event.scope is None or event.scope == self.scope

    def _offer(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug("Subscription queue full, dropped oldest event")
        self._queue.put_nowait(item)

    def deliver(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._offer(event)

    async def get(self) -> Optional[ChangeEvent]:
        """Wait for the next event. Returns None once closed."""
        if self._ended:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._ended = True
            return None
        return item

    def drain_nowait(self) -> list[ChangeEvent]:
        """Take every event already queued without waiting."""
        events: list[ChangeEvent] = []
        while not self._ended:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is _CLOSED:
                self._ended = True
            else:
                events.append(item)
        return events

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.unsubscribe(self)
        self._offer(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFeed:
    """Fan-out of committed change events to matching subscriptions."""

    def __init__(self, queue_size: Optional[int] = None) -> None:
        self._queue_size = queue_size or settings.CHANGE_FEED_QUEUE_SIZE
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        entities: Iterable[EntityType],
        scope: Optional[str] = None,
    ) -> Subscription:
        """Subscribe to events for ``entities``, optionally within one session."""
        subscription = Subscription(
            self, frozenset(entities), scope, self._queue_size
        )
        self._subscriptions.append(subscription)
        logger.debug(
            "New subscription entities=%s scope=%s",
            sorted(subscription.entities),
            scope,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every matching subscription.

        Returns:
            The number of subscriptions the event was delivered to.
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.deliver(event)
                delivered += 1
        return delivered

    def publish_many(self, events: Iterable[ChangeEvent]) -> None:
        for event in events:
            self.publish(event)
