"""Change notifications for record tables.

Every committed write publishes a ``ChangeEvent`` for its table. Consumers
subscribe by table name and event type and receive a ``Subscription``: a
cancellable, lazy async sequence of events.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import redis.asyncio as redis
import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

ALL_EVENTS = "*"


class ChangeType(str, Enum):
    """Kind of change applied to a table."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A single change to a record table."""

    table: str
    event: ChangeType
    record_id: int | None = None
    record: dict[str, Any] | None = None


_CLOSED = object()


class Subscription:
    """Lazy sequence of change events for one table.

    Iterate with ``async for``; iteration stops once ``close()`` is called.
    Closing is idempotent and may happen from any task.
    """

    def __init__(
        self,
        table: str,
        event: str = ALL_EVENTS,
        on_close: Callable[["Subscription"], Awaitable[None]] | None = None,
    ):
        """Initialize an open subscription."""
        self.table = table
        self.event = event
        self.closed = False
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._on_close = on_close

    def accepts(self, change: ChangeEvent) -> bool:
        """Check whether a change belongs to this subscription."""
        if change.table != self.table:
            return False
        return self.event == ALL_EVENTS or change.event.value == self.event.upper()

    def deliver(self, change: ChangeEvent) -> None:
        """Queue a change for the consumer."""
        if self.closed or not self.accepts(change):
            return
        self._queue.put_nowait(change)

    async def close(self) -> None:
        """Stop delivery and end iteration."""
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            await self._on_close(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self.closed:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class ChangeFeed:
    """Publish/subscribe interface for table changes."""

    async def publish(self, change: ChangeEvent) -> None:
        """Announce a committed change."""
        raise NotImplementedError

    async def subscribe(self, table: str, event: str = ALL_EVENTS) -> Subscription:
        """Open a subscription for a table."""
        raise NotImplementedError

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Release a subscription."""
        await subscription.close()

    async def close(self) -> None:
        """Release all resources held by the feed."""


class LocalChangeFeed(ChangeFeed):
    """In-process change feed."""

    def __init__(self) -> None:
        """Initialize with no subscribers."""
        self._subscriptions: dict[str, set[Subscription]] = {}

    @property
    def subscriber_count(self) -> int:
        """Number of open subscriptions across all tables."""
        return sum(len(subs) for subs in self._subscriptions.values())

    async def publish(self, change: ChangeEvent) -> None:
        """Fan a change out to matching subscriptions."""
        for subscription in list(self._subscriptions.get(change.table, ())):
            subscription.deliver(change)

    async def subscribe(self, table: str, event: str = ALL_EVENTS) -> Subscription:
        """Open a subscription for a table."""
        subscription = Subscription(table, event, on_close=self._discard)
        self._subscriptions.setdefault(table, set()).add(subscription)
        logger.debug("changefeed_subscribed", table=table, event_type=event)
        return subscription

    async def _discard(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.table)
        if subscriptions is not None:
            subscriptions.discard(subscription)
        logger.debug("changefeed_unsubscribed", table=subscription.table)

    async def close(self) -> None:
        """Close every open subscription."""
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                await subscription.close()
        self._subscriptions.clear()


class RedisChangeFeed(ChangeFeed):
    """Change feed shared between processes through Redis pub/sub."""

    CHANNEL_PREFIX = "changes:"

    def __init__(self, redis_client: redis.Redis):
        """Initialize feed with Redis client."""
        self.redis = redis_client
        self._readers: dict[Subscription, tuple[asyncio.Task, Any]] = {}

    @classmethod
    def channel_for(cls, table: str) -> str:
        """Redis channel carrying changes of a table."""
        return f"{cls.CHANNEL_PREFIX}{table}"

    async def publish(self, change: ChangeEvent) -> None:
        """Publish a change to the table channel."""
        await self.redis.publish(self.channel_for(change.table), change.model_dump_json())

    async def subscribe(self, table: str, event: str = ALL_EVENTS) -> Subscription:
        """Open a subscription backed by a Redis pub/sub connection."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel_for(table))

        subscription = Subscription(table, event, on_close=self._stop_reader)
        task = asyncio.create_task(self._read(pubsub, subscription))
        self._readers[subscription] = (task, pubsub)
        logger.debug("changefeed_subscribed", table=table, event_type=event, backend="redis")
        return subscription

    async def _read(self, pubsub: Any, subscription: Subscription) -> None:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                change = ChangeEvent.model_validate_json(message["data"])
            except ValueError as e:
                logger.warning("changefeed_bad_message", table=subscription.table, error=str(e))
                continue
            subscription.deliver(change)

    async def _stop_reader(self, subscription: Subscription) -> None:
        reader = self._readers.pop(subscription, None)
        if reader is None:
            return
        task, pubsub = reader
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await pubsub.unsubscribe()
        await pubsub.aclose()
        logger.debug("changefeed_unsubscribed", table=subscription.table, backend="redis")

    async def close(self) -> None:
        """Close every open subscription."""
        for subscription in list(self._readers):
            await subscription.close()
