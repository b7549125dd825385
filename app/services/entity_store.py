"""Per-screen cached list of records kept fresh by change notifications."""

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel

from app.core.changefeed import ChangeEvent, Subscription
from app.core.exceptions import FetchFailure
from app.core.gateway import DataGateway, QueryPredicate

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

StoreListener = Callable[["EntityStore[Any]"], None]


def refresh_on_any_change(change: ChangeEvent) -> bool:
    """Default consumer policy: every change triggers a refetch."""
    return True


class EntityStore(Generic[M]):
    """Ordered records of one table, cached for the lifetime of a screen.

    ``refresh()`` replaces the whole list with a fresh fetch. While active,
    the store consumes a change subscription for its table and refetches for
    every change that ``should_refresh`` accepts.

    Overlapping refreshes are not ordered: the response that arrives last
    wins, even if its request was issued first. With ``discard_stale`` a
    response is dropped when a newer request's response was already applied.
    """

    def __init__(
        self,
        gateway: DataGateway,
        table: str,
        order_by: str,
        model: type[M],
        predicate: QueryPredicate | None = None,
        columns: Sequence[str] | None = None,
        should_refresh: Callable[[ChangeEvent], bool] = refresh_on_any_change,
        on_failure: Callable[[FetchFailure], None] | None = None,
        discard_stale: bool = False,
    ):
        """Initialize an empty store that is loading until its first fetch."""
        self.gateway = gateway
        self.table = table
        self.order_by = order_by
        self.model = model
        self.predicate = predicate
        self.columns = columns
        self.should_refresh = should_refresh
        self.on_failure = on_failure
        self.discard_stale = discard_stale

        self.items: list[M] = []
        self.loading = True
        self.error: str | None = None
        self.active = False

        self._subscription: Subscription | None = None
        self._watcher: asyncio.Task | None = None
        self._listeners: list[StoreListener] = []
        self._released = False
        self._issued = 0
        self._applied = 0
        self._in_flight = 0

    def add_listener(self, listener: StoreListener) -> None:
        """Call ``listener(store)`` after every state change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StoreListener) -> None:
        """Stop notifying a listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def get(self, record_id: int) -> M | None:
        """Find a cached record by ID."""
        for item in self.items:
            if getattr(item, "id", None) == record_id:
                return item
        return None

    def patch_local(self, record_id: int, **fields: Any) -> M | None:
        """
        Rewrite fields of one cached record without touching the database.

        Args:
            record_id: ID of the record to rewrite
            **fields: New field values

        Returns:
            The record as it was before the rewrite, or None if not cached
        """
        for index, item in enumerate(self.items):
            if getattr(item, "id", None) == record_id:
                self.items[index] = item.model_copy(update=fields)
                self._notify()
                return item
        return None

    async def refresh(self) -> bool:
        """
        Fetch the table and replace the cached list.

        A failed fetch empties the list rather than keeping stale rows, sets
        ``error`` and reports the failure through ``on_failure``.

        Returns:
            True if the fetch succeeded and was applied
        """
        self._issued += 1
        sequence = self._issued
        self._in_flight += 1
        self.loading = True
        self._notify()

        try:
            rows = await self.gateway.fetch_all(
                self.table,
                self.order_by,
                predicate=self.predicate,
                columns=self.columns,
            )
        except FetchFailure as e:
            self._in_flight -= 1
            if not self._accepts(sequence):
                self._settle()
                return False
            self._applied = sequence
            self.items = []
            self.error = e.message
            self.loading = self._in_flight > 0
            logger.warning("store_refresh_failed", table=self.table, error=e.message)
            if self.on_failure is not None:
                self.on_failure(e)
            self._notify()
            return False

        self._in_flight -= 1
        if not self._accepts(sequence):
            logger.debug("store_response_discarded", table=self.table, sequence=sequence)
            self._settle()
            return False

        self._applied = sequence
        self.items = [self.model.model_validate(row) for row in rows]
        self.error = None
        self.loading = self._in_flight > 0
        logger.debug("store_refreshed", table=self.table, count=len(self.items))
        self._notify()
        return True

    def _settle(self) -> None:
        if self._released:
            return
        self.loading = self._in_flight > 0
        self._notify()

    def _accepts(self, sequence: int) -> bool:
        if self._released:
            return False
        if self.discard_stale and sequence < self._applied:
            return False
        return True

    async def activate(self) -> None:
        """Subscribe to table changes and load the initial list."""
        if self.active:
            return
        self._released = False
        try:
            self._subscription = await self.gateway.subscribe(self.table)
            self.active = True
            self._watcher = asyncio.create_task(self._watch(self._subscription))
            await self.refresh()
        except BaseException:
            await self.deactivate()
            raise

    async def deactivate(self) -> None:
        """Release the subscription; later fetch completions are discarded."""
        self.active = False
        self._released = True

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await self.gateway.unsubscribe(subscription)

        watcher, self._watcher = self._watcher, None
        if watcher is not None and watcher is not asyncio.current_task():
            watcher.cancel()
            await asyncio.gather(watcher, return_exceptions=True)

    @asynccontextmanager
    async def mounted(self) -> AsyncIterator["EntityStore[M]"]:
        """Keep the store active for the body of the block."""
        try:
            await self.activate()
            yield self
        finally:
            await self.deactivate()

    async def _watch(self, subscription: Subscription) -> None:
        async for change in subscription:
            if not self.should_refresh(change):
                continue
            try:
                await self.refresh()
            except Exception:
                logger.exception(
                    "store_watch_refresh_failed",
                    table=self.table,
                    event=change.event,
                )
