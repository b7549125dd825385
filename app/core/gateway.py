"""Typed access to the record tables.

The gateway is the only component that talks to the database. Reads raise
``FetchFailure``, writes raise ``WriteFailure``; nothing is retried. Every
committed write is announced on the change feed.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import structlog
from sqlalchemy import ColumnElement, Table, and_, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.changefeed import ALL_EVENTS, ChangeEvent, ChangeFeed, ChangeType, Subscription
from app.core.exceptions import FetchFailure, RecordNotFound, WriteFailure
from app.models import TABLES

logger = structlog.get_logger(__name__)


class QueryPredicate(Protocol):
    """Filter that can be pushed down to a table query."""

    def to_clause(self, table: Table) -> ColumnElement[bool] | None:
        """Build the SQL condition, or None when nothing is filtered."""
        ...


class DataGateway:
    """Gateway for selects, writes and change subscriptions on record tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        changefeed: ChangeFeed,
    ):
        """Initialize gateway with a session factory and a change feed."""
        self.session_factory = session_factory
        self.changefeed = changefeed

    @staticmethod
    def table(name: str) -> Table:
        """
        Look up a record table by name.

        Raises:
            ValueError: If the table is unknown
        """
        try:
            return TABLES[name]
        except KeyError:
            raise ValueError(f"Unknown table: {name}") from None

    async def fetch_all(
        self,
        table: str,
        order_by: str,
        predicate: QueryPredicate | None = None,
        descending: bool = False,
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch every record of a table in order.

        Args:
            table: Table name
            order_by: Column to sort by
            predicate: Optional filter pushed to the query
            descending: Sort descending instead of ascending
            columns: Restrict the selected columns

        Returns:
            Records as dictionaries

        Raises:
            FetchFailure: If the query fails
        """
        source = self.table(table)
        selected = [source.c[name] for name in columns] if columns else [source]
        order_column = source.c[order_by]

        stmt = select(*selected).order_by(order_column.desc() if descending else order_column.asc())

        if predicate is not None:
            clause = predicate.to_clause(source)
            if clause is not None:
                stmt = stmt.where(clause)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error("gateway_fetch_failed", table=table, error=str(e))
            raise FetchFailure(f"Failed to fetch {table}", table=table, reason=str(e)) from e

        return rows

    async def fetch_one(self, table: str, record_id: int) -> dict[str, Any] | None:
        """
        Fetch a single record by ID.

        Raises:
            FetchFailure: If the query fails
        """
        source = self.table(table)
        stmt = select(source).where(source.c.id == record_id)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.mappings().first()
        except SQLAlchemyError as e:
            logger.error("gateway_fetch_failed", table=table, record_id=record_id, error=str(e))
            raise FetchFailure(f"Failed to fetch {table}", table=table, reason=str(e)) from e

        return dict(row) if row else None

    async def count(self, table: str, *conditions: ColumnElement[bool]) -> int:
        """
        Count records matching all conditions.

        Raises:
            FetchFailure: If the query fails
        """
        source = self.table(table)
        stmt = select(func.count()).select_from(source)
        if conditions:
            stmt = stmt.where(and_(*conditions))

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                total = result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error("gateway_count_failed", table=table, error=str(e))
            raise FetchFailure(f"Failed to count {table}", table=table, reason=str(e)) from e

        return total

    async def insert(self, table: str, record: Mapping[str, Any]) -> dict[str, Any]:
        """
        Insert a record.

        Returns:
            The stored record, including server-assigned fields

        Raises:
            WriteFailure: If the insert fails
        """
        source = self.table(table)
        stmt = insert(source).values(**record).returning(source)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = dict(result.mappings().one())
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("gateway_write_failed", table=table, operation="insert", error=str(e))
            raise WriteFailure(f"Failed to insert into {table}", table=table, reason=str(e)) from e

        logger.info("record_inserted", table=table, record_id=row["id"])
        await self._announce(table, ChangeType.INSERT, row["id"], row)
        return row

    async def update(
        self,
        table: str,
        record_id: int,
        partial: Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Update fields of a record.

        Returns:
            The updated record

        Raises:
            RecordNotFound: If no record has this ID
            WriteFailure: If the update fails
        """
        source = self.table(table)

        if not partial:
            try:
                current = await self.fetch_one(table, record_id)
            except FetchFailure as e:
                raise WriteFailure(e.message, table=table, reason=e.reason) from e
            if current is None:
                raise RecordNotFound(table, record_id)
            return current

        stmt = (
            update(source)
            .where(source.c.id == record_id)
            .values(**partial)
            .returning(source)
        )

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.mappings().first()
                row = dict(row) if row else None
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "gateway_write_failed",
                table=table,
                operation="update",
                record_id=record_id,
                error=str(e),
            )
            raise WriteFailure(f"Failed to update {table}", table=table, reason=str(e)) from e

        if row is None:
            raise RecordNotFound(table, record_id)

        logger.info("record_updated", table=table, record_id=record_id, fields=sorted(partial))
        await self._announce(table, ChangeType.UPDATE, record_id, row)
        return row

    async def delete(self, table: str, record_id: int) -> None:
        """
        Delete a record.

        Raises:
            RecordNotFound: If no record has this ID
            WriteFailure: If the delete fails
        """
        source = self.table(table)
        stmt = delete(source).where(source.c.id == record_id)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                deleted = result.rowcount
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "gateway_write_failed",
                table=table,
                operation="delete",
                record_id=record_id,
                error=str(e),
            )
            raise WriteFailure(f"Failed to delete from {table}", table=table, reason=str(e)) from e

        if not deleted:
            raise RecordNotFound(table, record_id)

        logger.info("record_deleted", table=table, record_id=record_id)
        await self._announce(table, ChangeType.DELETE, record_id, None)

    async def subscribe(self, table: str, event: str = ALL_EVENTS) -> Subscription:
        """Subscribe to changes of a table."""
        self.table(table)
        return await self.changefeed.subscribe(table, event)

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Release a subscription."""
        await self.changefeed.unsubscribe(subscription)

    async def _announce(
        self,
        table: str,
        event: ChangeType,
        record_id: int,
        record: dict[str, Any] | None,
    ) -> None:
        change = ChangeEvent(table=table, event=event, record_id=record_id, record=record)
        try:
            await self.changefeed.publish(change)
        except Exception as e:
            # The write is committed; subscribers catch up on their next refresh
            logger.warning("change_publish_failed", table=table, change_type=event.value, error=str(e))
