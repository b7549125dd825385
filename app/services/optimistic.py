"""Optimistic writes against a screen's entity store."""

import structlog

from app.core.exceptions import WriteFailure
from app.core.gateway import DataGateway
from app.schemas.common import Notice, RecordStatus
from app.services.entity_store import EntityStore

logger = structlog.get_logger(__name__)


class StagedStatusChange:
    """A status change applied locally and not yet confirmed by the database.

    Exactly one of ``confirm()`` or ``compensate()`` settles it.
    """

    def __init__(
        self,
        store: EntityStore,
        record_id: int,
        status: RecordStatus,
        previous_status: RecordStatus | None,
    ):
        """Initialize a pending change."""
        self.store = store
        self.record_id = record_id
        self.status = status
        self.previous_status = previous_status
        self.settled = False

    def confirm(self) -> None:
        """Keep the local value; the write succeeded."""
        self.settled = True

    async def compensate(self) -> None:
        """Drop the local value by reloading what the database holds."""
        self.settled = True
        await self.store.refresh()


class OptimisticMutator:
    """Issues writes for one table and reconciles the store with the result."""

    def __init__(self, gateway: DataGateway, store: EntityStore, entity_label: str):
        """
        Initialize mutator.

        Args:
            gateway: Data gateway used for writes
            store: Store holding the screen's copy of the table
            entity_label: Human name of one record, used in notices
        """
        self.gateway = gateway
        self.store = store
        self.entity_label = entity_label

    def stage_status(self, record_id: int, status: RecordStatus) -> StagedStatusChange:
        """Apply a status change to the local copy only."""
        previous = self.store.patch_local(record_id, status=status)
        previous_status = getattr(previous, "status", None) if previous is not None else None
        return StagedStatusChange(self.store, record_id, status, previous_status)

    async def change_status(self, record_id: int, status: RecordStatus) -> Notice:
        """
        Change a record's status optimistically.

        The local copy changes at once. If the write fails, the store is
        reloaded so it shows the value the database still holds.

        Returns:
            Notice describing the outcome
        """
        staged = self.stage_status(record_id, status)

        try:
            await self.gateway.update(self.store.table, record_id, {"status": status.value})
        except WriteFailure as e:
            logger.warning(
                "status_update_failed",
                table=self.store.table,
                record_id=record_id,
                status=status.value,
                error=e.message,
            )
            await staged.compensate()
            return Notice.error("Failed to update status")

        staged.confirm()
        return Notice.success("Status updated successfully")

    async def delete(self, record_id: int) -> Notice:
        """
        Delete a record.

        The local copy is left alone; the row disappears when the change
        notification for the delete refreshes the store.

        Returns:
            Notice describing the outcome
        """
        try:
            await self.gateway.delete(self.store.table, record_id)
        except WriteFailure as e:
            logger.warning(
                "delete_failed",
                table=self.store.table,
                record_id=record_id,
                error=e.message,
            )
            return Notice.error(f"Failed to delete {self.entity_label}")

        return Notice.success(f"{self.entity_label.capitalize()} deleted successfully")
