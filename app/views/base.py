"""Screen composition shared by all dashboard screens.

A screen is mounted for as long as a client is looking at it. Mounting
activates the screen's stores (initial fetch plus change subscription);
unmounting releases them on every exit path. User commands arrive as
``{"action": ..., ...}`` dictionaries and every outcome is reported as a
``Notice``; gateway failures never escape a screen.
"""

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from typing import Any, ClassVar, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from app.core.exceptions import AuthMissing, FetchFailure
from app.core.gateway import DataGateway, QueryPredicate
from app.schemas.auth import AuthContext
from app.schemas.common import Notice, RecordStatus
from app.services.entity_store import EntityStore
from app.services.forms import CreationForm

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

NoticeListener = Callable[[Notice], None]
ChangeListener = Callable[[], None]
ActionHandler = Callable[[dict[str, Any]], Awaitable[Notice | None]]


class Screen:
    """Base class for mounted dashboard screens."""

    name: ClassVar[str] = "screen"
    fetch_error_message: ClassVar[str] = "Failed to fetch records"

    def __init__(
        self,
        gateway: DataGateway,
        auth: AuthContext | None,
        discard_stale: bool = False,
    ):
        """
        Initialize screen.

        Args:
            gateway: Data gateway shared by the screen's stores
            auth: Session of the signed-in administrator
            discard_stale: Drop fetch results overtaken by newer ones
        """
        self.gateway = gateway
        self.auth = auth
        self.discard_stale = discard_stale
        self.is_mounted = False
        self.form: CreationForm | None = None
        self.stores: list[EntityStore[Any]] = []
        self._notice_listeners: list[NoticeListener] = []
        self._change_listeners: list[ChangeListener] = []

    # Listeners

    def on_notice(self, listener: NoticeListener) -> None:
        """Call ``listener(notice)`` for every notice the screen emits."""
        self._notice_listeners.append(listener)

    def on_change(self, listener: ChangeListener) -> None:
        """Call ``listener()`` whenever the rendered state may have changed."""
        self._change_listeners.append(listener)

    def notify(self, notice: Notice) -> None:
        """Emit a notice."""
        logger.info(
            "screen_notice",
            screen=self.name,
            level=notice.level.value,
            message=notice.message,
        )
        for listener in list(self._notice_listeners):
            listener(notice)

    def changed(self) -> None:
        """Signal that the rendered state may have changed."""
        for listener in list(self._change_listeners):
            listener()

    # Stores

    def add_store(
        self,
        table: str,
        order_by: str,
        model: type[M],
        predicate: QueryPredicate | None = None,
        columns: Sequence[str] | None = None,
    ) -> EntityStore[M]:
        """Create a store that is mounted together with the screen."""
        store = EntityStore(
            self.gateway,
            table,
            order_by,
            model,
            predicate=predicate,
            columns=columns,
            on_failure=self._fetch_failed,
            discard_stale=self.discard_stale,
        )
        store.add_listener(lambda _store: self.changed())
        self.stores.append(store)
        return store

    def _fetch_failed(self, failure: FetchFailure) -> None:
        self.notify(Notice.error(self.fetch_error_message))

    # Lifecycle

    async def mount(self) -> None:
        """
        Activate the screen's stores.

        Raises:
            AuthMissing: If there is no signed-in administrator
        """
        if self.auth is None:
            raise AuthMissing()

        try:
            for store in self.stores:
                await store.activate()
        except BaseException:
            await self.unmount()
            raise

        self.is_mounted = True
        logger.info("screen_mounted", screen=self.name, user_id=self.auth.user_id)

    async def unmount(self) -> None:
        """Release every store."""
        for store in self.stores:
            await store.deactivate()
        if self.is_mounted:
            logger.info("screen_unmounted", screen=self.name)
        self.is_mounted = False

    @asynccontextmanager
    async def mounted(self) -> AsyncIterator["Screen"]:
        """Keep the screen mounted for the body of the block."""
        await self.mount()
        try:
            yield self
        finally:
            await self.unmount()

    @property
    def loading(self) -> bool:
        """Whether any store is still fetching."""
        return any(store.loading for store in self.stores)

    # Commands

    def actions(self) -> dict[str, ActionHandler]:
        """Commands understood by the screen."""
        return {
            "refresh": self.action_refresh,
            "open_form": self.action_open_form,
            "close_form": self.action_close_form,
            "set_field": self.action_set_field,
            "submit": self.action_submit,
        }

    async def handle(self, command: dict[str, Any]) -> Notice | None:
        """
        Run a user command.

        Args:
            command: Command with an ``action`` key and its arguments

        Returns:
            The notice emitted for the command, if any
        """
        action = command.get("action")
        handler = self.actions().get(action) if isinstance(action, str) else None

        if handler is None:
            notice: Notice | None = Notice.error(f"Unknown action: {action}")
        else:
            try:
                notice = await handler(command)
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning("screen_command_rejected", screen=self.name, action=action, error=str(e))
                notice = Notice.error(f"Invalid {action} command")

        if notice is not None:
            self.notify(notice)
        self.changed()
        return notice

    async def action_refresh(self, command: dict[str, Any]) -> Notice | None:
        for store in self.stores:
            await store.refresh()
        return None

    async def action_open_form(self, command: dict[str, Any]) -> Notice | None:
        if self.form is None:
            return Notice.error("This screen has no form")
        await self.form.open()
        return None

    async def action_close_form(self, command: dict[str, Any]) -> Notice | None:
        if self.form is not None:
            self.form.close()
        return None

    async def action_set_field(self, command: dict[str, Any]) -> Notice | None:
        if self.form is None:
            return Notice.error("This screen has no form")
        self.form.set(command["field"], command.get("value"))
        return None

    async def action_submit(self, command: dict[str, Any]) -> Notice | None:
        if self.form is None:
            return Notice.error("This screen has no form")
        return await self.form.submit()

    @staticmethod
    def parse_status(value: Any) -> RecordStatus:
        """
        Read a status from a command.

        Raises:
            ValueError: If the value is not a known status
        """
        return RecordStatus(value)

    # Rendering

    def render_form(self) -> dict[str, Any] | None:
        """State of the creation form."""
        if self.form is None:
            return None
        return {
            "open": self.form.is_open,
            "submitting": self.form.submitting,
            "data": self.form.data,
        }

    def render(self) -> dict[str, Any]:
        """Serializable state of the screen."""
        return {
            "screen": self.name,
            "loading": self.loading,
            "form": self.render_form(),
        }
