"""Dashboard screen: clinic counters and administrator profile."""

import asyncio
from datetime import date
from typing import Any

import structlog

from app.core.changefeed import Subscription
from app.core.exceptions import FetchFailure
from app.core.gateway import DataGateway
from app.schemas.auth import AuthContext
from app.schemas.common import Notice
from app.schemas.dashboard import AdminProfile, DashboardStats
from app.services.stats_service import StatsService
from app.views.base import Screen

logger = structlog.get_logger(__name__)

WATCHED_TABLES = ("patients_records", "appointments_records")


def initials(name: str) -> str:
    """Upper-cased first letters of each word of a name."""
    return "".join(part[0] for part in name.split() if part).upper()


class DashboardScreen(Screen):
    """Counters recomputed whenever either record table changes."""

    name = "dashboard"
    fetch_error_message = "Failed to load clinic statistics"

    def __init__(
        self,
        gateway: DataGateway,
        auth: AuthContext | None,
        today: date | None = None,
        discard_stale: bool = False,
    ):
        """Initialize screen; ``today`` pins the day used for daily counters."""
        super().__init__(gateway, auth, discard_stale=discard_stale)
        self.today = today
        self.stats = DashboardStats()
        self.stats_service = StatsService(gateway)
        self._subscriptions: list[Subscription] = []
        self._watchers: list[asyncio.Task] = []

    @property
    def profile(self) -> AdminProfile | None:
        """The signed-in administrator as shown on the dashboard."""
        if self.auth is None:
            return None
        full_name = self.auth.full_name or "System Administrator"
        return AdminProfile(
            id=self.auth.user_id,
            email=self.auth.email,
            full_name=full_name,
            phone=self.auth.phone or "No phone number",
            initials=initials(self.auth.full_name or self.auth.email or "A"),
        )

    async def refresh(self) -> None:
        """Recompute the counters."""
        try:
            stats = await self.stats_service.get_stats(self.today)
        except FetchFailure as e:
            logger.warning("dashboard_stats_failed", error=e.message)
            if self.is_mounted:
                self.notify(Notice.error(self.fetch_error_message))
            return
        if not self.is_mounted:
            return
        self.stats = stats
        self.changed()

    async def mount(self) -> None:
        """Subscribe to both tables and load the counters."""
        await super().mount()
        try:
            for table in WATCHED_TABLES:
                subscription = await self.gateway.subscribe(table)
                self._subscriptions.append(subscription)
                self._watchers.append(asyncio.create_task(self._watch(subscription)))
            await self.refresh()
        except BaseException:
            await self.unmount()
            raise

    async def unmount(self) -> None:
        """Release subscriptions and stop watching."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await self.gateway.unsubscribe(subscription)
        watchers, self._watchers = self._watchers, []
        for watcher in watchers:
            watcher.cancel()
        await asyncio.gather(*watchers, return_exceptions=True)
        await super().unmount()

    async def _watch(self, subscription: Subscription) -> None:
        async for _change in subscription:
            await self.refresh()

    async def action_refresh(self, command: dict[str, Any]) -> Notice | None:
        await self.refresh()
        return None

    def render(self) -> dict[str, Any]:
        state = super().render()
        profile = self.profile
        state.update(
            {
                "stats": self.stats.model_dump(),
                "profile": profile.model_dump() if profile else None,
            }
        )
        return state
