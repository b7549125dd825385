"""Dashboard statistics."""

import asyncio
from datetime import date, datetime, time, timedelta

from app.core.gateway import DataGateway
from app.models.appointments import appointments_records
from app.schemas.common import RecordStatus
from app.schemas.dashboard import DashboardStats


class StatsService:
    """Service computing the dashboard counters."""

    def __init__(self, gateway: DataGateway):
        """Initialize service with data gateway."""
        self.gateway = gateway

    async def get_stats(self, today: date | None = None) -> DashboardStats:
        """
        Count patients and appointments by status and day.

        Args:
            today: Day treated as today (defaults to the current date)

        Returns:
            Dashboard counters

        Raises:
            FetchFailure: If any count fails
        """
        today = today or date.today()
        day_start = datetime.combine(today, time.min)
        day_end = day_start + timedelta(days=1)
        when = appointments_records.c.appointment_date
        status = appointments_records.c.status
        table = appointments_records.name

        (
            total_patients,
            upcoming,
            confirmed_today,
            pending,
            cancelled,
        ) = await asyncio.gather(
            self.gateway.count("patients_records"),
            self.gateway.count(table, when >= day_start),
            self.gateway.count(
                table,
                when >= day_start,
                when < day_end,
                status == RecordStatus.CONFIRMED.value,
            ),
            self.gateway.count(table, status == RecordStatus.PENDING.value),
            self.gateway.count(table, status == RecordStatus.CANCELLED.value),
        )

        return DashboardStats(
            total_patients=total_patients,
            upcoming_appointments=upcoming,
            confirmed_today=confirmed_today,
            pending_confirmations=pending,
            cancelled_appointments=cancelled,
        )
