"""Dashboard endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CurrentAuth, Gateway
from app.schemas.dashboard import DashboardStats
from app.services.stats_service import StatsService

router = APIRouter()


@router.get(
    "/stats",
    response_model=DashboardStats,
    status_code=status.HTTP_200_OK,
    tags=["Dashboard"],
    summary="Clinic counters",
)
async def get_stats(auth: CurrentAuth, gateway: Gateway) -> DashboardStats:
    """
    Patient total, upcoming and today's confirmed appointments, and
    appointments per status.
    """
    service = StatsService(gateway)
    return await service.get_stats()
