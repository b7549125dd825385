"""Dashboard schemas."""

from pydantic import BaseModel


class DashboardStats(BaseModel):
    """Clinic counters shown on the dashboard."""

    total_patients: int = 0
    upcoming_appointments: int = 0
    confirmed_today: int = 0
    pending_confirmations: int = 0
    cancelled_appointments: int = 0


class AdminProfile(BaseModel):
    """Signed-in administrator shown on the dashboard."""

    id: str
    email: str | None = None
    full_name: str
    phone: str
    initials: str
