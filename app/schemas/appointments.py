"""Appointment schemas for request/response validation."""

from datetime import date, datetime, timezone

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import RecordStatus, blank_to_none

UNKNOWN_PATIENT = "Unknown Patient"


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    patient_id: int | None = None
    appointment_date: datetime
    appointment_type: str = Field(..., min_length=1, max_length=200)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("notes", "patient_id", mode="before")
    @classmethod
    def empty_as_none(cls, v: object) -> object:
        """Treat blank form fields as not provided."""
        return blank_to_none(v)

    @field_validator("appointment_date")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        """Store offset-aware times as naive UTC."""
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @field_validator("appointment_type")
    @classmethod
    def strip_type(cls, v: str) -> str:
        """Reject whitespace-only appointment types."""
        v = v.strip()
        if not v:
            raise ValueError("Appointment type is required")
        return v


class AppointmentCreate(AppointmentBase):
    """Schema for creating a new appointment."""

    patient_id: int
    status: RecordStatus = RecordStatus.PENDING


class Appointment(AppointmentBase):
    """Appointment record as stored."""

    id: int
    status: RecordStatus = RecordStatus.PENDING
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def day(self) -> date:
        """Calendar day of the appointment, ignoring time of day."""
        return self.appointment_date.date()


class AppointmentRow(Appointment):
    """Appointment joined with the name of its patient."""

    patient_name: str = UNKNOWN_PATIENT


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentRow]


class CalendarDayResponse(BaseModel):
    """Appointments on one selected day plus the days that have any."""

    selected_day: date
    marked_days: list[date]
    items: list[AppointmentRow]
