"""Appointment service for business logic."""

from collections.abc import Iterable, Mapping
from datetime import date

from app.core.exceptions import BadRequestException, NotFoundException, RecordNotFound
from app.core.gateway import DataGateway
from app.schemas.appointments import (
    UNKNOWN_PATIENT,
    Appointment,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRow,
    CalendarDayResponse,
)
from app.schemas.common import RecordStatus, record_values
from app.schemas.patients import PatientOption

TABLE = "appointments_records"
ORDER_BY = "appointment_date"


def patient_display_name(patient: PatientOption | None) -> str:
    """Name shown for an appointment's patient."""
    if patient is None:
        return UNKNOWN_PATIENT
    return f"{patient.first_name or ''} {patient.last_name or ''}".strip() or UNKNOWN_PATIENT


def join_patient_names(
    appointments: Iterable[Appointment],
    patients: Mapping[int, PatientOption],
) -> list[AppointmentRow]:
    """
    Attach patient names to appointments.

    This is a lookup, not ownership: appointments whose patient is gone keep
    their row and show ``Unknown Patient``.
    """
    rows = []
    for appointment in appointments:
        patient = patients.get(appointment.patient_id) if appointment.patient_id else None
        rows.append(
            AppointmentRow(
                **appointment.model_dump(),
                patient_name=patient_display_name(patient),
            )
        )
    return rows


def appointments_on(appointments: Iterable[AppointmentRow], day: date) -> list[AppointmentRow]:
    """Appointments on an exact calendar day, in their existing (time) order."""
    return [appointment for appointment in appointments if appointment.day == day]


def marked_days(appointments: Iterable[Appointment]) -> list[date]:
    """Distinct days that have at least one appointment, ascending."""
    return sorted({appointment.day for appointment in appointments})


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, gateway: DataGateway):
        """Initialize service with data gateway."""
        self.gateway = gateway

    async def _patient_lookup(self) -> dict[int, PatientOption]:
        rows = await self.gateway.fetch_all(
            "patients_records",
            "id",
            columns=("id", "first_name", "last_name"),
        )
        return {row["id"]: PatientOption.model_validate(row) for row in rows}

    async def list_appointments(self) -> AppointmentListResponse:
        """
        List appointments ordered by date with their patient names.

        Returns:
            All appointments
        """
        rows = await self.gateway.fetch_all(TABLE, ORDER_BY)
        appointments = [Appointment.model_validate(row) for row in rows]
        items = join_patient_names(appointments, await self._patient_lookup())
        return AppointmentListResponse(total=len(items), items=items)

    async def get_calendar_day(self, day: date) -> CalendarDayResponse:
        """
        Appointments of one day plus every day that has appointments.

        Args:
            day: Selected calendar day

        Returns:
            Day view ordered by time
        """
        listing = await self.list_appointments()
        return CalendarDayResponse(
            selected_day=day,
            marked_days=marked_days(listing.items),
            items=appointments_on(listing.items, day),
        )

    async def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """
        Create a new appointment.

        Raises:
            BadRequestException: If the patient does not exist
        """
        if await self.gateway.fetch_one("patients_records", data.patient_id) is None:
            raise BadRequestException("Patient not found")

        row = await self.gateway.insert(TABLE, record_values(data))
        return Appointment.model_validate(row)

    async def update_status(self, appointment_id: int, status: RecordStatus) -> Appointment:
        """
        Set the status of an appointment.

        Raises:
            NotFoundException: If appointment not found
        """
        try:
            row = await self.gateway.update(TABLE, appointment_id, {"status": status.value})
        except RecordNotFound:
            raise NotFoundException("Appointment not found") from None
        return Appointment.model_validate(row)

    async def delete_appointment(self, appointment_id: int) -> None:
        """
        Delete an appointment.

        Raises:
            NotFoundException: If appointment not found
        """
        try:
            await self.gateway.delete(TABLE, appointment_id)
        except RecordNotFound:
            raise NotFoundException("Appointment not found") from None
