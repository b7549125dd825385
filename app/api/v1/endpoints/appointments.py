"""Appointment endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentAuth, Gateway
from app.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentListResponse,
    CalendarDayResponse,
)
from app.schemas.common import StatusUpdate
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    auth: CurrentAuth,
    gateway: Gateway,
) -> AppointmentListResponse:
    """
    List appointments ordered by date, with patient names.

    Args:
        auth: Signed-in administrator
        gateway: Data gateway

    Returns:
        All appointments
    """
    service = AppointmentService(gateway)
    return await service.list_appointments()


@router.get(
    "/calendar",
    response_model=CalendarDayResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Appointments of one day",
)
async def get_calendar_day(
    auth: CurrentAuth,
    gateway: Gateway,
    day: date | None = Query(None, description="Selected day, defaults to today"),
) -> CalendarDayResponse:
    """
    Appointments of the selected day and the days that have appointments.

    Args:
        auth: Signed-in administrator
        gateway: Data gateway
        day: Selected day

    Returns:
        Calendar day view
    """
    service = AppointmentService(gateway)
    return await service.get_calendar_day(day or date.today())


@router.post(
    "/",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    auth: CurrentAuth,
    gateway: Gateway,
) -> Appointment:
    """
    Schedule an appointment for an existing patient.

    Args:
        data: Appointment creation data
        auth: Signed-in administrator
        gateway: Data gateway

    Returns:
        Created appointment

    Raises:
        HTTPException: If the patient does not exist
    """
    service = AppointmentService(gateway)
    return await service.create_appointment(data)


@router.patch(
    "/{appointment_id}/status",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: int,
    data: StatusUpdate,
    auth: CurrentAuth,
    gateway: Gateway,
) -> Appointment:
    """
    Set an appointment to Pending, Confirmed or Cancelled.

    Raises:
        HTTPException: If appointment not found
    """
    service = AppointmentService(gateway)
    return await service.update_status(appointment_id, data.status)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Appointments"],
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: int,
    auth: CurrentAuth,
    gateway: Gateway,
) -> None:
    """
    Permanently delete an appointment.

    Raises:
        HTTPException: If appointment not found
    """
    service = AppointmentService(gateway)
    await service.delete_appointment(appointment_id)
