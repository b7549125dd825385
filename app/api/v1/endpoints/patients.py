"""Patient record endpoints."""

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentAuth, Gateway
from app.schemas.common import StatusUpdate
from app.schemas.patients import (
    Patient,
    PatientCreate,
    PatientListResponse,
    PatientUpdate,
)
from app.services.patient_service import PatientService

router = APIRouter()


@router.get(
    "/",
    response_model=PatientListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Patients"],
    summary="List patients",
)
async def list_patients(
    auth: CurrentAuth,
    gateway: Gateway,
    search: str | None = Query(None, description="Match name, email or MRN"),
) -> PatientListResponse:
    """
    List patient records ordered by medical record number.

    Args:
        auth: Signed-in administrator
        gateway: Data gateway
        search: Optional case-insensitive search query

    Returns:
        Matching patients
    """
    service = PatientService(gateway)
    return await service.list_patients(search)


@router.post(
    "/",
    response_model=Patient,
    status_code=status.HTTP_201_CREATED,
    tags=["Patients"],
    summary="Create patient",
)
async def create_patient(
    data: PatientCreate,
    auth: CurrentAuth,
    gateway: Gateway,
) -> Patient:
    """
    Create a new patient record.

    Args:
        data: Patient creation data
        auth: Signed-in administrator
        gateway: Data gateway

    Returns:
        Created patient
    """
    service = PatientService(gateway)
    return await service.create_patient(data)


@router.get(
    "/{patient_id}",
    response_model=Patient,
    status_code=status.HTTP_200_OK,
    tags=["Patients"],
    summary="Get patient by ID",
)
async def get_patient(
    patient_id: int,
    auth: CurrentAuth,
    gateway: Gateway,
) -> Patient:
    """
    Get a specific patient record.

    Raises:
        HTTPException: If patient not found
    """
    service = PatientService(gateway)
    return await service.get_patient(patient_id)


@router.put(
    "/{patient_id}",
    response_model=Patient,
    status_code=status.HTTP_200_OK,
    tags=["Patients"],
    summary="Edit patient",
)
async def update_patient(
    patient_id: int,
    data: PatientUpdate,
    auth: CurrentAuth,
    gateway: Gateway,
) -> Patient:
    """
    Edit fields of a patient record.

    Raises:
        HTTPException: If patient not found
    """
    service = PatientService(gateway)
    return await service.update_patient(patient_id, data)


@router.patch(
    "/{patient_id}/status",
    response_model=Patient,
    status_code=status.HTTP_200_OK,
    tags=["Patients"],
    summary="Update patient status",
)
async def update_patient_status(
    patient_id: int,
    data: StatusUpdate,
    auth: CurrentAuth,
    gateway: Gateway,
) -> Patient:
    """
    Set a patient record to Pending, Confirmed or Cancelled.

    Raises:
        HTTPException: If patient not found
    """
    service = PatientService(gateway)
    return await service.update_status(patient_id, data.status)


@router.delete(
    "/{patient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Patients"],
    summary="Delete patient",
)
async def delete_patient(
    patient_id: int,
    auth: CurrentAuth,
    gateway: Gateway,
) -> None:
    """
    Permanently delete a patient record.

    Appointments of the patient are kept.

    Raises:
        HTTPException: If patient not found
    """
    service = PatientService(gateway)
    await service.delete_patient(patient_id)
