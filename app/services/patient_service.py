"""Patient service for business logic."""

from app.core.exceptions import NotFoundException, RecordNotFound
from app.core.gateway import DataGateway
from app.schemas.common import RecordStatus, record_values
from app.schemas.patients import (
    Patient,
    PatientCreate,
    PatientListResponse,
    PatientUpdate,
)
from app.services.search import SearchFilter

TABLE = "patients_records"
ORDER_BY = "medical_record_number"


class PatientService:
    """Service for managing patient records."""

    def __init__(self, gateway: DataGateway):
        """Initialize service with data gateway."""
        self.gateway = gateway

    async def list_patients(self, search: str | None = None) -> PatientListResponse:
        """
        List patients ordered by medical record number.

        Args:
            search: Optional free-text query over names, email and MRN

        Returns:
            Matching patients
        """
        rows = await self.gateway.fetch_all(TABLE, ORDER_BY, predicate=SearchFilter(search))
        items = [Patient.model_validate(row) for row in rows]
        return PatientListResponse(total=len(items), items=items)

    async def get_patient(self, patient_id: int) -> Patient:
        """
        Get patient by ID.

        Raises:
            NotFoundException: If patient not found
        """
        row = await self.gateway.fetch_one(TABLE, patient_id)
        if not row:
            raise NotFoundException("Patient not found")
        return Patient.model_validate(row)

    async def create_patient(self, data: PatientCreate) -> Patient:
        """Create a new patient record."""
        row = await self.gateway.insert(TABLE, record_values(data))
        return Patient.model_validate(row)

    async def update_patient(self, patient_id: int, data: PatientUpdate) -> Patient:
        """
        Edit fields of a patient record.

        Only fields present in the request are written.

        Raises:
            NotFoundException: If patient not found
        """
        values = record_values(data, exclude_unset=True)
        try:
            row = await self.gateway.update(TABLE, patient_id, values)
        except RecordNotFound:
            raise NotFoundException("Patient not found") from None
        return Patient.model_validate(row)

    async def update_status(self, patient_id: int, status: RecordStatus) -> Patient:
        """Set the status of a patient record."""
        return await self.update_patient(patient_id, PatientUpdate(status=status))

    async def delete_patient(self, patient_id: int) -> None:
        """
        Delete a patient record.

        Appointments of the patient are kept and lose their patient link.

        Raises:
            NotFoundException: If patient not found
        """
        try:
            await self.gateway.delete(TABLE, patient_id)
        except RecordNotFound:
            raise NotFoundException("Patient not found") from None
