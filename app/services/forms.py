"""Form buffers for adding records."""

from typing import Any, ClassVar

import structlog
from pydantic import BaseModel, ValidationError

from app.core.exceptions import FetchFailure, WriteFailure
from app.core.gateway import DataGateway
from app.schemas.appointments import AppointmentCreate
from app.schemas.common import Notice, RecordStatus, record_values
from app.schemas.patients import PatientCreate, PatientOption

logger = structlog.get_logger(__name__)


def describe_validation_error(error: ValidationError) -> str:
    """Turn the first validation error into a short message."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "form"
    return f"{field}: {first.get('msg', 'invalid value')}"


class CreationForm:
    """Local buffer holding a new record until it is submitted.

    A successful submit empties the buffer and closes the form. A failed one
    leaves everything as typed so the user can fix it and retry.
    """

    table: ClassVar[str]
    schema: ClassVar[type[BaseModel]]
    entity_label: ClassVar[str]
    defaults: ClassVar[dict[str, Any]] = {}

    def __init__(self, gateway: DataGateway):
        """Initialize a closed, empty form."""
        self.gateway = gateway
        self.is_open = False
        self.submitting = False
        self.data: dict[str, Any] = dict(self.defaults)

    async def open(self) -> None:
        """Show the form."""
        self.is_open = True

    def close(self) -> None:
        """Hide the form; typed values are kept."""
        self.is_open = False

    def reset(self) -> None:
        """Empty the buffer."""
        self.data = dict(self.defaults)

    def set(self, field: str, value: Any) -> None:
        """
        Store a field value.

        Raises:
            ValueError: If the form has no such field
        """
        if field not in self.schema.model_fields:
            raise ValueError(f"Unknown field: {field}")
        self.data[field] = value

    def validate(self) -> BaseModel:
        """Validate the buffer against the creation schema."""
        return self.schema.model_validate(self.data)

    async def submit(self) -> Notice:
        """
        Validate and insert the buffered record.

        Returns:
            Notice describing the outcome
        """
        try:
            payload = self.validate()
        except ValidationError as e:
            return Notice.error(describe_validation_error(e))
        except ValueError as e:
            return Notice.error(str(e))

        self.submitting = True
        try:
            await self.gateway.insert(self.table, record_values(payload))
        except WriteFailure as e:
            logger.warning("record_create_failed", table=self.table, error=e.message)
            return Notice.error(f"Failed to add {self.entity_label}")
        finally:
            self.submitting = False

        self.reset()
        self.close()
        return Notice.success(f"{self.entity_label.capitalize()} added successfully")


class PatientForm(CreationForm):
    """Buffer for a new patient record."""

    table = "patients_records"
    schema = PatientCreate
    entity_label = "patient"
    defaults = {
        "first_name": "",
        "last_name": "",
        "email_address": "",
        "phone_number": "",
        "date_of_birth": "",
        "medical_record_number": "",
        "home_address": "",
        "status": RecordStatus.PENDING.value,
    }


class AppointmentForm(CreationForm):
    """Buffer for a new appointment.

    The patient must be picked from the list loaded when the form opens.
    """

    table = "appointments_records"
    schema = AppointmentCreate
    entity_label = "appointment"
    defaults = {
        "patient_id": "",
        "appointment_date": "",
        "appointment_type": "",
        "status": RecordStatus.PENDING.value,
        "notes": "",
    }

    def __init__(self, gateway: DataGateway):
        """Initialize a closed form with no patients to pick from."""
        super().__init__(gateway)
        self.patients: list[PatientOption] = []

    async def open(self) -> None:
        """Show the form and load the selectable patients."""
        await super().open()
        await self.load_patients()

    async def load_patients(self) -> None:
        """Fetch the patients an appointment may be booked for."""
        try:
            rows = await self.gateway.fetch_all(
                "patients_records",
                "first_name",
                columns=("id", "first_name", "last_name"),
            )
        except FetchFailure as e:
            logger.warning("patient_options_failed", error=e.message)
            self.patients = []
            return
        self.patients = [PatientOption.model_validate(row) for row in rows]

    def validate(self) -> BaseModel:
        """Validate the buffer and check the chosen patient was offered."""
        payload = super().validate()
        if payload.patient_id not in {patient.id for patient in self.patients}:
            raise ValueError("Select a patient")
        return payload
