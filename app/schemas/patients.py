"""Patient schemas for request/response validation."""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.common import RecordStatus, blank_to_none


class PatientBase(BaseModel):
    """Base patient schema with common fields."""

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email_address: EmailStr | None = None
    phone_number: str | None = Field(None, max_length=32)
    date_of_birth: date | None = None
    medical_record_number: str | None = Field(None, max_length=64)
    home_address: str | None = Field(None, max_length=500)

    @field_validator("*", mode="before")
    @classmethod
    def empty_as_none(cls, v: object) -> object:
        """Treat blank form fields as not provided."""
        return blank_to_none(v)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        if v is None:
            return v
        cleaned = (
            v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
        )
        if not cleaned.isdigit():
            raise ValueError("Phone number must contain only digits and separators")
        return v

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date | None) -> date | None:
        """Reject birth dates in the future."""
        if v and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class PatientCreate(PatientBase):
    """Schema for creating a new patient record."""

    status: RecordStatus = RecordStatus.PENDING


class PatientUpdate(PatientBase):
    """Schema for editing an existing patient record."""

    status: RecordStatus | None = None


class Patient(PatientBase):
    """Patient record as stored."""

    id: int
    status: RecordStatus = RecordStatus.PENDING
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        """First and last name joined, skipping missing parts."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class PatientOption(BaseModel):
    """Patient entry offered when scheduling an appointment."""

    id: int
    first_name: str | None = None
    last_name: str | None = None


class PatientListResponse(BaseModel):
    """Schema for patient list response."""

    total: int
    items: list[Patient]
