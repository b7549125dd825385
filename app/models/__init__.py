"""Database models."""

from app.models.appointments import appointments_records
from app.models.patients import metadata, patients_records

# Tables reachable by name through the data gateway
TABLES = {
    patients_records.name: patients_records,
    appointments_records.name: appointments_records,
}

__all__ = [
    "TABLES",
    "appointments_records",
    "metadata",
    "patients_records",
]
