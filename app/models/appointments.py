"""Appointment records table using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    text,
)

from app.models.patients import metadata

appointments_records = Table(
    "appointments_records",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Lookup reference, not ownership: deleting a patient keeps the appointment
    Column(
        "patient_id",
        Integer,
        ForeignKey("patients_records.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    ),
    # Appointment details
    Column("appointment_date", DateTime, nullable=False, index=True),
    Column("appointment_type", Text, nullable=False),
    Column("notes", Text),
    # Status management
    Column("status", String(16), nullable=False, server_default="Pending"),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    CheckConstraint(
        "status IN ('Pending', 'Confirmed', 'Cancelled')",
        name="appointments_records_status_check",
    ),
)
