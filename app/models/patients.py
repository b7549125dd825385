"""Patient records table using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    text,
)

# Metadata shared by all record tables
metadata = MetaData()

patients_records = Table(
    "patients_records",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Identity
    Column("first_name", Text),
    Column("last_name", Text),
    Column("date_of_birth", Date),
    Column("medical_record_number", String(64), index=True),
    # Contact
    Column("email_address", Text),
    Column("phone_number", String(32)),
    Column("home_address", Text),
    # Status management
    Column("status", String(16), nullable=False, server_default="Pending"),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    CheckConstraint(
        "status IN ('Pending', 'Confirmed', 'Cancelled')",
        name="patients_records_status_check",
    ),
)
