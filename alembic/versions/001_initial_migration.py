"""Initial migration - create patient and appointment record tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create patients table
    op.create_table(
        "patients_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("medical_record_number", sa.String(length=64), nullable=True),
        sa.Column("email_address", sa.Text(), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("home_address", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="Pending", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'Cancelled')",
            name="patients_records_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_patients_records_medical_record_number",
        "patients_records",
        ["medical_record_number"],
    )

    # Create appointments table
    op.create_table(
        "appointments_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=True),
        sa.Column("appointment_date", sa.DateTime(), nullable=False),
        sa.Column("appointment_type", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="Pending", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'Cancelled')",
            name="appointments_records_status_check",
        ),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients_records.id"],
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_appointments_records_patient_id",
        "appointments_records",
        ["patient_id"],
    )
    op.create_index(
        "ix_appointments_records_appointment_date",
        "appointments_records",
        ["appointment_date"],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    # Drop indexes
    op.drop_index("ix_appointments_records_appointment_date", table_name="appointments_records")
    op.drop_index("ix_appointments_records_patient_id", table_name="appointments_records")
    op.drop_index("ix_patients_records_medical_record_number", table_name="patients_records")

    # Drop tables
    op.drop_table("appointments_records")
    op.drop_table("patients_records")
