"""Initial schema: providers, provider_unavailability, appointments, notifications.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ACTIVE_SLOT_WHERE = sa.text("status IN ('approved', 'booked', 'confirmed', 'pending')")


def upgrade() -> None:
    op.create_table(
        "providers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False, server_default=""),
        sa.Column("middle_name", sa.String(), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(), nullable=False, server_default=""),
        sa.Column("suffix", sa.String(), nullable=False, server_default=""),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("specialization", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "provider_unavailability",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.String(), nullable=False),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("full_day", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("times", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_id", "date", name="uq_provider_unavailability_date"),
    )
    op.create_index(
        op.f("ix_provider_unavailability_provider_id"),
        "provider_unavailability",
        ["provider_id"],
        unique=False,
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("provider_id", sa.String(), nullable=False),
        sa.Column("patient_id", sa.String(), nullable=False),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("time", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("message", sa.String(), nullable=False, server_default=""),
        sa.Column("appointment_type", sa.String(), nullable=False, server_default="consultation"),
        sa.Column("who_booked", sa.String(), nullable=False, server_default="client"),
        sa.Column("booked_by_uid", sa.String(), nullable=False, server_default=""),
        sa.Column("payment_option", sa.String(), nullable=False, server_default=""),
        sa.Column("payment_proof_uri", sa.String(), nullable=False, server_default=""),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("last_updated", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_provider_id"), "appointments", ["provider_id"], unique=False)
    op.create_index(op.f("ix_appointments_patient_id"), "appointments", ["patient_id"], unique=False)
    op.create_index(op.f("ix_appointments_date"), "appointments", ["date"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)
    op.create_index(
        "uq_appointments_active_slot",
        "appointments",
        ["provider_id", "date", "time"],
        unique=True,
        postgresql_where=_ACTIVE_SLOT_WHERE,
        sqlite_where=_ACTIVE_SLOT_WHERE,
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("patient_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="general"),
        sa.Column("appointment_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notifications_patient_id"), "notifications", ["patient_id"], unique=False)
    op.create_index(op.f("ix_notifications_appointment_id"), "notifications", ["appointment_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_notifications_appointment_id"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_patient_id"), table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("uq_appointments_active_slot", table_name="appointments")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_date"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_patient_id"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_provider_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_index(op.f("ix_provider_unavailability_provider_id"), table_name="provider_unavailability")
    op.drop_table("provider_unavailability")
    op.drop_table("providers")
