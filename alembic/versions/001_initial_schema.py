"""Initial schema: configuration, directory, availability, appointments, audit.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Organization configuration ─────────────────────────────────────

    op.create_table(
        "business_configurations",
        sa.Column("org_id", sa.String(64), nullable=False),
        sa.Column("industry_type", sa.String(30), nullable=False),
        sa.Column("appointment_model", sa.String(30), nullable=False),
        sa.Column("allow_client_selection", sa.Boolean(), nullable=False),
        sa.Column("require_resource_assignment", sa.Boolean(), nullable=False),
        sa.Column("auto_assign_resources", sa.Boolean(), nullable=False),
        sa.Column("buffer_between_appointments", sa.Integer(), nullable=False, comment="Minutes"),
        sa.Column("max_advance_booking_days", sa.Integer(), nullable=False),
        sa.Column("allow_cancellation", sa.Boolean(), nullable=False),
        sa.Column("cancellation_hours_before", sa.Integer(), nullable=False),
        sa.Column("cancellation_penalty_percentage", sa.Integer(), nullable=False),
        sa.Column("require_confirmation", sa.Boolean(), nullable=False),
        sa.Column("send_reminders", sa.Boolean(), nullable=False),
        sa.Column("reminder_hours", postgresql.JSONB(astext_type=sa.Text())),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_business_configurations_org_id", "business_configurations", ["org_id"], unique=True)

    # ── Entity directory ───────────────────────────────────────────────

    op.create_table(
        "staff",
        sa.Column("org_id", sa.String(64), nullable=False, index=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("role", sa.String(50), nullable=False, comment="doctor, stylist, therapist, ..."),
        sa.Column("specialties", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("schedule", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "resources",
        sa.Column("org_id", sa.String(64), nullable=False, index=True),
        sa.Column("resource_type", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000)),
        sa.Column("schedule", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Availability ───────────────────────────────────────────────────

    op.create_table(
        "availability",
        sa.Column("org_id", sa.String(64), nullable=False, index=True),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time_slots", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("override", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, comment="Optimistic concurrency counter"),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_type", "entity_id", "date", name="uq_availability_entity_date"),
    )

    # ── Appointments ───────────────────────────────────────────────────

    op.create_table(
        "appointments",
        sa.Column("org_id", sa.String(64), nullable=False, index=True),
        sa.Column("staff_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("assignment_type", sa.String(30), nullable=False),
        sa.Column("client_info", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("service_info", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, comment="Minutes"),
        sa.Column("slot_date", sa.Date(), nullable=False, index=True),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.String(1000)),
        sa.Column("custom_fields", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("cancellation_info", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("rescheduling_history", postgresql.JSONB(astext_type=sa.Text())),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Audit ──────────────────────────────────────────────────────────

    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("org_id", sa.String(64), index=True),
        sa.Column("actor_id", sa.String(100), comment="User ID or 'system'"),
        sa.Column("source_module", sa.String(100)),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("appointments")
    op.drop_table("availability")
    op.drop_table("resources")
    op.drop_table("staff")
    op.drop_index("ix_business_configurations_org_id", table_name="business_configurations")
    op.drop_table("business_configurations")
