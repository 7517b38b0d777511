"""Initial schema for OnSchedule

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INSPECTION_TYPES = (
    "weekly", "monthly", "quarterly", "semi_annual", "annual",
    "pre_operation", "daily", "preventive_maintenance", "corrective_maintenance",
    "repair", "safety", "calibration", "load_test", "electrical", "structural",
    "fire_safety", "installation", "post_incident", "commissioning", "special",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # Create clients table
    op.create_table(
        "clients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        *_timestamps(),
    )

    # Create employees table
    op.create_table(
        "employees",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        *_timestamps(),
    )

    # Create assets table
    op.create_table(
        "assets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("serial_no", sa.String(100), nullable=True),
        sa.Column("location", sa.String(500), nullable=True),
        *_timestamps(),
    )

    # Create template tables
    op.create_table(
        "email_templates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("provider_template_id", sa.String(255), nullable=True, comment="SendGrid dynamic template ID"),
        sa.Column("body", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "sms_templates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("body", sa.Text, nullable=True),
        *_timestamps(),
    )

    # Create inspections table
    op.create_table(
        "inspections",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("inspection_type", sa.Enum(*INSPECTION_TYPES, name="inspectiontype"), nullable=False, index=True),
        sa.Column("due_date", sa.Date, nullable=True, index=True),
        sa.Column(
            "status",
            sa.Enum(
                "scheduled", "not_scheduled", "in_progress", "completed",
                "overdue", "due_soon", "cancelled",
                name="inspectionstatus"
            ),
            nullable=False,
            server_default="scheduled",
        ),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "uq_inspections_active_occurrence",
        "inspections",
        ["client_id", "asset_id", "inspection_type", "due_date"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "inspection_inspectors",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("inspection_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("employee_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.UniqueConstraint("inspection_id", "employee_id", name="uq_inspection_inspector"),
    )

    # Create reminders table
    op.create_table(
        "reminders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column(
            "reminder_type",
            sa.Enum(
                "weekly", "monthly", "quarterly", "semi_annual", "annual", "one_time",
                "days_2_before", "days_15_before", "days_30_before",
                name="remindertype"
            ),
            nullable=False,
        ),
        sa.Column("reminder_date", sa.Date, nullable=False, index=True),
        sa.Column("notification_method", sa.Enum("email", "sms", "both", name="notificationmethod"), nullable=False),
        sa.Column("message_source", sa.Enum("template", "manual", name="messagesource"), nullable=False, server_default="template"),
        sa.Column("email_template_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sms_template_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sms_templates.id", ondelete="SET NULL"), nullable=True),
        sa.Column("manual_message", sa.Text, nullable=True),
        sa.Column("additional_notes", sa.Text, nullable=True),
        sa.Column("status", sa.Enum("scheduled", "sent", "cancelled", name="reminderstatus"), nullable=False, server_default="scheduled"),
        *_timestamps(),
    )
    op.create_index("ix_reminders_client_asset_date", "reminders", ["client_id", "asset_id", "reminder_date"])

    op.create_table(
        "reminder_inspectors",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("reminder_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("reminders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("employee_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.UniqueConstraint("reminder_id", "employee_id", name="uq_reminder_inspector"),
    )


def downgrade() -> None:
    op.drop_table("reminder_inspectors")
    op.drop_index("ix_reminders_client_asset_date", table_name="reminders")
    op.drop_table("reminders")
    op.drop_table("inspection_inspectors")
    op.drop_index("uq_inspections_active_occurrence", table_name="inspections")
    op.drop_table("inspections")
    op.drop_table("sms_templates")
    op.drop_table("email_templates")
    op.drop_table("assets")
    op.drop_table("employees")
    op.drop_table("clients")

    for enum_name in (
        "reminderstatus", "messagesource", "notificationmethod", "remindertype",
        "inspectionstatus", "inspectiontype",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
