"""asset custody init

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("correlation_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])
    op.create_index("ix_events_correlation_id", "events", ["correlation_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_ts", "audit_logs", ["ts"])

    op.create_table(
        "employees",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("employee_code", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("department", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employees_employee_code", "employees", ["employee_code"], unique=True)
    op.create_index("ix_employees_display_name", "employees", ["display_name"])

    op.create_table(
        "assets",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("asset_code", sa.String(length=100), nullable=False),
        sa.Column("asset_code_key", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=True),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("serial_number", sa.String(length=100), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("purchase_cost", sa.Float(), nullable=True),
        sa.Column("warranty_expiry_date", sa.Date(), nullable=True),
        sa.Column("condition", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assets_asset_code", "assets", ["asset_code"])
    op.create_index("ix_assets_asset_code_key", "assets", ["asset_code_key"], unique=True)
    op.create_index("ix_assets_name", "assets", ["name"])
    op.create_index("ix_assets_category", "assets", ["category"])
    op.create_index("ix_assets_serial_number", "assets", ["serial_number"])
    op.create_index("ix_assets_status", "assets", ["status"])
    op.create_index("ix_assets_created_at", "assets", ["created_at"])
    op.create_index("ix_assets_updated_at", "assets", ["updated_at"])

    op.create_table(
        "asset_assignments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("asset_id", sa.String(), nullable=False),
        sa.Column("employee_id", sa.String(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_by", sa.String(), nullable=True),
        sa.Column("condition_on_assignment", sa.String(length=50), nullable=True),
        sa.Column("remarks", sa.String(), nullable=True),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("condition_on_return", sa.String(length=50), nullable=True),
        sa.Column("return_remarks", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_asset_assignments_asset_id", "asset_assignments", ["asset_id"])
    op.create_index("ix_asset_assignments_employee_id", "asset_assignments", ["employee_id"])
    op.create_index("ix_asset_assignments_assigned_at", "asset_assignments", ["assigned_at"])
    op.create_index("ix_asset_assignments_assigned_by", "asset_assignments", ["assigned_by"])
    op.create_index("ix_asset_assignments_returned_at", "asset_assignments", ["returned_at"])
    op.create_index(
        "ix_asset_assignments_asset_returned",
        "asset_assignments",
        ["asset_id", "returned_at"],
    )
    op.create_index(
        "uq_asset_assignments_active_asset",
        "asset_assignments",
        ["asset_id"],
        unique=True,
        sqlite_where=sa.text("returned_at IS NULL"),
        postgresql_where=sa.text("returned_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_asset_assignments_active_asset", table_name="asset_assignments")
    op.drop_index("ix_asset_assignments_asset_returned", table_name="asset_assignments")
    op.drop_index("ix_asset_assignments_returned_at", table_name="asset_assignments")
    op.drop_index("ix_asset_assignments_assigned_by", table_name="asset_assignments")
    op.drop_index("ix_asset_assignments_assigned_at", table_name="asset_assignments")
    op.drop_index("ix_asset_assignments_employee_id", table_name="asset_assignments")
    op.drop_index("ix_asset_assignments_asset_id", table_name="asset_assignments")
    op.drop_table("asset_assignments")

    op.drop_index("ix_assets_updated_at", table_name="assets")
    op.drop_index("ix_assets_created_at", table_name="assets")
    op.drop_index("ix_assets_status", table_name="assets")
    op.drop_index("ix_assets_serial_number", table_name="assets")
    op.drop_index("ix_assets_category", table_name="assets")
    op.drop_index("ix_assets_name", table_name="assets")
    op.drop_index("ix_assets_asset_code_key", table_name="assets")
    op.drop_index("ix_assets_asset_code", table_name="assets")
    op.drop_table("assets")

    op.drop_index("ix_employees_display_name", table_name="employees")
    op.drop_index("ix_employees_employee_code", table_name="employees")
    op.drop_table("employees")

    op.drop_index("ix_audit_logs_ts", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_events_correlation_id", table_name="events")
    op.drop_index("ix_events_actor_id", table_name="events")
    op.drop_index("ix_events_ts", table_name="events")
    op.drop_index("ix_events_event_type", table_name="events")
    op.drop_table("events")
