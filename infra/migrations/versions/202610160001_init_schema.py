"""init water monitoring schema

Revision ID: 202610160001
Revises:
Create Date: 2026-10-16
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610160001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_utility_id", "events", ["utility_id"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_utility_id", "audit_logs", ["utility_id"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_ts", "audit_logs", ["ts"])

    op.create_table(
        "utilities",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_utilities_name", "utilities", ["name"], unique=True)
    op.create_index("ix_utilities_created_at", "utilities", ["created_at"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["utility_id"], ["utilities.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("utility_id", "email", name="uq_users_utility_email"),
    )
    op.create_index("ix_users_utility_id", "users", ["utility_id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "sensor_readings",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("sensor_id", sa.String(), nullable=False),
        sa.Column("sensor_type", sa.String(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("device_id", sa.String(), nullable=True),
        sa.Column("battery_level", sa.Integer(), nullable=True),
        sa.Column("signal_strength", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["utility_id"], ["utilities.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sensor_readings_utility_id", "sensor_readings", ["utility_id"])
    op.create_index("ix_sensor_readings_sensor_id", "sensor_readings", ["sensor_id"])
    op.create_index("ix_sensor_readings_sensor_type", "sensor_readings", ["sensor_type"])
    op.create_index("ix_sensor_readings_location", "sensor_readings", ["location"])
    op.create_index("ix_sensor_readings_timestamp", "sensor_readings", ["timestamp"])
    op.create_index(
        "ix_sensor_readings_utility_type_ts",
        "sensor_readings",
        ["utility_id", "sensor_type", "timestamp"],
    )

    op.create_table(
        "complaints",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("submitted_by", sa.String(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("photo_urls", sa.JSON(), nullable=False),
        sa.Column("gps_coordinates", sa.String(), nullable=True),
        sa.Column("gps_accuracy", sa.Float(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_to", sa.String(), nullable=True),
        sa.Column("resolution_notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["utility_id"], ["utilities.id"]),
        sa.ForeignKeyConstraint(["submitted_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_complaints_utility_id", "complaints", ["utility_id"])
    op.create_index("ix_complaints_status", "complaints", ["status"])
    op.create_index("ix_complaints_submitted_by", "complaints", ["submitted_by"])
    op.create_index("ix_complaints_submitted_at", "complaints", ["submitted_at"])

    op.create_table(
        "maintenance_tasks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("task", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("priority", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("assigned_to", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("estimated_duration", sa.Integer(), nullable=True),
        sa.Column("actual_duration", sa.Integer(), nullable=True),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("photo_urls", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["utility_id"], ["utilities.id"]),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_maintenance_tasks_utility_id", "maintenance_tasks", ["utility_id"])
    op.create_index("ix_maintenance_tasks_status", "maintenance_tasks", ["status"])
    op.create_index("ix_maintenance_tasks_due_date", "maintenance_tasks", ["due_date"])

    op.create_table(
        "alerts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("alert_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("acknowledged", sa.Boolean(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False),
        sa.Column("acknowledged_by", sa.String(), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sensor_id", sa.String(), nullable=True),
        sa.Column("threshold_value", sa.Float(), nullable=True),
        sa.Column("current_value", sa.Float(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("severity_score", sa.Integer(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["utility_id"], ["utilities.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_alerts_utility_id", "alerts", ["utility_id"])
    op.create_index("ix_alerts_alert_type", "alerts", ["alert_type"])
    op.create_index("ix_alerts_timestamp", "alerts", ["timestamp"])
    op.create_index("ix_alerts_resolved", "alerts", ["resolved"])
    op.create_index("ix_alerts_sensor_id", "alerts", ["sensor_id"])

    op.create_table(
        "system_health",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("component", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("last_ping", sa.DateTime(timezone=True), nullable=False),
        sa.Column("uptime_percentage", sa.Float(), nullable=True),
        sa.Column("error_count", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["utility_id"], ["utilities.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("utility_id", "component", name="uq_system_health_utility_component"),
    )
    op.create_index("ix_system_health_utility_id", "system_health", ["utility_id"])

    op.create_table(
        "network_assets",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("utility_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("asset_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lon", sa.Float(), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["utility_id"], ["utilities.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_network_assets_utility_id", "network_assets", ["utility_id"])
    op.create_index("ix_network_assets_asset_type", "network_assets", ["asset_type"])


def downgrade() -> None:
    op.drop_index("ix_network_assets_asset_type", table_name="network_assets")
    op.drop_index("ix_network_assets_utility_id", table_name="network_assets")
    op.drop_table("network_assets")

    op.drop_index("ix_system_health_utility_id", table_name="system_health")
    op.drop_table("system_health")

    op.drop_index("ix_alerts_sensor_id", table_name="alerts")
    op.drop_index("ix_alerts_resolved", table_name="alerts")
    op.drop_index("ix_alerts_timestamp", table_name="alerts")
    op.drop_index("ix_alerts_alert_type", table_name="alerts")
    op.drop_index("ix_alerts_utility_id", table_name="alerts")
    op.drop_table("alerts")

    op.drop_index("ix_maintenance_tasks_due_date", table_name="maintenance_tasks")
    op.drop_index("ix_maintenance_tasks_status", table_name="maintenance_tasks")
    op.drop_index("ix_maintenance_tasks_utility_id", table_name="maintenance_tasks")
    op.drop_table("maintenance_tasks")

    op.drop_index("ix_complaints_submitted_at", table_name="complaints")
    op.drop_index("ix_complaints_submitted_by", table_name="complaints")
    op.drop_index("ix_complaints_status", table_name="complaints")
    op.drop_index("ix_complaints_utility_id", table_name="complaints")
    op.drop_table("complaints")

    op.drop_index("ix_sensor_readings_utility_type_ts", table_name="sensor_readings")
    op.drop_index("ix_sensor_readings_timestamp", table_name="sensor_readings")
    op.drop_index("ix_sensor_readings_location", table_name="sensor_readings")
    op.drop_index("ix_sensor_readings_sensor_type", table_name="sensor_readings")
    op.drop_index("ix_sensor_readings_sensor_id", table_name="sensor_readings")
    op.drop_index("ix_sensor_readings_utility_id", table_name="sensor_readings")
    op.drop_table("sensor_readings")

    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_utility_id", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_utilities_created_at", table_name="utilities")
    op.drop_index("ix_utilities_name", table_name="utilities")
    op.drop_table("utilities")

    op.drop_index("ix_audit_logs_ts", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_utility_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_events_actor_id", table_name="events")
    op.drop_index("ix_events_ts", table_name="events")
    op.drop_index("ix_events_utility_id", table_name="events")
    op.drop_index("ix_events_event_type", table_name="events")
    op.drop_table("events")
