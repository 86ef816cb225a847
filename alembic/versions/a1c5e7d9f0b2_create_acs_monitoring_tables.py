"""Create ACS monitoring tables.

Revision ID: a1c5e7d9f0b2
Revises:
Create Date: 2026-10-19

- acs_monitoring_configs: ACS endpoints and poll intervals
- acs_devices: local inventory reconciled from the ACS
- acs_parameter_samples: metric log written by the parameter monitor
- acs_parameter_thresholds / acs_alerts: threshold rules and the alerts they raise
- acs_health_snapshots: latest health score per device
- acs_firmware_info / acs_firmware_history: firmware status and upgrade log
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c5e7d9f0b2"
down_revision = None
branch_labels = None
depends_on = None


ENUM_TYPES = {
    "deviceclass": ("olt", "onu", "unknown"),
    "thresholddeviceclass": ("all", "olt", "onu"),
    "acs_devicestatus": ("online", "offline", "warning"),
    "thresholdcondition": (
        "greater_than",
        "less_than",
        "equals",
        "not_equals",
        "contains",
    ),
    "acs_alertseverity": ("info", "warning", "critical"),
    "acs_alertstatus": ("active", "resolved"),
    "firmwareupdatestatus": ("up_to_date", "available", "updating", "failed"),
    "firmwarehistorystatus": ("success", "failed"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUM_TYPES.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "acs_monitoring_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("base_url", sa.String(255), nullable=False),
        sa.Column("username", sa.String(120), nullable=True),
        sa.Column("password", sa.String(255), nullable=True),
        sa.Column("timeout_seconds", sa.Float(), nullable=False, server_default="30"),
        sa.Column(
            "poll_interval_minutes", sa.Integer(), nullable=False, server_default="5"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "acs_devices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "config_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("acs_monitoring_configs.id"),
            nullable=True,
        ),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("acs_devices.id"),
            nullable=True,
        ),
        sa.Column("acs_device_id", sa.String(255), nullable=True),
        sa.Column(
            "device_class",
            _enum("deviceclass"),
            nullable=False,
            server_default="unknown",
        ),
        sa.Column("name", sa.String(160), nullable=True),
        sa.Column("serial_number", sa.String(120), nullable=True),
        sa.Column("manufacturer", sa.String(120), nullable=True),
        sa.Column("model", sa.String(120), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column(
            "status",
            _enum("acs_devicestatus"),
            nullable=False,
            server_default="offline",
        ),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "subordinate_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "active_subordinate_count",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column("acs_synced", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("acs_last_sync_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("acs_device_id", name="uq_acs_devices_acs_device_id"),
    )
    op.create_index("ix_acs_devices_serial_number", "acs_devices", ["serial_number"])

    op.create_table(
        "acs_parameter_samples",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column(
            "device_class",
            _enum("deviceclass"),
            nullable=False,
            server_default="unknown",
        ),
        sa.Column("parameter_path", sa.String(255), nullable=False),
        sa.Column("metric", sa.String(160), nullable=False),
        sa.Column("value_numeric", sa.Float(), nullable=True),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(20), nullable=False, server_default=""),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "device_id",
            "parameter_path",
            "recorded_at",
            name="uq_acs_parameter_samples_tick",
        ),
    )
    op.create_index(
        "ix_acs_parameter_samples_device_id", "acs_parameter_samples", ["device_id"]
    )

    op.create_table(
        "acs_parameter_thresholds",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("parameter_path", sa.String(255), nullable=False),
        sa.Column(
            "device_class",
            _enum("thresholddeviceclass"),
            nullable=False,
            server_default="all",
        ),
        sa.Column("condition", _enum("thresholdcondition"), nullable=False),
        sa.Column("threshold_value", sa.String(255), nullable=False),
        sa.Column(
            "severity",
            _enum("acs_alertseverity"),
            nullable=False,
            server_default="warning",
        ),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "acs_alerts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "threshold_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("acs_parameter_thresholds.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "severity",
            _enum("acs_alertseverity"),
            nullable=False,
            server_default="warning",
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column(
            "device_class",
            _enum("deviceclass"),
            nullable=False,
            server_default="unknown",
        ),
        sa.Column(
            "status",
            _enum("acs_alertstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_acs_alerts_device_id", "acs_alerts", ["device_id"])
    op.create_index(
        "uq_acs_alerts_active_title",
        "acs_alerts",
        ["device_id", "title"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "acs_health_snapshots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("overall_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "connectivity_score", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "performance_score", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("stability_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("factors", postgresql.JSON(), nullable=True),
        sa.Column(
            "calculated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("device_id", name="uq_acs_health_snapshots_device_id"),
    )

    op.create_table(
        "acs_firmware_info",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column(
            "current_version",
            sa.String(120),
            nullable=False,
            server_default="Unknown",
        ),
        sa.Column("hardware_version", sa.String(120), nullable=True),
        sa.Column("model_name", sa.String(160), nullable=True),
        sa.Column("available_version", sa.String(120), nullable=True),
        sa.Column(
            "update_status",
            _enum("firmwareupdatestatus"),
            nullable=False,
            server_default="up_to_date",
        ),
        sa.Column(
            "last_checked_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("device_id", name="uq_acs_firmware_info_device_id"),
    )

    op.create_table(
        "acs_firmware_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("version", sa.String(120), nullable=False),
        sa.Column("status", _enum("firmwarehistorystatus"), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_acs_firmware_history_device_id", "acs_firmware_history", ["device_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_acs_firmware_history_device_id", table_name="acs_firmware_history")
    op.drop_table("acs_firmware_history")
    op.drop_table("acs_firmware_info")
    op.drop_table("acs_health_snapshots")
    op.drop_index("uq_acs_alerts_active_title", table_name="acs_alerts")
    op.drop_index("ix_acs_alerts_device_id", table_name="acs_alerts")
    op.drop_table("acs_alerts")
    op.drop_table("acs_parameter_thresholds")
    op.drop_index(
        "ix_acs_parameter_samples_device_id", table_name="acs_parameter_samples"
    )
    op.drop_table("acs_parameter_samples")
    op.drop_index("ix_acs_devices_serial_number", table_name="acs_devices")
    op.drop_table("acs_devices")
    op.drop_table("acs_monitoring_configs")

    bind = op.get_bind()
    for name in reversed(list(ENUM_TYPES)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
