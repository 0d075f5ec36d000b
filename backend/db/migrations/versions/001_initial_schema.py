"""
Initial schema - cutover schedules, alert history, audit log

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Cutover schedules
    op.create_table(
        "cutover_schedules",
        sa.Column("name", sa.String(255), primary_key=True),
        sa.Column("resource_group", sa.String(255), nullable=False, server_default=""),
        sa.Column("v4_workflow", sa.String(255), nullable=False, server_default=""),
        sa.Column("v3_workflow", sa.String(255), nullable=False, server_default=""),
        sa.Column("failover_workflow", sa.String(255), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("scheduled_start", sa.DateTime, nullable=True),
        sa.Column("scheduled_end", sa.DateTime, nullable=True),
        sa.Column("actual_start", sa.DateTime, nullable=True),
        sa.Column("actual_end", sa.DateTime, nullable=True),
        sa.Column("auto_cutback", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("failure_threshold", sa.Integer, nullable=False, server_default="1"),
        sa.Column("total_runs", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_failures", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_failovers", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_checked", sa.DateTime, nullable=True),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("version_id", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("failure_threshold >= 1", name="ck_cutover_failure_threshold"),
    )
    op.create_index("ix_cutover_schedules_active", "cutover_schedules", ["is_active"])

    # 2. Alert history (append-only)
    op.create_table(
        "alert_history",
        sa.Column("alert_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("cutover_name", sa.String(255), nullable=False),
        sa.Column("alert_kind", sa.String(50), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("delivered", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("delivery_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "alert_kind IN ('Failure', 'Cutback', 'ScheduleStart', 'ScheduleEnd')",
            name="ck_alert_kind",
        ),
    )
    op.create_index("ix_alert_history_lookup", "alert_history", ["cutover_name", "alert_kind", "created_at"])

    # 3. Audit log (append-only, day-partitioned)
    op.create_table(
        "audit_log",
        sa.Column("audit_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("partition_key", sa.String(10), nullable=False),
        sa.Column("cutover_name", sa.String(255), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", sa.Text, nullable=False, server_default=""),
        sa.Column("triggered_by", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "action IN ('CutoverStart', 'CutoverEnd', 'AutoCutback', 'ManualCutback', "
            "'FailureDetected', 'AlertSent', 'ConfigUpdated', 'CutoverDeleted')",
            name="ck_audit_action",
        ),
        sa.CheckConstraint(
            "triggered_by IS NULL OR triggered_by IN ('Schedule', 'API', 'AutoCutback', 'Monitor')",
            name="ck_audit_triggered_by",
        ),
    )
    op.create_index("ix_audit_log_partition", "audit_log", ["partition_key", "audit_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_log_partition", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_alert_history_lookup", table_name="alert_history")
    op.drop_table("alert_history")
    op.drop_index("ix_cutover_schedules_active", table_name="cutover_schedules")
    op.drop_table("cutover_schedules")
