"""
Cutover Monitor Database Models

Tables:
  1. cutover_schedules - One row per named cutover (phase, schedule, policy, running totals)
  2. alert_history     - Append-only record of every alert notification attempted
  3. audit_log         - Append-only, day-partitioned trail of lifecycle actions
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from db.session import Base

# ─── 1. Cutover Schedules ──────────────────────────────────────────────────


class CutoverSchedule(Base):
    __tablename__ = "cutover_schedules"

    name = Column(String(255), primary_key=True)
    resource_group = Column(String(255), nullable=False, default="")
    v4_workflow = Column(String(255), nullable=False, default="")
    v3_workflow = Column(String(255), nullable=False, default="")
    failover_workflow = Column(String(255), nullable=False, default="")

    # Phase: the only authoritative lifecycle flag
    is_active = Column(Boolean, nullable=False, default=False)

    # Schedule
    scheduled_start = Column(DateTime)
    scheduled_end = Column(DateTime)
    actual_start = Column(DateTime)
    actual_end = Column(DateTime)

    # Policy
    auto_cutback = Column(Boolean, nullable=False, default=False)
    failure_threshold = Column(Integer, nullable=False, default=1)

    # Running totals since the last start
    total_runs = Column(Integer, nullable=False, default=0)
    total_failures = Column(Integer, nullable=False, default=0)
    total_failovers = Column(Integer, nullable=False, default=0)
    last_checked = Column(DateTime)
    last_error = Column(Text)

    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_cutover_schedules_active", "is_active"),
        CheckConstraint("failure_threshold >= 1", name="ck_cutover_failure_threshold"),
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.v4_workflow and self.v3_workflow and self.failover_workflow)

    def __repr__(self):
        phase = "Active" if self.is_active else "Inactive"
        return f"<CutoverSchedule {self.name} {phase}>"


# ─── 2. Alert History ──────────────────────────────────────────────────────


class AlertHistory(Base):
    __tablename__ = "alert_history"

    alert_id = Column(Integer, primary_key=True, autoincrement=True)
    cutover_name = Column(String(255), nullable=False)
    alert_kind = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    delivered = Column(Boolean, nullable=False, default=False)
    delivery_id = Column(String(255))
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_alert_history_lookup", "cutover_name", "alert_kind", "created_at"),
        CheckConstraint(
            "alert_kind IN ('Failure', 'Cutback', 'ScheduleStart', 'ScheduleEnd')",
            name="ck_alert_kind",
        ),
    )


# ─── 3. Audit Log ──────────────────────────────────────────────────────────


class AuditLog(Base):
    __tablename__ = "audit_log"

    # Total order is (partition_key, audit_id)
    audit_id = Column(Integer, primary_key=True, autoincrement=True)
    partition_key = Column(String(10), nullable=False)  # yyyy-mm-dd (UTC)
    cutover_name = Column(String(255), nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=False, default="")
    triggered_by = Column(String(20))
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_audit_log_partition", "partition_key", "audit_id"),
        CheckConstraint(
            "action IN ('CutoverStart', 'CutoverEnd', 'AutoCutback', 'ManualCutback', "
            "'FailureDetected', 'AlertSent', 'ConfigUpdated', 'CutoverDeleted')",
            name="ck_audit_action",
        ),
        CheckConstraint(
            "triggered_by IS NULL OR triggered_by IN ('Schedule', 'API', 'AutoCutback', 'Monitor')",
            name="ck_audit_triggered_by",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "partition_key": self.partition_key,
            "audit_id": self.audit_id,
            "cutover_name": self.cutover_name,
            "action": self.action,
            "details": self.details,
            "triggered_by": self.triggered_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
