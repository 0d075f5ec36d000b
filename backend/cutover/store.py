"""
Cutover persistence — schedules, alert history, audit log.

Schedules are upserted by name. Alert and audit rows are append-only facts:
nothing in this module updates or deletes them.
"""

from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import AlertHistory, AuditLog, CutoverSchedule


class Actor(str, Enum):
    SCHEDULE = "Schedule"
    API = "API"
    AUTO_CUTBACK = "AutoCutback"
    MONITOR = "Monitor"


class AlertKind(str, Enum):
    FAILURE = "Failure"
    CUTBACK = "Cutback"


class AuditAction(str, Enum):
    CUTOVER_START = "CutoverStart"
    CUTOVER_END = "CutoverEnd"
    ALERT_SENT = "AlertSent"
    CONFIG_UPDATED = "ConfigUpdated"
    CUTOVER_DELETED = "CutoverDeleted"


def audit_partition(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d")


# ── Schedules ──────────────────────────────────────────────────────────────


async def list_schedules(db: AsyncSession) -> list[CutoverSchedule]:
    result = await db.execute(select(CutoverSchedule).order_by(CutoverSchedule.name))
    return list(result.scalars().all())


async def get_schedule(db: AsyncSession, name: str) -> CutoverSchedule | None:
    result = await db.execute(select(CutoverSchedule).where(CutoverSchedule.name == name))
    return result.scalar_one_or_none()


# ── Alert history ──────────────────────────────────────────────────────────


async def has_recent_alert(db: AsyncSession, cutover_name: str, alert_kind: str, since: datetime) -> bool:
    """True when an alert of this kind was recorded strictly after ``since``."""
    result = await db.execute(
        select(AlertHistory.alert_id)
        .where(
            AlertHistory.cutover_name == cutover_name,
            AlertHistory.alert_kind == alert_kind,
            AlertHistory.created_at > since,
        )
        .limit(1)
    )
    return result.first() is not None


def add_alert(
    db: AsyncSession,
    *,
    cutover_name: str,
    alert_kind: str,
    message: str,
    delivery_id: str | None,
    now: datetime,
) -> AlertHistory:
    alert = AlertHistory(
        cutover_name=cutover_name,
        alert_kind=alert_kind,
        message=message,
        delivered=delivery_id is not None,
        delivery_id=delivery_id,
        created_at=now,
    )
    db.add(alert)
    return alert


# ── Audit log ──────────────────────────────────────────────────────────────


def add_audit_log(
    db: AsyncSession,
    *,
    cutover_name: str,
    action: str,
    details: str,
    triggered_by: str | None,
    now: datetime,
) -> AuditLog:
    entry = AuditLog(
        partition_key=audit_partition(now),
        cutover_name=cutover_name,
        action=action,
        details=details,
        triggered_by=triggered_by,
        created_at=now,
    )
    db.add(entry)
    return entry


async def get_recent_audit_logs(db: AsyncSession, days: int, now: datetime) -> list[AuditLog]:
    """Audit rows from the last ``days`` day-partitions, newest first."""
    start_partition = audit_partition(now - timedelta(days=days))
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.partition_key >= start_partition)
        .order_by(AuditLog.partition_key.desc(), AuditLog.audit_id.desc())
    )
    return list(result.scalars().all())
