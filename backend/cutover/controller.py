"""
Cutover Lifecycle Controller — Start / Evaluate / End transitions.

States:
  - Inactive (initial): v3 serves traffic, v4 and the failover workflow are off
  - Active: v4 and the failover workflow are on, v3 is off

Transitions:
  - start:    Inactive -> Active  (scheduled start within the grace window, or manual)
  - evaluate: Active   -> Active  (every tick; may alert and, with auto-cutback, end)
  - end:      Active   -> Inactive (scheduled end, manual stop, or auto-cutback)

Every operation holds the cutover's lock for its whole read-modify-write and
re-reads the schedule inside it. The schedule row also carries a version
column, so a write based on a stale read fails instead of resurrecting
cleared fields.

Remote workflow changes are best effort: a failed enable/disable is logged
and written into the audit details, but the local transition still commits.
Notifications never block or reverse a transition.
"""

import asyncio
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from cutover.dedup import should_alert
from cutover.events import EventPublisher
from cutover.health import evaluate_health, is_breach
from cutover.locks import LockRegistry, LockUnavailable, build_lock_registry
from cutover.store import (
    Actor,
    AlertKind,
    AuditAction,
    add_alert,
    add_audit_log,
    get_recent_audit_logs,
    get_schedule,
    list_schedules,
)
from db.models import AuditLog, CutoverSchedule
from integrations import build_notifier, build_workflow_client
from integrations.base import Notifier, SetStateResult, WorkflowClient, WorkflowState

logger = structlog.get_logger()

CONFIG_FIELDS = (
    "resource_group",
    "v4_workflow",
    "v3_workflow",
    "failover_workflow",
    "failure_threshold",
    "auto_cutback",
    "scheduled_start",
    "scheduled_end",
)
# Null clears these; every other config field is required once set.
NULLABLE_CONFIG_FIELDS = ("scheduled_start", "scheduled_end")


# ──────────────────────────────────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────────────────────────────────


class CutoverError(Exception):
    """Base class for lifecycle errors surfaced to manual callers."""


class CutoverNotFound(CutoverError):
    pass


class CutoverNotConfigured(CutoverError):
    pass


class CutoverBusy(CutoverError):
    pass


class CutoverConflict(CutoverError):
    pass


class InvalidCutoverConfig(CutoverError):
    pass


# ──────────────────────────────────────────────────────────────────────────
# Policy + results
# ──────────────────────────────────────────────────────────────────────────


def utcnow() -> datetime:
    """Naive UTC, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class MonitorPolicy:
    lookback_minutes: int = 30
    alert_window_minutes: int = 30
    start_grace_minutes: int = 10
    remote_timeout_seconds: float = 30.0
    default_duration_minutes: int = 120
    audit_days: int = 7

    @classmethod
    def from_settings(cls, settings) -> "MonitorPolicy":
        return cls(
            lookback_minutes=settings.lookback_minutes,
            alert_window_minutes=settings.alert_window_minutes,
            start_grace_minutes=settings.start_grace_minutes,
            remote_timeout_seconds=settings.remote_timeout_seconds,
            default_duration_minutes=settings.default_duration_minutes,
            audit_days=settings.audit_days,
        )


@dataclass(frozen=True)
class RemoteFailure:
    workflow: str
    desired_state: str
    error: str

    def describe(self) -> str:
        return f"{self.workflow} -> {self.desired_state} ({self.error})"


@dataclass
class TransitionResult:
    name: str
    outcome: str  # started | ended | evaluated | skipped
    is_active: bool
    details: str = ""
    reason: str | None = None
    alerted: bool = False
    auto_cutback: bool = False
    scheduled_end: datetime | None = None
    remote_failures: list[RemoteFailure] = field(default_factory=list)
    notifications: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "outcome": self.outcome,
            "is_active": self.is_active,
            "details": self.details,
            "reason": self.reason,
            "alerted": self.alerted,
            "auto_cutback": self.auto_cutback,
            "scheduled_end": self.scheduled_end.isoformat() if self.scheduled_end else None,
            "remote_failures": [f.describe() for f in self.remote_failures],
        }


@dataclass
class CutoverStatus:
    name: str
    is_active: bool
    v4_state: str | None
    v3_state: str | None
    scheduled_start: datetime | None
    scheduled_end: datetime | None
    auto_cutback: bool
    failure_threshold: int
    total_runs: int
    total_failures: int
    total_failovers: int
    last_checked: datetime | None
    last_error: str | None


@dataclass
class _Pending:
    """Side effects that run only once the transaction has committed."""

    audit: list[AuditLog] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


def is_start_due(schedule: CutoverSchedule, now: datetime, grace_minutes: int) -> bool:
    """A start is due from its time until ``grace_minutes`` later; older starts are stale."""
    if schedule.is_active or schedule.scheduled_start is None:
        return False
    return schedule.scheduled_start <= now < schedule.scheduled_start + timedelta(minutes=grace_minutes)


def is_end_due(schedule: CutoverSchedule, now: datetime) -> bool:
    return bool(schedule.is_active and schedule.scheduled_end is not None and now >= schedule.scheduled_end)


def totals_summary(schedule: CutoverSchedule) -> str:
    return f"Runs: {schedule.total_runs}, Failures: {schedule.total_failures}, Failovers: {schedule.total_failovers}"


def _with_remote_failures(details: str, failures: list[RemoteFailure]) -> str:
    if not failures:
        return details
    return f"{details}. Remote failures: " + "; ".join(f.describe() for f in failures)


# ──────────────────────────────────────────────────────────────────────────
# Controller
# ──────────────────────────────────────────────────────────────────────────


class CutoverController:
    """Sole writer of cutover phase, totals and timestamps."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        workflows: WorkflowClient,
        notifier: Notifier,
        locks: LockRegistry,
        policy: MonitorPolicy | None = None,
        publisher: EventPublisher | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.workflows = workflows
        self.notifier = notifier
        self.locks = locks
        self.policy = policy or MonitorPolicy()
        self.publisher = publisher
        self.clock = clock

    # ── plumbing ───────────────────────────────────────────────────────────

    @asynccontextmanager
    async def _locked_session(self, name: str):
        try:
            async with self.locks.hold(name):
                async with self.session_factory() as db:
                    yield db
        except LockUnavailable as exc:
            raise CutoverBusy(f"Cutover '{name}' is busy") from exc

    async def _load(self, db: AsyncSession, name: str) -> CutoverSchedule:
        schedule = await get_schedule(db, name)
        if schedule is None:
            raise CutoverNotFound(f"Cutover '{name}' not found")
        return schedule

    async def _write(self, db: AsyncSession, name: str, *, commit: bool) -> None:
        try:
            if commit:
                await db.commit()
            else:
                await db.flush()
        except StaleDataError as exc:
            await db.rollback()
            logger.warning("cutover.write_conflict", cutover=name)
            raise CutoverConflict(f"Cutover '{name}' was modified concurrently") from exc

    async def _flush(self, db: AsyncSession, name: str) -> None:
        """Push pending changes so a stale version fails before any side effect."""
        await self._write(db, name, commit=False)

    async def _commit(self, db: AsyncSession, name: str, pending: _Pending) -> None:
        await self._write(db, name, commit=True)

        if self.publisher is not None and pending.audit:
            await self.publisher.publish([entry.to_dict() for entry in pending.audit])
        for message in pending.messages:
            await self._notify(message)

    def _audit(
        self,
        db: AsyncSession,
        pending: _Pending,
        schedule: CutoverSchedule,
        action: AuditAction,
        details: str,
        actor: Actor,
        now: datetime,
    ) -> None:
        pending.audit.append(
            add_audit_log(
                db,
                cutover_name=schedule.name,
                action=action.value,
                details=details,
                triggered_by=actor.value,
                now=now,
            )
        )

    async def _notify(self, message: str) -> str | None:
        try:
            return await asyncio.wait_for(self.notifier.send(message), timeout=self.policy.remote_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("cutover.notify_timeout", timeout=self.policy.remote_timeout_seconds)
        except Exception as exc:  # noqa: BLE001
            logger.error("cutover.notify_failed", error=str(exc), exc_info=True)
        return None

    async def _set_state(
        self, schedule: CutoverSchedule, workflow: str, state: WorkflowState
    ) -> RemoteFailure | None:
        try:
            result = await asyncio.wait_for(
                self.workflows.set_state(schedule.resource_group, workflow, state),
                timeout=self.policy.remote_timeout_seconds,
            )
        except asyncio.TimeoutError:
            result = SetStateResult(success=False, error=f"timed out after {self.policy.remote_timeout_seconds}s")
        if result.success:
            return None
        logger.warning(
            "cutover.remote_change_failed",
            cutover=schedule.name,
            workflow=workflow,
            state=state.value,
            error=result.error,
        )
        return RemoteFailure(workflow=workflow, desired_state=state.value, error=result.error or "unknown error")

    async def _apply_remote(
        self, schedule: CutoverSchedule, changes: list[tuple[str, WorkflowState]]
    ) -> list[RemoteFailure]:
        failures = []
        for workflow, state in changes:
            failure = await self._set_state(schedule, workflow, state)
            if failure is not None:
                failures.append(failure)
        return failures

    async def _read_state(self, resource_group: str, workflow: str) -> WorkflowState | None:
        return await asyncio.wait_for(
            self.workflows.get_state(resource_group, workflow),
            timeout=self.policy.remote_timeout_seconds,
        )

    # ── transitions (caller holds the lock and the session) ────────────────

    async def _start(
        self,
        db: AsyncSession,
        pending: _Pending,
        schedule: CutoverSchedule,
        actor: Actor,
        now: datetime,
        details: str,
    ) -> TransitionResult:
        logger.info("cutover.starting", cutover=schedule.name, triggered_by=actor.value)

        failures = await self._apply_remote(
            schedule,
            [
                (schedule.v4_workflow, WorkflowState.ENABLED),
                (schedule.failover_workflow, WorkflowState.ENABLED),
                (schedule.v3_workflow, WorkflowState.DISABLED),
            ],
        )

        schedule.is_active = True
        schedule.actual_start = now
        schedule.total_runs = 0
        schedule.total_failures = 0
        schedule.total_failovers = 0
        schedule.last_error = None

        details = _with_remote_failures(details, failures)
        self._audit(db, pending, schedule, AuditAction.CUTOVER_START, details, actor, now)

        message = f"CUTOVER STARTED: {schedule.name}"
        if schedule.scheduled_end is not None:
            message += f"\nScheduled end: {schedule.scheduled_end:%H:%M}"
        pending.messages.append(message)

        logger.info("cutover.started", cutover=schedule.name, triggered_by=actor.value, remote_failures=len(failures))
        return TransitionResult(
            name=schedule.name,
            outcome="started",
            is_active=True,
            details=details,
            scheduled_end=schedule.scheduled_end,
            remote_failures=failures,
            notifications=[message],
        )

    async def _end(
        self,
        db: AsyncSession,
        pending: _Pending,
        schedule: CutoverSchedule,
        actor: Actor,
        now: datetime,
    ) -> TransitionResult:
        logger.info("cutover.ending", cutover=schedule.name, triggered_by=actor.value)

        failures = await self._apply_remote(
            schedule,
            [
                (schedule.v4_workflow, WorkflowState.DISABLED),
                (schedule.failover_workflow, WorkflowState.DISABLED),
                (schedule.v3_workflow, WorkflowState.ENABLED),
            ],
        )

        summary = totals_summary(schedule)
        schedule.is_active = False
        schedule.actual_end = now
        # A completed cutover does not auto-resume.
        schedule.scheduled_start = None
        schedule.scheduled_end = None

        details = _with_remote_failures(summary, failures)
        self._audit(db, pending, schedule, AuditAction.CUTOVER_END, details, actor, now)

        logger.info("cutover.ended", cutover=schedule.name, triggered_by=actor.value, summary=summary)
        return TransitionResult(
            name=schedule.name,
            outcome="ended",
            is_active=False,
            details=details,
            remote_failures=failures,
        )

    # ── manual commands ────────────────────────────────────────────────────

    async def start_cutover(
        self,
        name: str,
        duration_minutes: int | None = None,
        auto_cutback: bool | None = None,
    ) -> TransitionResult:
        """Manual start (or re-start). Ends automatically after ``duration_minutes``."""
        duration = self.policy.default_duration_minutes if duration_minutes is None else duration_minutes
        if duration <= 0:
            raise InvalidCutoverConfig("durationMinutes must be positive")

        async with self._locked_session(name) as db:
            schedule = await self._load(db, name)
            if not schedule.is_configured:
                raise CutoverNotConfigured(f"Cutover '{name}' has no workflows configured")

            now = self.clock()
            schedule.scheduled_end = now + timedelta(minutes=duration)
            if auto_cutback is not None:
                schedule.auto_cutback = auto_cutback

            pending = _Pending()
            result = await self._start(
                db,
                pending,
                schedule,
                Actor.API,
                now,
                details=f"Duration: {duration}min, AutoCutback: {schedule.auto_cutback}",
            )
            await self._commit(db, name, pending)
            return result

    async def stop_cutover(self, name: str) -> TransitionResult:
        """Manual stop. Performs the rollback even when the cutover is already inactive."""
        async with self._locked_session(name) as db:
            schedule = await self._load(db, name)
            pending = _Pending()
            result = await self._end(db, pending, schedule, Actor.API, self.clock())

            message = f"CUTOVER STOPPED: {name}\n{totals_summary(schedule)}"
            pending.messages.append(message)
            result.notifications.append(message)
            await self._commit(db, name, pending)
            return result

    async def upsert_config(self, name: str, changes: dict[str, Any]) -> CutoverSchedule:
        """Create or update a cutover's configuration. Never touches phase or totals."""
        unknown = set(changes) - set(CONFIG_FIELDS)
        if unknown:
            raise InvalidCutoverConfig(f"Unknown fields: {', '.join(sorted(unknown))}")
        nulled = sorted(key for key, value in changes.items() if value is None and key not in NULLABLE_CONFIG_FIELDS)
        if nulled:
            raise InvalidCutoverConfig(f"Fields cannot be null: {', '.join(nulled)}")

        async with self._locked_session(name) as db:
            schedule = await get_schedule(db, name)
            created = schedule is None
            if created:
                schedule = CutoverSchedule(
                    name=name,
                    resource_group="",
                    v4_workflow="",
                    v3_workflow="",
                    failover_workflow="",
                    is_active=False,
                    auto_cutback=False,
                    failure_threshold=1,
                    total_runs=0,
                    total_failures=0,
                    total_failovers=0,
                )

            for key, value in changes.items():
                setattr(schedule, key, value)

            if schedule.failure_threshold is None or schedule.failure_threshold < 1:
                raise InvalidCutoverConfig("failureThreshold must be at least 1")
            if (
                schedule.scheduled_start is not None
                and schedule.scheduled_end is not None
                and schedule.scheduled_end <= schedule.scheduled_start
            ):
                raise InvalidCutoverConfig("scheduledEnd must be after scheduledStart")

            if created:
                db.add(schedule)

            pending = _Pending()
            if created:
                details = "Created"
            elif changes:
                details = "Updated: " + ", ".join(sorted(changes))
            else:
                details = "No changes"
            self._audit(db, pending, schedule, AuditAction.CONFIG_UPDATED, details, Actor.API, self.clock())
            await self._commit(db, name, pending)
            logger.info("cutover.config_saved", cutover=name, created=created, fields=sorted(changes))
            return schedule

    async def delete_cutover(self, name: str) -> None:
        async with self._locked_session(name) as db:
            schedule = await self._load(db, name)
            if schedule.is_active:
                raise CutoverConflict(f"Cutover '{name}' is active; stop it first")
            pending = _Pending()
            self._audit(db, pending, schedule, AuditAction.CUTOVER_DELETED, "Schedule removed", Actor.API, self.clock())
            await db.delete(schedule)
            await self._commit(db, name, pending)
            logger.info("cutover.deleted", cutover=name)

    # ── scheduled transitions ──────────────────────────────────────────────

    async def run_scheduled_start(self, name: str) -> TransitionResult:
        async with self._locked_session(name) as db:
            schedule = await self._load(db, name)
            now = self.clock()
            if not is_start_due(schedule, now, self.policy.start_grace_minutes):
                return TransitionResult(name=name, outcome="skipped", is_active=schedule.is_active, reason="not_due")
            if not schedule.is_configured:
                logger.warning("cutover.start_skipped_unconfigured", cutover=name)
                return TransitionResult(name=name, outcome="skipped", is_active=False, reason="not_configured")

            pending = _Pending()
            result = await self._start(db, pending, schedule, Actor.SCHEDULE, now, details="Cutover started")
            await self._commit(db, name, pending)
            return result

    async def run_scheduled_end(self, name: str) -> TransitionResult:
        async with self._locked_session(name) as db:
            schedule = await self._load(db, name)
            now = self.clock()
            if not is_end_due(schedule, now):
                return TransitionResult(name=name, outcome="skipped", is_active=schedule.is_active, reason="not_due")

            pending = _Pending()
            result = await self._end(db, pending, schedule, Actor.SCHEDULE, now)
            message = f"CUTOVER ENDED: {name}\n{totals_summary(schedule)}"
            pending.messages.append(message)
            result.notifications.append(message)
            await self._commit(db, name, pending)
            return result

    async def evaluate_cutover(self, name: str) -> TransitionResult:
        """
        Sample the lookback window, accumulate totals and decide on alerting.

        Skipped entirely (nothing persisted) when the cutover is inactive, when
        the v4 workflow is not reported Enabled, or when a remote read times out.
        """
        async with self._locked_session(name) as db:
            schedule = await self._load(db, name)
            if not schedule.is_active:
                return TransitionResult(name=name, outcome="skipped", is_active=False, reason="inactive")

            lookback = self.policy.lookback_minutes
            try:
                v4_state = await self._read_state(schedule.resource_group, schedule.v4_workflow)
                if v4_state != WorkflowState.ENABLED:
                    logger.warning("cutover.v4_not_enabled", cutover=name, v4_state=getattr(v4_state, "value", None))
                    return TransitionResult(name=name, outcome="skipped", is_active=True, reason="v4_not_enabled")

                primary = await asyncio.wait_for(
                    self.workflows.get_recent_runs(schedule.resource_group, schedule.v4_workflow, lookback),
                    timeout=self.policy.remote_timeout_seconds,
                )
                failover = await asyncio.wait_for(
                    self.workflows.get_recent_runs(schedule.resource_group, schedule.failover_workflow, lookback),
                    timeout=self.policy.remote_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning("cutover.evaluation_timeout", cutover=name, timeout=self.policy.remote_timeout_seconds)
                return TransitionResult(name=name, outcome="skipped", is_active=True, reason="remote_timeout")

            now = self.clock()
            report = evaluate_health(primary.total, primary.failed, failover.total)
            schedule.total_runs += report.total_runs
            schedule.total_failures += report.failed_runs
            schedule.total_failovers += report.failover_runs
            schedule.last_checked = now

            pending = _Pending()
            result = TransitionResult(name=name, outcome="evaluated", is_active=True, details=report.summary)

            if not report.has_issues:
                schedule.last_error = None
            else:
                schedule.last_error = report.summary
                logger.warning("cutover.issues_detected", cutover=name, issues=report.summary)

                await self._flush(db, name)
                # Own session: a failed lookup must not poison this transaction.
                async with self.session_factory() as lookup_db:
                    allowed = await should_alert(
                        lookup_db, name, AlertKind.FAILURE.value, now, self.policy.alert_window_minutes
                    )
                if not allowed:
                    logger.info("cutover.alert_suppressed", cutover=name)
                elif is_breach(report, schedule.failure_threshold):
                    message = f"CUTOVER ALERT: {name}\n{report.summary}"
                    delivery_id = await self._notify(message)
                    add_alert(
                        db,
                        cutover_name=name,
                        alert_kind=AlertKind.FAILURE.value,
                        message=message,
                        delivery_id=delivery_id,
                        now=now,
                    )
                    self._audit(db, pending, schedule, AuditAction.ALERT_SENT, message, Actor.MONITOR, now)
                    result.alerted = True
                    result.notifications.append(message)
                    logger.warning("cutover.alert_sent", cutover=name, delivered=delivery_id is not None)

                    if schedule.auto_cutback:
                        ended = await self._end(db, pending, schedule, Actor.AUTO_CUTBACK, now)
                        cutback_message = f"AUTO-CUTBACK: {name} reverted due to failures\n{totals_summary(schedule)}"
                        cutback_id = await self._notify(cutback_message)
                        add_alert(
                            db,
                            cutover_name=name,
                            alert_kind=AlertKind.CUTBACK.value,
                            message=cutback_message,
                            delivery_id=cutback_id,
                            now=now,
                        )
                        result.outcome = "ended"
                        result.is_active = False
                        result.auto_cutback = True
                        result.remote_failures = ended.remote_failures
                        result.notifications.append(cutback_message)
                        logger.warning("cutover.auto_cutback", cutover=name, summary=ended.details)

            await self._commit(db, name, pending)
            return result

    # ── queries ────────────────────────────────────────────────────────────

    async def _safe_state(self, resource_group: str, workflow: str) -> str | None:
        try:
            state = await self._read_state(resource_group, workflow)
        except asyncio.TimeoutError:
            return None
        except Exception as exc:  # noqa: BLE001
            logger.warning("cutover.status_state_failed", workflow=workflow, error=str(exc))
            return None
        return state.value if state is not None else None

    async def list_statuses(self) -> list[CutoverStatus]:
        """Best-effort status of every cutover; remote states degrade to None."""
        async with self.session_factory() as db:
            schedules = await list_schedules(db)

        statuses = []
        for schedule in schedules:
            v4_state, v3_state = await asyncio.gather(
                self._safe_state(schedule.resource_group, schedule.v4_workflow),
                self._safe_state(schedule.resource_group, schedule.v3_workflow),
            )
            statuses.append(
                CutoverStatus(
                    name=schedule.name,
                    is_active=schedule.is_active,
                    v4_state=v4_state,
                    v3_state=v3_state,
                    scheduled_start=schedule.scheduled_start,
                    scheduled_end=schedule.scheduled_end,
                    auto_cutback=schedule.auto_cutback,
                    failure_threshold=schedule.failure_threshold,
                    total_runs=schedule.total_runs,
                    total_failures=schedule.total_failures,
                    total_failovers=schedule.total_failovers,
                    last_checked=schedule.last_checked,
                    last_error=schedule.last_error,
                )
            )
        return statuses

    async def get_recent_audit(self, days: int | None = None) -> list[AuditLog]:
        async with self.session_factory() as db:
            return await get_recent_audit_logs(db, days or self.policy.audit_days, self.clock())

    # ── diagnostics ────────────────────────────────────────────────────────

    async def send_test_notification(self) -> str | None:
        return await self._notify(f"Test notification from Cutover Monitor - {self.clock():%H:%M:%S}")

    async def probe_workflow_state(self, resource_group: str, workflow: str, state: WorkflowState) -> dict[str, Any]:
        """Read, set, and re-read one workflow's state outside any cutover."""
        logger.info("cutover.probe_workflow", resource_group=resource_group, workflow=workflow, state=state.value)
        current_state = await self._safe_state(resource_group, workflow)
        try:
            result = await asyncio.wait_for(
                self.workflows.set_state(resource_group, workflow, state),
                timeout=self.policy.remote_timeout_seconds,
            )
        except asyncio.TimeoutError:
            result = SetStateResult(success=False, error="timed out")
        new_state = await self._safe_state(resource_group, workflow)
        return {
            "current_state": current_state,
            "requested_state": state.value,
            "success": result.success,
            "error": result.error,
            "new_state": new_state,
            "changed": current_state != new_state,
        }


def build_controller(settings, session_factory: async_sessionmaker[AsyncSession]) -> CutoverController:
    """Wire a controller from settings: Logic Apps client, notifier, lock backend, event publisher."""
    return CutoverController(
        session_factory=session_factory,
        workflows=build_workflow_client(settings),
        notifier=build_notifier(settings),
        locks=build_lock_registry(settings),
        policy=MonitorPolicy.from_settings(settings),
        publisher=EventPublisher(settings.redis_url),
    )
