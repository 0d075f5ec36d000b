"""
Reconciliation tick.

One pass over every known schedule, in three phases:
  (a) evaluate every Active cutover
  (b) start every Inactive cutover whose scheduled start is due
  (c) end every Active cutover whose scheduled end is due

Phases run from a single snapshot taken at the top of the tick; the
controller re-reads each schedule under its lock, so a snapshot that went
stale during (a) is harmless in (b) and (c).

Ticks never overlap: the tick holds a reserved lock non-blocking and a
second tick that finds it taken is skipped.
"""

from collections.abc import Awaitable, Callable

import structlog

from cutover.controller import CutoverController, TransitionResult, is_end_due, is_start_due
from cutover.locks import TICK_LOCK_NAME, LockUnavailable
from cutover.store import list_schedules

logger = structlog.get_logger()


async def _run_each(
    phase: str,
    names: list[str],
    operation: Callable[[str], Awaitable[TransitionResult]],
    summary: dict,
) -> None:
    for name in names:
        try:
            result = await operation(name)
        except Exception as exc:  # noqa: BLE001
            summary["errors"].append({"cutover": name, "phase": phase, "error": str(exc)})
            logger.error("reconcile.schedule_failed", cutover=name, phase=phase, error=str(exc), exc_info=True)
            continue
        summary[phase].append(result.to_dict())


async def run_tick(controller: CutoverController) -> dict:
    """Run one reconciliation pass. Per-schedule failures are logged and never abort the tick."""
    try:
        async with controller.locks.hold(TICK_LOCK_NAME, blocking=False):
            return await _reconcile(controller)
    except LockUnavailable:
        logger.warning("reconcile.tick_skipped", reason="previous tick still running")
        return {"status": "skipped", "reason": "tick_in_progress"}


async def _reconcile(controller: CutoverController) -> dict:
    now = controller.clock()
    async with controller.session_factory() as db:
        schedules = await list_schedules(db)

    grace = controller.policy.start_grace_minutes
    configured = [s for s in schedules if s.is_configured]
    active = [s.name for s in configured if s.is_active]
    due_starts = [s.name for s in configured if is_start_due(s, now, grace)]
    due_ends = [s.name for s in configured if is_end_due(s, now)]

    summary = {
        "status": "success",
        "schedule_count": len(schedules),
        "evaluated": [],
        "started": [],
        "ended": [],
        "errors": [],
    }

    await _run_each("evaluated", active, controller.evaluate_cutover, summary)
    await _run_each("started", due_starts, controller.run_scheduled_start, summary)
    await _run_each("ended", due_ends, controller.run_scheduled_end, summary)

    logger.info(
        "reconcile.tick_complete",
        schedule_count=len(schedules),
        evaluated=len(summary["evaluated"]),
        started=len(summary["started"]),
        ended=len(summary["ended"]),
        errors=len(summary["errors"]),
    )
    return summary
