"""Tests for the reconciliation tick."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from cutover.locks import TICK_LOCK_NAME
from cutover.reconcile import run_tick
from db.models import AuditLog
from integrations.base import RunCounts, WorkflowState


@pytest.mark.asyncio
async def test_tick_starts_due_schedule(controller, seed, load, clock, session_factory):
    await seed(scheduled_start=clock.now - timedelta(minutes=2), total_runs=50)

    summary = await run_tick(controller)

    assert summary["status"] == "success"
    assert [r["name"] for r in summary["started"]] == ["X"]
    schedule = await load()
    assert schedule.is_active is True
    assert schedule.total_runs == 0
    async with session_factory() as db:
        actions = (await db.execute(select(AuditLog.action))).scalars().all()
    assert actions == ["CutoverStart"]


@pytest.mark.asyncio
async def test_tick_ignores_stale_start(controller, seed, load, clock):
    await seed(scheduled_start=clock.now - timedelta(minutes=15))

    summary = await run_tick(controller)

    assert summary["started"] == []
    assert (await load()).is_active is False


@pytest.mark.asyncio
async def test_tick_evaluates_before_ending(controller, seed, load, clock, workflows, notifier):
    await seed(is_active=True, scheduled_end=clock.now - timedelta(minutes=1), total_runs=100)
    workflows.states["X-v4"] = WorkflowState.ENABLED
    workflows.runs["X-v4"] = RunCounts(total=6, failed=0)

    summary = await run_tick(controller)

    assert [r["outcome"] for r in summary["evaluated"]] == ["evaluated"]
    assert [r["outcome"] for r in summary["ended"]] == ["ended"]
    schedule = await load()
    assert schedule.is_active is False
    assert notifier.messages == ["CUTOVER ENDED: X\nRuns: 106, Failures: 0, Failovers: 0"]


@pytest.mark.asyncio
async def test_auto_cutback_during_evaluation_skips_scheduled_end(controller, seed, clock, workflows, notifier):
    await seed(is_active=True, auto_cutback=True, scheduled_end=clock.now - timedelta(minutes=1))
    workflows.states["X-v4"] = WorkflowState.ENABLED
    workflows.runs["X-v4"] = RunCounts(total=6, failed=6)

    summary = await run_tick(controller)

    assert summary["evaluated"][0]["auto_cutback"] is True
    assert summary["ended"][0]["outcome"] == "skipped"
    assert len(notifier.messages) == 2


@pytest.mark.asyncio
async def test_unconfigured_schedule_is_inert(controller, seed, clock, workflows):
    await seed(v4_workflow="", v3_workflow="", failover_workflow="", scheduled_start=clock.now)

    summary = await run_tick(controller)

    assert summary["schedule_count"] == 1
    assert summary["started"] == []
    assert workflows.set_calls == []


@pytest.mark.asyncio
async def test_one_failing_schedule_does_not_abort_the_tick(controller, seed, load, clock, monkeypatch):
    await seed("A", scheduled_start=clock.now - timedelta(minutes=1))
    await seed("B", scheduled_start=clock.now - timedelta(minutes=1))

    original = controller.run_scheduled_start

    async def _flaky(name):
        if name == "A":
            raise RuntimeError("store unavailable")
        return await original(name)

    monkeypatch.setattr(controller, "run_scheduled_start", _flaky)

    summary = await run_tick(controller)

    assert summary["errors"] == [{"cutover": "A", "phase": "started", "error": "store unavailable"}]
    assert [r["name"] for r in summary["started"]] == ["B"]
    assert (await load("B")).is_active is True


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(controller, locks):
    async with locks.hold(TICK_LOCK_NAME):
        summary = await run_tick(controller)

    assert summary == {"status": "skipped", "reason": "tick_in_progress"}


@pytest.mark.asyncio
async def test_concurrent_ticks_never_run_in_parallel(controller, seed, clock, workflows):
    await seed(is_active=True)
    workflows.states["X-v4"] = WorkflowState.ENABLED
    workflows.delay_seconds = 0.05

    first, second = await asyncio.gather(run_tick(controller), run_tick(controller))

    statuses = sorted([first["status"], second["status"]])
    assert statuses == ["skipped", "success"]
