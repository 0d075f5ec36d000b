"""
Cutover Monitor Worker — runs the reconciliation tick on the beat schedule.

Each run builds its own engine and collaborators inside ``asyncio.run`` and
tears them down afterwards; nothing is shared with the API process except
the database and the Redis lock namespace.
"""

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(
    name="workers.monitor.reconcile_cutovers",
    bind=True,
    max_retries=2,
    default_retry_delay=30,
    acks_late=True,
)
def reconcile_cutovers(self):
    """
    Evaluate every Active cutover, then honor due scheduled starts and ends.

    Returns the tick summary, or ``{"status": "skipped", ...}`` when the
    previous tick still holds the tick lock.
    """
    from core.config import get_settings
    from cutover.controller import build_controller
    from cutover.reconcile import run_tick

    run_id = self.request.id or "manual"

    async def _reconcile():
        settings = get_settings()
        engine = create_async_engine(settings.database_url)
        controller = None
        try:
            session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            controller = build_controller(settings, session_factory)
            summary = await run_tick(controller)
            summary["run_id"] = run_id
            summary["triggered_at"] = datetime.now(timezone.utc).isoformat()
            return summary
        finally:
            if controller is not None:
                await controller.locks.aclose()
            await engine.dispose()

    try:
        summary = asyncio.run(_reconcile())
    except Exception as exc:  # noqa: BLE001
        logger.error("monitor.reconcile_failed", run_id=run_id, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)

    logger.info("monitor.reconcile_complete", run_id=run_id, status=summary["status"])
    return summary
