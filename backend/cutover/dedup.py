"""
Alert deduplication gate.

One alert of a given kind per cutover per window: a single prior alert inside
the window suppresses the next one, however many breaches happened since.
A record exactly ``window_minutes`` old is outside the window.

Store failures fail open: a duplicate page is preferred over a silent one.
"""

from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cutover.store import has_recent_alert

logger = structlog.get_logger()

DEFAULT_ALERT_WINDOW_MINUTES = 30


async def should_alert(
    db: AsyncSession,
    cutover_name: str,
    alert_kind: str,
    now: datetime,
    window_minutes: int = DEFAULT_ALERT_WINDOW_MINUTES,
) -> bool:
    since = now - timedelta(minutes=window_minutes)
    try:
        recent = await has_recent_alert(db, cutover_name, alert_kind, since)
    except SQLAlchemyError as exc:
        logger.warning(
            "dedup.lookup_failed",
            cutover=cutover_name,
            alert_kind=alert_kind,
            error=str(exc),
        )
        return True
    return not recent
