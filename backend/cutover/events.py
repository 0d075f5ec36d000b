"""
Lifecycle event publishing over Redis pub/sub.

Committed audit entries are fanned out to the ``cutover-events`` channel
so the WebSocket endpoint can stream them to open dashboards.
"""

import json

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger()

EVENTS_CHANNEL = "cutover-events"


class EventPublisher:
    def __init__(self, redis_url: str, channel: str = EVENTS_CHANNEL):
        self.redis_url = redis_url
        self.channel = channel

    async def publish(self, entries: list[dict]) -> int:
        """
        Publish audit entries. Returns number of subscribers notified.
        Publishing is best effort and never raises.
        """
        if not entries:
            return 0

        redis = aioredis.from_url(self.redis_url)
        try:
            total_subs = 0
            for entry in entries:
                payload = json.dumps({"type": "audit", "payload": entry})
                total_subs += await redis.publish(self.channel, payload)
            return total_subs
        except RedisError as exc:
            logger.warning("events.publish_failed", channel=self.channel, error=str(exc))
            return 0
        finally:
            await redis.aclose()
