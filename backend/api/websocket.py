"""
WebSocket endpoint streaming lifecycle events (Redis pub/sub).
"""

import asyncio

import redis.asyncio as aioredis
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from jose import JWTError, jwt

from core.config import get_settings
from cutover.events import EVENTS_CHANNEL

settings = get_settings()
router = APIRouter()


async def authenticate_ws(token: str) -> dict | None:
    """Validate JWT token from WebSocket query param."""
    if settings.debug:
        return {"sub": "dev-operator"}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None


@router.websocket("/ws/cutovers")
async def websocket_cutovers(websocket: WebSocket, token: str = Query(...)):
    """
    Stream audit entries as they are committed.

    Connect: ws://host/ws/cutovers?token=<jwt>

    Messages sent to client:
        {"type": "audit", "payload": {...}}
        {"type": "heartbeat", "payload": {}}
    """
    user = await authenticate_ws(token)
    if user is None:
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await websocket.accept()

    redis = aioredis.from_url(settings.redis_url)
    pubsub = redis.pubsub()
    await pubsub.subscribe(EVENTS_CHANNEL)

    try:

        async def listen_redis():
            async for message in pubsub.listen():
                if message["type"] == "message":
                    try:
                        await websocket.send_text(message["data"].decode())
                    except Exception:
                        break

        async def send_heartbeat():
            while True:
                await asyncio.sleep(30)
                try:
                    await websocket.send_json({"type": "heartbeat", "payload": {}})
                except Exception:
                    break

        await asyncio.gather(listen_redis(), send_heartbeat())

    except WebSocketDisconnect:
        pass
    finally:
        await pubsub.unsubscribe(EVENTS_CHANNEL)
        await pubsub.aclose()
        await redis.aclose()
