"""WebSocket route for realtime chat.

One receive loop per connection feeds inbound events to the session in
arrival order. Idle connections get a JSON ping; the socket is closed
(1001) after the configured number of unanswered pings.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from application.ports.realtime import Envelope, OutboundEvent
from application.services.realtime_service import RealtimeService
from core.config import settings
from core.logging_config import get_logger
from core.response import event_error_data
from infrastructure.realtime.connection import WebSocketConnection
from shared.codes import BusinessCode


logger = get_logger(__name__)


router = APIRouter(prefix="/ws", tags=["WebSocket"])


def get_realtime_service_from_app(ws: WebSocket) -> RealtimeService:
    svc = getattr(ws.app.state, "realtime_service", None)
    if svc is None:
        raise RuntimeError("Realtime service not initialized. Ensure lifespan sets app.state.realtime_service.")
    return svc


async def _read_frame(ws: WebSocket) -> str:
    message = await ws.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    text = message.get("text")
    if text is None and message.get("bytes") is not None:
        text = message["bytes"].decode("utf-8", errors="replace")
    return text or ""


async def _frames(ws: WebSocket, conn: WebSocketConnection) -> AsyncIterator[str]:
    """Yield raw frames; handles idle ping / missed pong bookkeeping."""
    idle_ping_interval = float(settings.REALTIME_WS_IDLE_PING_INTERVAL_S or 0)
    pong_grace = float(settings.REALTIME_WS_PONG_GRACE_S)
    missed_limit = int(settings.REALTIME_WS_MISSED_PING_LIMIT)

    missed = 0
    while True:
        if idle_ping_interval <= 0:
            yield await _read_frame(ws)
            continue
        try:
            raw = await asyncio.wait_for(_read_frame(ws), timeout=idle_ping_interval)
        except asyncio.TimeoutError:
            missed += 1
            try:
                await conn.send_now(Envelope(type=OutboundEvent.PING))
            except (RuntimeError, OSError):
                await conn.close(code=1001)
                return
            try:
                raw = await asyncio.wait_for(_read_frame(ws), timeout=pong_grace)
            except asyncio.TimeoutError:
                if missed > missed_limit:
                    logger.info("ws_idle_timeout", missed=missed)
                    await conn.close(code=1001)
                    return
                continue
        missed = 0
        yield raw


def _parse_event(raw: str) -> Optional[dict[str, Any]]:
    try:
        event = json.loads(raw)
    except ValueError:
        return None
    return event if isinstance(event, dict) else None


@router.websocket("")
async def websocket_endpoint(ws: WebSocket) -> None:
    await ws.accept()
    rt = get_realtime_service_from_app(ws)
    conn = WebSocketConnection(ws)
    conn.start()
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(connection_id=conn.connection_id)
    logger.info("ws_connected")
    try:
        async with rt.session(conn) as chat:
            async for raw in _frames(ws, conn):
                event = _parse_event(raw)
                if event is None:
                    await conn.push(Envelope(
                        type=OutboundEvent.ERROR,
                        data=event_error_data(
                            BusinessCode.PARAM_TYPE_ERROR, "Events must be JSON objects", "MalformedEvent"
                        ),
                    ))
                    continue
                await chat.handle(event)
                if chat.user_id:
                    structlog.contextvars.bind_contextvars(user_id=chat.user_id)
    except WebSocketDisconnect:
        logger.info("ws_disconnected", user_id=conn.user_id)
    except Exception as exc:
        logger.error("ws_error", user_id=conn.user_id, error=str(exc), exc_info=True)
        await conn.close(code=1011)
    finally:
        await conn.aclose()
        structlog.contextvars.clear_contextvars()
