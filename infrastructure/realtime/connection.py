"""WebSocket-backed realtime connection.

Each connection owns a bounded send queue drained by its own sender
task, so pushing an event never waits on the socket. When the queue is
full the configured overflow policy applies:

- drop_oldest: discard the oldest queued event and enqueue the new one
- drop_new: discard the new event
- disconnect: close the socket with 1013 (try again later)
"""
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import WebSocket

from application.ports.realtime import ConnectionPort, Envelope
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

OVERFLOW_POLICIES = {"drop_oldest", "drop_new", "disconnect"}


class WebSocketConnection(ConnectionPort):
    """One accepted WebSocket plus its outbound queue and sender task."""

    def __init__(
        self,
        ws: WebSocket,
        *,
        queue_max: Optional[int] = None,
        overflow_policy: Optional[str] = None,
    ) -> None:
        self.ws = ws
        self.connection_id = uuid.uuid4().hex
        self.user_id: Optional[str] = None
        self.created_at = datetime.now(timezone.utc)
        size = queue_max if queue_max is not None else settings.REALTIME_WS_SEND_QUEUE_MAX
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, int(size)))
        policy = (overflow_policy or settings.REALTIME_WS_SEND_OVERFLOW_POLICY or "drop_oldest").lower()
        if policy not in OVERFLOW_POLICIES:
            logger.warning("ws_send_queue_policy_invalid", policy=policy, fallback="drop_oldest")
            policy = "drop_oldest"
        self._policy = policy
        self._sender_task: Optional[asyncio.Task] = None
        self._closed = False

    def __repr__(self) -> str:
        return f"<WebSocketConnection id={self.connection_id} user={self.user_id!r}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._sender_task is None and not self._closed:
            self._sender_task = asyncio.create_task(self._sender_loop())

    async def push(self, envelope: Envelope) -> None:
        if self._closed:
            return
        payload = envelope.model_dump(mode="json")
        try:
            self._queue.put_nowait(payload)
            return
        except asyncio.QueueFull:
            pass
        context = {"connection_id": self.connection_id, "user_id": self.user_id}
        if self._policy == "drop_new":
            logger.warning("ws_send_queue_drop_new", **context)
            return
        if self._policy == "disconnect":
            logger.warning("ws_send_queue_disconnect", **context)
            await self.close(code=1013)
            return
        try:
            self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("ws_send_queue_drop_after_trim", **context)

    async def send_now(self, envelope: Envelope) -> None:
        """Bypass the queue; used for heartbeat frames on the receive task."""
        await self.ws.send_json(envelope.model_dump(mode="json"))

    async def close(self, code: int = 1000) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stop_sender()
        try:
            await self.ws.close(code=code)
        except (RuntimeError, OSError) as exc:
            # socket already gone
            logger.debug("ws_close_ignored", connection_id=self.connection_id, error=str(exc))

    async def aclose(self) -> None:
        """Stop the sender without touching the socket (transport already closed it)."""
        self._closed = True
        await self._stop_sender()

    async def _stop_sender(self) -> None:
        task, self._sender_task = self._sender_task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _sender_loop(self) -> None:
        try:
            while True:
                payload: dict[str, Any] = await self._queue.get()
                try:
                    await self.ws.send_json(payload)
                except Exception as exc:  # pragma: no cover - socket died mid-send
                    logger.warning("ws_send_failed", connection_id=self.connection_id, error=str(exc))
        except asyncio.CancelledError:  # graceful exit
            return
