"""Application service for realtime chat sessions.

`RealtimeService` is built once per process and wires the presence
registry, the delivery router and the message store together.
`ChatSession` is the per-connection protocol handler:

    UNJOINED --join--> JOINED --disconnect--> CLOSED
        \\______________disconnect____________/

Inbound events are processed in arrival order by whoever drives the
session (the WebSocket receive loop). Business errors are reported
only to the originating connection as an ``error`` event.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Mapping, Optional

from application.dto import MessageDTO
from application.ports.realtime import (
    ConnectionPort,
    Envelope,
    InboundEvent,
    OutboundEvent,
    PresencePort,
)
from application.services.delivery_router import DeliveryRouter
from application.services.message_store import MessageStore
from core.logging_config import get_logger
from core.response import event_error_data
from domain.common.exceptions import (
    BusinessException,
    MessageValidationException,
    SessionNotJoinedException,
    UnknownEventException,
)
from domain.message.entity import validate_identity


logger = get_logger(__name__)


class SessionState(str, Enum):
    UNJOINED = "unjoined"
    JOINED = "joined"
    CLOSED = "closed"


def _event_data(event: Mapping[str, Any]) -> Mapping[str, Any]:
    """Fields may come wrapped in ``data`` or at the top level."""
    data = event.get("data")
    if isinstance(data, Mapping):
        return data
    return event


def _field(data: Mapping[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise MessageValidationException(f"'{name}' must be a string", field=name)
        return value
    return None


class ChatSession:
    """Per-connection protocol handler."""

    def __init__(
        self,
        connection: ConnectionPort,
        *,
        presence: PresencePort,
        router: DeliveryRouter,
        store: MessageStore,
    ) -> None:
        self._conn = connection
        self._presence = presence
        self._router = router
        self._store = store
        self.state = SessionState.UNJOINED
        self.user_id: Optional[str] = None

    @property
    def connection(self) -> ConnectionPort:
        return self._conn

    async def handle(self, event: Mapping[str, Any]) -> None:
        """Process one inbound event; business errors go back to this connection only."""
        if self.state is SessionState.CLOSED:
            return
        event_type = str(event.get("type") or "").strip().lower()
        try:
            await self._dispatch(event_type, _event_data(event))
        except BusinessException as exc:
            logger.warning(
                "session_event_rejected",
                connection_id=self._conn.connection_id,
                user_id=self.user_id,
                type=event_type,
                error_type=exc.error_type,
                error=exc.message,
            )
            await self.send_error(exc)

    async def send_error(self, exc: BusinessException) -> None:
        await self._conn.push(Envelope(
            type=OutboundEvent.ERROR,
            data=event_error_data(exc.code, exc.message, exc.error_type, exc.field),
        ))

    async def close(self) -> None:
        """Transport disconnect: terminal from any state."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self._presence.leave(self._conn)
        logger.info("session_closed", connection_id=self._conn.connection_id, user_id=self.user_id)

    # -------------------- event handlers --------------------
    async def _dispatch(self, event_type: str, data: Mapping[str, Any]) -> None:
        if event_type == InboundEvent.JOIN:
            await self._on_join(data)
            return
        if event_type == InboundEvent.PING:
            await self._conn.push(Envelope(type=OutboundEvent.PONG))
            return
        if event_type == InboundEvent.PONG:
            return
        handler = {
            InboundEvent.TYPING: self._on_typing,
            InboundEvent.MESSAGE: self._on_message,
            InboundEvent.READ: self._on_read,
        }.get(event_type)
        if handler is None:
            raise UnknownEventException(event_type)
        if self.state is not SessionState.JOINED:
            raise SessionNotJoinedException(event_type)
        await handler(data)

    async def _on_join(self, data: Mapping[str, Any]) -> None:
        user_id = validate_identity(_field(data, "user_id", "userId", "id"), "user_id")
        previous = self.user_id
        # last join wins: the registry moves the connection between entries
        self._presence.join(user_id, self._conn)
        self._conn.user_id = user_id
        self.user_id = user_id
        self.state = SessionState.JOINED
        await self._conn.push(Envelope(type=OutboundEvent.JOINED, data={"user_id": user_id}))
        logger.info("session_joined", connection_id=self._conn.connection_id, user_id=user_id,
                    previous_user_id=previous)

    async def _on_typing(self, data: Mapping[str, Any]) -> None:
        to = validate_identity(_field(data, "to"), "to")
        await self._router.deliver(to, OutboundEvent.TYPING, {"from": self.user_id})

    async def _on_message(self, data: Mapping[str, Any]) -> None:
        sender = _field(data, "from")
        if sender is None:
            sender = self.user_id
        elif sender != self.user_id:
            raise MessageValidationException(
                "'from' must match the identity this connection joined as", field="from"
            )
        recipient = _field(data, "to")
        text = data.get("text")
        saved: MessageDTO = await self._store.save(sender, recipient, text)
        await self._router.deliver(saved.recipient, OutboundEvent.MESSAGE, saved.to_payload())

    async def _on_read(self, data: Mapping[str, Any]) -> None:
        sender = validate_identity(_field(data, "from"), "from")
        recipient = validate_identity(_field(data, "to"), "to")
        await self._store.mark_read(sender, recipient)
        # TODO: the receipt goes back to `from` (the reader's request echo); confirm with
        # product whether the original message author should be notified instead.
        await self._router.deliver(sender, OutboundEvent.READ_RECEIPT, {"from": sender, "to": recipient})


class RealtimeService:
    """Process-wide realtime wiring, created in the app lifespan."""

    def __init__(self, *, presence: PresencePort, router: DeliveryRouter, store: MessageStore) -> None:
        self._presence = presence
        self._router = router
        self._store = store

    @property
    def presence(self) -> PresencePort:
        return self._presence

    @property
    def router(self) -> DeliveryRouter:
        return self._router

    def open_session(self, connection: ConnectionPort) -> ChatSession:
        return ChatSession(connection, presence=self._presence, router=self._router, store=self._store)

    @asynccontextmanager
    async def session(self, connection: ConnectionPort) -> AsyncIterator[ChatSession]:
        """Scope a connection: presence is released on every exit path."""
        chat = self.open_session(connection)
        logger.info("session_opened", connection_id=connection.connection_id)
        try:
            yield chat
        finally:
            await chat.close()
