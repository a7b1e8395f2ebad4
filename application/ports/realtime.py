"""
Realtime ports and message DTOs (contracts-first).

This module defines the wire envelope, the event names of the chat
protocol, and the protocols for connections and presence so the
application layer stays decoupled from the concrete WebSocket
transport (infrastructure).
"""
from __future__ import annotations

from typing import Any, FrozenSet, Optional, Protocol, runtime_checkable
from pydantic import BaseModel, Field
from datetime import datetime, timezone


def _utc_now_z() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class InboundEvent:
    """Event names a client may send."""

    JOIN = "join"
    TYPING = "typing"
    MESSAGE = "message"
    READ = "read"
    PING = "ping"
    PONG = "pong"


class OutboundEvent:
    """Event names the server pushes."""

    TYPING = "typing"
    MESSAGE = "message"
    READ_RECEIPT = "read-receipt"
    JOINED = "joined"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"


class Envelope(BaseModel):
    """Unified WS message envelope passed around the system.

    Fields:
      - type: event name (see InboundEvent / OutboundEvent)
      - data: payload (JSON-serializable)
      - ts: server-generated UTC timestamp (ISO8601 with Z)
    """

    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    ts: str = Field(default_factory=_utc_now_z)


@runtime_checkable
class ConnectionPort(Protocol):
    """One live realtime connection, owned by the transport layer."""

    connection_id: str
    user_id: Optional[str]

    async def push(self, envelope: Envelope) -> None:
        """Hand the envelope to the connection without waiting for the socket."""
        ...


class PresencePort(Protocol):
    """Maps a user identity to its live connections."""

    def join(self, user_id: str, connection: ConnectionPort) -> None: ...

    def leave(self, connection: ConnectionPort) -> None: ...

    def connections_for(self, user_id: str) -> FrozenSet[ConnectionPort]: ...


__all__ = [
    "Envelope",
    "InboundEvent",
    "OutboundEvent",
    "ConnectionPort",
    "PresencePort",
]
