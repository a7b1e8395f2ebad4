"""Best-effort event delivery to every live connection of a user.

Delivery is at-most-once and fire-and-forget: there is no offline
inbox, no retry and no per-connection result. A user without
connections simply does not receive the event.
"""
from __future__ import annotations

from typing import Any, Mapping

from application.ports.realtime import Envelope, PresencePort
from core.logging_config import get_logger


logger = get_logger(__name__)


class DeliveryRouter:
    def __init__(self, *, presence: PresencePort) -> None:
        self._presence = presence

    async def deliver(self, target_user_id: str, event_type: str, payload: Mapping[str, Any]) -> None:
        connections = self._presence.connections_for(target_user_id)
        if not connections:
            logger.debug("delivery_miss", target=target_user_id, type=event_type)
            return
        envelope = Envelope(type=event_type, data=dict(payload))
        for conn in connections:
            try:
                await conn.push(envelope)
            except Exception as exc:
                # one broken connection must not starve the others
                logger.warning(
                    "delivery_push_failed",
                    target=target_user_id,
                    type=event_type,
                    connection_id=getattr(conn, "connection_id", None),
                    error=str(exc),
                )
        logger.debug("delivery_dispatched", target=target_user_id, type=event_type, connections=len(connections))
