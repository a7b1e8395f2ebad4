"""In-process presence registry.

Maps a user identity to the set of its live realtime connections for
this process. Connections are owned by the transport layer and only
weakly referenced here, so a connection dropped by the transport can
never be kept alive by the registry.

All methods are synchronous and guarded by one lock; none of them
performs I/O, so lookups never wait on anything but a short critical
section and are safe to call from any thread.
"""
from __future__ import annotations

import threading
import weakref
from typing import Dict, FrozenSet, Optional

from application.ports.realtime import ConnectionPort, PresencePort
from core.logging_config import get_logger


logger = get_logger(__name__)


class PresenceRegistry(PresencePort):
    """Track which connections belong to which user."""

    def __init__(self) -> None:
        # user_id -> weak set of connections
        self._by_user: Dict[str, "weakref.WeakSet[ConnectionPort]"] = {}
        # connection -> user_id (a connection sits in at most one entry)
        self._user_of: "weakref.WeakKeyDictionary[ConnectionPort, str]" = weakref.WeakKeyDictionary()
        self._lock = threading.Lock()

    def join(self, user_id: str, connection: ConnectionPort) -> None:
        """Register connection under user_id; a connection bound elsewhere is moved."""
        with self._lock:
            previous = self._user_of.get(connection)
            if previous == user_id:
                return
            if previous is not None:
                self._discard(previous, connection)
            self._by_user.setdefault(user_id, weakref.WeakSet()).add(connection)
            self._user_of[connection] = user_id
        if previous is not None:
            logger.info("presence_rebound", user_id=user_id, previous_user_id=previous,
                        connection_id=connection.connection_id)
        else:
            logger.info("presence_joined", user_id=user_id, connection_id=connection.connection_id)

    def leave(self, connection: ConnectionPort) -> None:
        """Forget connection. No-op when it was never joined or already left."""
        with self._lock:
            user_id = self._user_of.pop(connection, None)
            if user_id is None:
                return
            self._discard(user_id, connection)
        logger.info("presence_left", user_id=user_id, connection_id=connection.connection_id)

    def connections_for(self, user_id: str) -> FrozenSet[ConnectionPort]:
        """Snapshot of the live connections for user_id (possibly empty)."""
        with self._lock:
            members = self._by_user.get(user_id)
            if members is None:
                return frozenset()
            snapshot = frozenset(members)
            if not snapshot:
                # every member was garbage-collected without an explicit leave
                del self._by_user[user_id]
            return snapshot

    def user_of(self, connection: ConnectionPort) -> Optional[str]:
        with self._lock:
            return self._user_of.get(connection)

    def online_users(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(uid for uid, members in self._by_user.items() if len(members) > 0)

    def connection_count(self) -> int:
        with self._lock:
            return sum(len(members) for members in self._by_user.values())

    # caller holds the lock
    def _discard(self, user_id: str, connection: ConnectionPort) -> None:
        members = self._by_user.get(user_id)
        if members is None:
            return
        members.discard(connection)
        if len(members) == 0:
            del self._by_user[user_id]
