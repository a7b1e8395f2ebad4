"""Pytest bootstrap configuration.

Point the application settings at a throwaway SQLite file before any
module that reads settings is imported.
"""
import os
import tempfile
import uuid

_TEST_DB_DIR = tempfile.mkdtemp(prefix="chat-tests-")
os.environ.setdefault("DATABASE__URL", f"sqlite+aiosqlite:///{_TEST_DB_DIR}/app.db")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_REQUEST_BODY_ENABLE_BY_DEFAULT", "false")

import pytest
import pytest_asyncio

from application.ports.realtime import ConnectionPort, Envelope
from application.services.delivery_router import DeliveryRouter
from application.services.message_store import MessageStore
from application.services.realtime_service import RealtimeService
from infrastructure.database import build_engine, create_tables
from infrastructure.realtime.presence import PresenceRegistry
from infrastructure.unit_of_work import uow_factory_for


class FakeConnection(ConnectionPort):
    """Records every pushed envelope instead of writing to a socket."""

    def __init__(self, name: str = "conn"):
        self.connection_id = f"{name}-{uuid.uuid4().hex[:8]}"
        self.user_id = None
        self.events: list[Envelope] = []

    async def push(self, envelope: Envelope) -> None:
        self.events.append(envelope)

    def of_type(self, event_type: str) -> list[Envelope]:
        return [e for e in self.events if e.type == event_type]


class BrokenConnection(FakeConnection):
    async def push(self, envelope: Envelope) -> None:
        raise RuntimeError("socket is gone")


@pytest.fixture
def make_connection():
    # strong refs: the presence registry only holds weak ones
    created = []

    def _make(name: str = "conn", *, broken: bool = False, track: bool = True) -> FakeConnection:
        conn = BrokenConnection(name) if broken else FakeConnection(name)
        if track:
            created.append(conn)
        return conn

    yield _make
    created.clear()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine, factory = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    return uow_factory_for(session_factory)


@pytest.fixture
def message_store(uow_factory):
    return MessageStore(uow_factory, timeout=5.0)


@pytest.fixture
def presence():
    return PresenceRegistry()


@pytest.fixture
def router(presence):
    return DeliveryRouter(presence=presence)


@pytest.fixture
def realtime(presence, router, message_store):
    return RealtimeService(presence=presence, router=router, store=message_store)
