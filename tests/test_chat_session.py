import pytest

from application.services.message_store import MessageStore
from application.services.realtime_service import RealtimeService, SessionState
from domain.common.exceptions import MessageStorageException


async def _joined(realtime, make_connection, user_id):
    conn = make_connection(user_id)
    session = realtime.open_session(conn)
    await session.handle({"type": "join", "data": {"user_id": user_id}})
    return conn, session


@pytest.mark.asyncio
async def test_join_acknowledges_and_registers(realtime, presence, make_connection):
    conn = make_connection()
    session = realtime.open_session(conn)
    assert session.state is SessionState.UNJOINED

    await session.handle({"type": "join", "userId": "alice"})

    assert session.state is SessionState.JOINED
    assert conn.user_id == "alice"
    assert presence.connections_for("alice") == frozenset({conn})
    assert [(e.type, e.data) for e in conn.events] == [("joined", {"user_id": "alice"})]


@pytest.mark.asyncio
async def test_message_is_persisted_then_delivered_to_recipient_only(realtime, message_store, make_connection):
    alice, alice_session = await _joined(realtime, make_connection, "alice")
    bob, _ = await _joined(realtime, make_connection, "bob")

    await alice_session.handle({"type": "message", "data": {"to": "bob", "text": "hey bob"}})

    received = bob.of_type("message")
    assert len(received) == 1
    payload = received[0].data
    assert payload["from"] == "alice" and payload["to"] == "bob"
    assert payload["text"] == "hey bob" and payload["read"] is False
    assert isinstance(payload["id"], int)
    assert alice.of_type("message") == []

    items, total = await message_store.conversation("alice", "bob")
    assert total == 1 and items[0].id == payload["id"]


@pytest.mark.asyncio
async def test_message_to_offline_user_is_still_persisted(realtime, message_store, make_connection):
    alice, session = await _joined(realtime, make_connection, "alice")

    await session.handle({"type": "message", "data": {"from": "alice", "to": "bob", "text": "later"}})

    assert alice.of_type("error") == []
    assert (await message_store.unread_count("alice", "bob")).unread == 1


@pytest.mark.asyncio
async def test_typing_is_forwarded_without_persistence(realtime, message_store, make_connection):
    alice, _ = await _joined(realtime, make_connection, "alice")
    _, bob_session = await _joined(realtime, make_connection, "bob")

    await bob_session.handle({"type": "typing", "data": {"to": "alice"}})

    assert [(e.type, e.data) for e in alice.of_type("typing")] == [("typing", {"from": "bob"})]
    _, total = await message_store.conversation("alice", "bob")
    assert total == 0


@pytest.mark.asyncio
async def test_read_marks_messages_and_sends_receipt(realtime, message_store, make_connection):
    alice, alice_session = await _joined(realtime, make_connection, "alice")
    bob, bob_session = await _joined(realtime, make_connection, "bob")
    await alice_session.handle({"type": "message", "data": {"to": "bob", "text": "one"}})
    await alice_session.handle({"type": "message", "data": {"to": "bob", "text": "two"}})

    await bob_session.handle({"type": "read", "data": {"from": "alice", "to": "bob"}})

    assert (await message_store.unread_count("alice", "bob")).unread == 0
    receipts = alice.of_type("read-receipt")
    assert [(e.data["from"], e.data["to"]) for e in receipts] == [("alice", "bob")]
    assert bob.of_type("read-receipt") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("event_type", ["message", "typing", "read"])
async def test_events_before_join_are_rejected(realtime, message_store, make_connection, event_type):
    conn = make_connection()
    session = realtime.open_session(conn)

    await session.handle({"type": event_type, "data": {"from": "alice", "to": "bob", "text": "hi"}})

    errors = conn.of_type("error")
    assert len(errors) == 1 and errors[0].data["error_type"] == "NotJoined"
    _, total = await message_store.conversation("alice", "bob")
    assert total == 0


@pytest.mark.asyncio
async def test_unknown_event_reports_error(realtime, make_connection):
    conn, session = await _joined(realtime, make_connection, "alice")
    await session.handle({"type": "wave", "data": {}})
    assert conn.of_type("error")[0].data["error_type"] == "UnknownEvent"


@pytest.mark.asyncio
async def test_sender_mismatch_is_a_validation_error(realtime, message_store, make_connection):
    alice, session = await _joined(realtime, make_connection, "alice")
    bob, _ = await _joined(realtime, make_connection, "bob")

    await session.handle({"type": "message", "data": {"from": "mallory", "to": "bob", "text": "hi"}})

    error = alice.of_type("error")[0].data
    assert error["error_type"] == "ValidationError" and error["field"] == "from"
    assert bob.of_type("message") == []
    _, total = await message_store.conversation("mallory", "bob")
    assert total == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [
        {"to": "bob", "text": ""},
        {"to": "bob"},
        {"text": "hi"},
        {"to": "alice", "text": "note to self"},
    ],
)
async def test_invalid_message_errors_go_to_sender_only(realtime, make_connection, data):
    alice, session = await _joined(realtime, make_connection, "alice")
    bob, _ = await _joined(realtime, make_connection, "bob")

    await session.handle({"type": "message", "data": data})

    assert alice.of_type("error")[0].data["error_type"] == "ValidationError"
    assert bob.events == [e for e in bob.events if e.type == "joined"]


@pytest.mark.asyncio
async def test_typing_requires_target(realtime, make_connection):
    alice, session = await _joined(realtime, make_connection, "alice")
    await session.handle({"type": "typing", "data": {}})
    assert alice.of_type("error")[0].data["field"] == "to"


class _BrokenUnitOfWork:
    async def __aenter__(self):
        raise MessageStorageException("begin", reason="OperationalError")

    async def __aexit__(self, exc_type, exc, tb):
        return None


@pytest.mark.asyncio
async def test_storage_failure_drops_message_and_tells_sender(presence, router, make_connection):
    store = MessageStore(lambda **kwargs: _BrokenUnitOfWork(), timeout=1.0)
    realtime = RealtimeService(presence=presence, router=router, store=store)
    alice, session = await _joined(realtime, make_connection, "alice")
    bob, _ = await _joined(realtime, make_connection, "bob")

    await session.handle({"type": "message", "data": {"to": "bob", "text": "hi"}})

    assert alice.of_type("error")[0].data["error_type"] == "StorageError"
    assert bob.of_type("message") == []
    assert bob.of_type("error") == []


@pytest.mark.asyncio
async def test_rejoin_rebinds_connection(realtime, presence, make_connection):
    conn, session = await _joined(realtime, make_connection, "alice")
    await session.handle({"type": "join", "data": {"user_id": "bob"}})

    assert session.user_id == "bob"
    assert presence.connections_for("alice") == frozenset()
    assert presence.connections_for("bob") == frozenset({conn})


@pytest.mark.asyncio
async def test_close_leaves_presence_and_ignores_later_events(realtime, presence, make_connection):
    conn, session = await _joined(realtime, make_connection, "alice")

    await session.close()
    await session.close()
    await session.handle({"type": "ping"})

    assert session.state is SessionState.CLOSED
    assert presence.connections_for("alice") == frozenset()
    assert conn.of_type("pong") == []


@pytest.mark.asyncio
async def test_session_scope_releases_presence_on_error(realtime, presence, make_connection):
    conn = make_connection()
    with pytest.raises(RuntimeError):
        async with realtime.session(conn) as session:
            await session.handle({"type": "join", "data": {"user_id": "alice"}})
            raise RuntimeError("transport blew up")
    assert presence.connections_for("alice") == frozenset()


@pytest.mark.asyncio
async def test_ping_gets_pong_even_before_join(realtime, make_connection):
    conn = make_connection()
    session = realtime.open_session(conn)
    await session.handle({"type": "ping"})
    assert [e.type for e in conn.events] == ["pong"]


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_value", [["bob"], {"id": "bob"}, 42])
@pytest.mark.parametrize(
    "event_type,data,field",
    [
        ("message", {"to": "<bad>", "text": "hi"}, "to"),
        ("message", {"from": "<bad>", "to": "bob", "text": "hi"}, "from"),
        ("typing", {"to": "<bad>"}, "to"),
        ("read", {"from": "<bad>", "to": "alice"}, "from"),
        ("read", {"from": "bob", "to": "<bad>"}, "to"),
    ],
)
async def test_non_string_identities_are_rejected(realtime, message_store, make_connection,
                                                  bad_value, event_type, data, field):
    alice, session = await _joined(realtime, make_connection, "alice")
    payload = {k: bad_value if v == "<bad>" else v for k, v in data.items()}

    await session.handle({"type": event_type, "data": payload})

    errors = alice.of_type("error")
    assert len(errors) == 1
    assert errors[0].data["error_type"] == "ValidationError"
    assert errors[0].data["field"] == field
    _, total = await message_store.conversation("alice", str(bad_value))
    assert total == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_value", [["alice"], {"id": "alice"}, 42])
async def test_join_rejects_non_string_user_id(realtime, presence, make_connection, bad_value):
    conn = make_connection()
    session = realtime.open_session(conn)

    await session.handle({"type": "join", "data": {"user_id": bad_value}})

    assert session.state is SessionState.UNJOINED
    assert conn.of_type("error")[0].data["field"] == "user_id"
    assert presence.online_users() == frozenset()


@pytest.mark.asyncio
async def test_join_rejects_padded_user_id(realtime, presence, make_connection):
    conn = make_connection()
    session = realtime.open_session(conn)

    await session.handle({"type": "join", "data": {"user_id": " alice"}})

    assert session.state is SessionState.UNJOINED
    assert conn.of_type("error")[0].data["error_type"] == "ValidationError"
    assert presence.online_users() == frozenset()
