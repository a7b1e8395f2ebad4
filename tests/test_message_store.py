import asyncio
from datetime import datetime, timezone

import pytest

from application.services.message_store import MessageStore
from domain.common.exceptions import MessageStorageException, MessageValidationException
from infrastructure.database import build_engine, create_tables
from infrastructure.unit_of_work import uow_factory_for


@pytest.mark.asyncio
async def test_save_assigns_id_timestamp_and_unread(message_store):
    first = await message_store.save("alice", "bob", "hi")
    second = await message_store.save("alice", "bob", "you there?")

    assert first.id is not None and second.id > first.id
    assert first.sender == "alice" and first.recipient == "bob"
    assert first.read is False
    assert first.timestamp.tzinfo is not None
    assert second.timestamp >= first.timestamp


@pytest.mark.asyncio
async def test_payload_uses_wire_field_names(message_store):
    saved = await message_store.save("alice", "bob", "hi")
    payload = saved.to_payload()
    assert set(payload) == {"id", "from", "to", "text", "timestamp", "read"}
    assert payload["from"] == "alice" and payload["to"] == "bob"
    assert payload["timestamp"].endswith("Z")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "sender,recipient,text,field",
    [
        ("", "bob", "hi", "from"),
        ("alice", None, "hi", "to"),
        ("alice", "alice", "hi", "to"),
        ("alice", "bob", "   ", "text"),
        ("alice", "bob", None, "text"),
    ],
)
async def test_invalid_messages_are_rejected_before_persistence(message_store, sender, recipient, text, field):
    with pytest.raises(MessageValidationException) as exc_info:
        await message_store.save(sender, recipient, text)
    assert exc_info.value.error_type == "ValidationError"
    assert exc_info.value.field == field

    _, total = await message_store.conversation("alice", "bob")
    assert total == 0


@pytest.mark.asyncio
async def test_mark_read_only_touches_one_direction(message_store):
    await message_store.save("alice", "bob", "one")
    await message_store.save("alice", "bob", "two")
    await message_store.save("bob", "alice", "reply")

    assert await message_store.mark_read("alice", "bob") == 2
    assert (await message_store.unread_count("alice", "bob")).unread == 0
    assert (await message_store.unread_count("bob", "alice")).unread == 1

    # idempotent: nothing left to flip
    assert await message_store.mark_read("alice", "bob") == 0


@pytest.mark.asyncio
async def test_mark_read_does_not_touch_later_messages(message_store):
    await message_store.save("alice", "bob", "before")
    await message_store.mark_read("alice", "bob")
    await message_store.save("alice", "bob", "after")

    items, _ = await message_store.conversation("alice", "bob")
    assert [m.read for m in items] == [True, False]


@pytest.mark.asyncio
async def test_conversation_is_bidirectional_ordered_and_paged(message_store):
    for i in range(5):
        if i % 2:
            await message_store.save("bob", "alice", f"m{i}")
        else:
            await message_store.save("alice", "bob", f"m{i}")
    await message_store.save("alice", "carol", "elsewhere")

    items, total = await message_store.conversation("bob", "alice")
    assert total == 5
    assert [m.text for m in items] == ["m0", "m1", "m2", "m3", "m4"]

    page, total = await message_store.conversation("alice", "bob", skip=2, limit=2)
    assert total == 5
    assert [m.text for m in page] == ["m2", "m3"]


@pytest.mark.asyncio
async def test_concurrent_saves_all_persist(message_store):
    results = await asyncio.gather(*[message_store.save("alice", "bob", f"msg {i}") for i in range(10)])
    assert len({m.id for m in results}) == 10
    _, total = await message_store.conversation("alice", "bob")
    assert total == 10


@pytest.mark.asyncio
async def test_unreachable_database_raises_storage_error(tmp_path):
    engine, factory = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nested' / 'chat.db'}")
    store = MessageStore(uow_factory_for(factory), timeout=5.0)
    try:
        with pytest.raises(MessageStorageException) as exc_info:
            await store.save("alice", "bob", "hi")
        assert exc_info.value.error_type == "StorageError"
    finally:
        await engine.dispose()


class _SlowUnitOfWork:
    async def __aenter__(self):
        await asyncio.sleep(1)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None


@pytest.mark.asyncio
async def test_slow_storage_times_out_as_storage_error():
    store = MessageStore(lambda **kwargs: _SlowUnitOfWork(), timeout=0.05)
    with pytest.raises(MessageStorageException) as exc_info:
        await store.save("alice", "bob", "hi")
    assert exc_info.value.details["reason"] == "timeout"


@pytest.mark.asyncio
async def test_timestamp_is_not_earlier_than_the_call(message_store):
    before = datetime.now(timezone.utc)
    saved = await message_store.save("alice", "bob", "hi")
    assert saved.timestamp >= before


@pytest.mark.asyncio
async def test_saved_message_survives_restart(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'durable.db'}"
    engine, factory = build_engine(url)
    await create_tables(engine)
    saved = await MessageStore(uow_factory_for(factory), timeout=5.0).save("alice", "bob", "still here")
    await engine.dispose()

    engine, factory = build_engine(url)
    try:
        items, total = await MessageStore(uow_factory_for(factory), timeout=5.0).conversation("alice", "bob")
    finally:
        await engine.dispose()

    assert total == 1
    assert items[0].id == saved.id
    assert items[0].text == "still here"
    assert items[0].read is False


@pytest.mark.asyncio
async def test_padded_identity_is_rejected(message_store):
    with pytest.raises(MessageValidationException) as exc_info:
        await message_store.save("alice ", "bob", "hi")
    assert exc_info.value.field == "from"
