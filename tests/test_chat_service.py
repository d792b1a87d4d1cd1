from uuid import uuid4

import pytest

from app.core.exceptions import ForbiddenError, NotFoundError
from app.repositories.user_repo import UserRepository
from app.schemas.chat import MessageCreate, MessageListItem, RealtimeEnvelope
from app.services.chat_service import ChatService
from app.services.websocket_manager import ConnectionManager, EventTypes

from test_websocket_manager import FakeSocket


@pytest.fixture
def manager():
    return ConnectionManager(use_redis=False)


@pytest.fixture
def service(db, manager):
    return ChatService(db, manager)


@pytest.fixture
async def users(db):
    repo = UserRepository(db)
    ada = await repo.create_user("ada@example.com", "x", name="Ada", picture="https://img/ada.png")
    bob = await repo.create_user("bob@example.com", "x", name="Bob", picture="https://img/bob.png")
    eve = await repo.create_user("eve@example.com", "x", name="Eve")
    return ada, bob, eve


@pytest.fixture
async def chat(service, users):
    ada, bob, _ = users
    return await service.create_chat(ada.id, "ada-bob", [ada.id, bob.id])


async def _connected(manager, user):
    ws = FakeSocket()
    await manager.connect(ws, str(user.id))
    return ws


async def test_create_chat_requires_caller_participation(service, users):
    ada, bob, eve = users
    with pytest.raises(ForbiddenError):
        await service.create_chat(eve.id, "ada-bob", [ada.id, bob.id])


async def test_socket_message_is_stored_then_broadcast(service, manager, users, chat):
    ada, bob, _ = users
    ada_ws = await _connected(manager, ada)
    bob_ws = await _connected(manager, bob)
    await service.handle_join(ada_ws, ada.id, "ada-bob")
    await service.handle_join(bob_ws, bob.id, "ada-bob")

    stored = await service.handle_message(ada.id, MessageCreate(chat_name="ada-bob", content="  hi bob  "))

    assert stored.content == "hi bob"
    for ws in (ada_ws, bob_ws):
        frames = ws.events(EventTypes.NEW_MESSAGE)
        assert len(frames) == 1
        assert frames[0]["room"] == "ada-bob"
        assert frames[0]["data"]["id"] == str(stored.id)
        assert frames[0]["data"]["authorId"] == str(ada.id)
        assert frames[0]["data"]["chatName"] == "ada-bob"

    history = await service.load_messages(bob.id, "ada-bob", 1, 10)
    assert [m.content for m in history] == ["hi bob"]


async def test_rest_message_is_stored_but_not_broadcast(service, manager, users, chat):
    ada, bob, _ = users
    bob_ws = await _connected(manager, bob)
    await service.handle_join(bob_ws, bob.id, "ada-bob")

    await service.post_message(ada.id, MessageCreate(chat_name="ada-bob", content="quiet"))

    assert bob_ws.events(EventTypes.NEW_MESSAGE) == []
    assert (await service.count_new_messages(bob.id, "ada-bob")).count == 1


async def test_outsiders_cannot_join_or_post(service, manager, users, chat):
    _, _, eve = users
    eve_ws = await _connected(manager, eve)

    with pytest.raises(ForbiddenError):
        await service.handle_join(eve_ws, eve.id, "ada-bob")
    with pytest.raises(ForbiddenError):
        await service.handle_message(eve.id, MessageCreate(chat_name="ada-bob", content="hi"))
    with pytest.raises(ForbiddenError):
        await service.post_message(eve.id, MessageCreate(chat_name="ada-bob", content="hi"))
    with pytest.raises(ForbiddenError):
        await service.load_messages(eve.id, "ada-bob", 1, 10)

    assert manager.members("ada-bob") == set()


async def test_message_to_unknown_chat(service, users):
    ada, _, _ = users
    with pytest.raises(NotFoundError):
        await service.handle_message(ada.id, MessageCreate(chat_name="nope", content="hi"))


async def test_handle_frame_reports_errors_to_sender(service, manager, users, chat):
    _, _, eve = users
    eve_ws = await _connected(manager, eve)

    await service.handle_frame(eve_ws, eve.id, RealtimeEnvelope(event=EventTypes.JOIN, data="ada-bob"))
    await service.handle_frame(eve_ws, eve.id, RealtimeEnvelope(event="event_dance", data=None))
    await service.handle_frame(eve_ws, eve.id, RealtimeEnvelope(event=EventTypes.MESSAGE, data={"chatName": "ada-bob"}))

    errors = eve_ws.events(EventTypes.ERROR)
    assert [e["data"]["event"] for e in errors] == [EventTypes.JOIN, "event_dance", EventTypes.MESSAGE]
    assert errors[0]["data"]["detail"] == "Access Denied"


async def test_handle_frame_join_message_leave(service, manager, users, chat):
    ada, bob, _ = users
    ada_ws = await _connected(manager, ada)
    bob_ws = await _connected(manager, bob)

    await service.handle_frame(ada_ws, ada.id, RealtimeEnvelope(event=EventTypes.JOIN, data="ada-bob"))
    await service.handle_frame(bob_ws, bob.id, RealtimeEnvelope(event=EventTypes.JOIN, data={"chatName": "ada-bob"}))
    await service.handle_frame(
        ada_ws, ada.id,
        RealtimeEnvelope(event=EventTypes.MESSAGE, data={"chatName": "ada-bob", "content": "yo"}),
    )
    await service.handle_frame(bob_ws, bob.id, RealtimeEnvelope(event=EventTypes.LEAVE, data="ada-bob"))
    await service.handle_frame(
        ada_ws, ada.id,
        RealtimeEnvelope(event=EventTypes.MESSAGE, data={"chatName": "ada-bob", "content": "still there?"}),
    )

    assert [f["data"]["content"] for f in bob_ws.events(EventTypes.NEW_MESSAGE)] == ["yo"]
    assert [f["data"]["content"] for f in ada_ws.events(EventTypes.NEW_MESSAGE)] == ["yo", "still there?"]


async def test_get_chats_inbox(service, users, chat, db):
    ada, bob, eve = users
    await service.create_chat(ada.id, "ada-eve", [ada.id, eve.id])
    for i in range(17):
        await service.post_message(bob.id, MessageCreate(chat_name="ada-bob", content=f"m{i}"))
    await service.post_message(eve.id, MessageCreate(chat_name="ada-eve", content="latest"))

    inbox = await service.get_chats(ada.id)

    assert [c.name for c in inbox] == ["ada-eve", "ada-bob"]
    ada_bob = inbox[1]
    assert ada_bob.message_count == 17
    assert len(ada_bob.messages) == 15
    assert ada_bob.messages[0].content == "m16"
    assert [(p.id, p.name, p.picture) for p in ada_bob.participants] == [(bob.id, "Bob", "https://img/bob.png")]


async def test_following_to_chat(service, users, chat, db):
    ada, bob, eve = users
    repo = UserRepository(db)
    await repo.add_follow(ada.id, bob.id)
    await repo.add_follow(ada.id, eve.id)

    candidates = await service.following_to_chat(ada.id)

    assert [u.id for u in candidates] == [eve.id]


async def test_bulk_import_must_be_authored_by_caller(service, users, chat):
    ada, bob, _ = users
    items = [MessageListItem(chat_id=chat.id, author_id=bob.id, content="not mine")]

    with pytest.raises(ForbiddenError):
        await service.add_messages(ada.id, items)

    mine = [MessageListItem(chat_id=chat.id, author_id=ada.id, content="mine")]
    assert await service.add_messages(ada.id, mine) == 1


async def test_update_new_messages_resets_count(service, users, chat):
    ada, bob, _ = users
    await service.post_message(bob.id, MessageCreate(chat_name="ada-bob", content="one"))

    assert (await service.count_new_messages(ada.id, "ada-bob")).count == 1
    assert (await service.update_new_messages(ada.id, "ada-bob")).count == 0
    assert (await service.count_new_messages(ada.id, "ada-bob")).count == 0


async def test_bulk_import_requires_membership_of_every_chat(service, users, chat):
    ada, _, eve = users

    with pytest.raises(ForbiddenError):
        await service.add_messages(eve.id, [MessageListItem(chat_id=chat.id, author_id=eve.id, content="spam")])

    assert await service.load_messages(ada.id, "ada-bob", 1, 10) == []


async def test_bulk_import_into_unknown_chat(service, users):
    ada, _, _ = users

    with pytest.raises(NotFoundError):
        await service.add_messages(ada.id, [MessageListItem(chat_id=uuid4(), author_id=ada.id, content="lost")])


async def test_unread_counters_are_for_participants_only(service, users, chat):
    _, _, eve = users

    with pytest.raises(ForbiddenError):
        await service.count_new_messages(eve.id, "ada-bob")
    with pytest.raises(ForbiddenError):
        await service.update_new_messages(eve.id, "ada-bob")
