from datetime import timedelta
from uuid import uuid4

import pytest

from app.core.exceptions import BadRequestError, NotFoundError
from app.models.base import as_utc, utcnow
from app.repositories.user_repo import UserRepository
from app.services.message_ledger import MessageLedger


@pytest.fixture
def ledger(db):
    return MessageLedger(db)


@pytest.fixture
async def users(db):
    repo = UserRepository(db)
    ada = await repo.create_user("ada@example.com", "x", name="Ada")
    bob = await repo.create_user("bob@example.com", "x", name="Bob")
    return ada, bob


@pytest.fixture
async def chat(ledger, users):
    ada, bob = users
    return await ledger.create_chat("ada-bob", [ada.id, bob.id])


async def test_create_chat_rules(ledger, users, chat):
    ada, bob = users

    with pytest.raises(BadRequestError, match="Chat already exist"):
        await ledger.create_chat("ada-bob", [ada.id, bob.id])
    with pytest.raises(BadRequestError):
        await ledger.create_chat("solo", [ada.id, ada.id])
    with pytest.raises(BadRequestError):
        await ledger.create_chat("crowd", [ada.id])
    with pytest.raises(NotFoundError):
        await ledger.create_chat("ghost", [ada.id, uuid4()])


async def test_add_message_bumps_chat_activity(ledger, users, chat):
    ada, _ = users
    sent_at = utcnow() + timedelta(seconds=5)

    message = await ledger.add_message("ada-bob", ada.id, "hello", created_at=sent_at)

    refreshed = await ledger.get_chat("ada-bob")
    assert as_utc(message.created_at) == sent_at
    assert as_utc(refreshed.updated_at) == sent_at


async def test_add_message_to_unknown_chat(ledger, users):
    ada, _ = users
    with pytest.raises(NotFoundError):
        await ledger.add_message("nope", ada.id, "hello")


async def test_pages_are_newest_first_and_disjoint(ledger, users, chat):
    ada, bob = users
    base = utcnow()
    for i in range(7):
        author = ada if i % 2 == 0 else bob
        await ledger.add_message("ada-bob", author.id, f"m{i}", created_at=base + timedelta(seconds=i))

    first = await ledger.load_messages("ada-bob", page=1, per_page=3)
    second = await ledger.load_messages("ada-bob", page=2, per_page=3)
    third = await ledger.load_messages("ada-bob", page=3, per_page=3)
    beyond = await ledger.load_messages("ada-bob", page=4, per_page=3)

    assert [m.content for m in first] == ["m6", "m5", "m4"]
    assert [m.content for m in second] == ["m3", "m2", "m1"]
    assert [m.content for m in third] == ["m0"]
    assert beyond == []


@pytest.mark.parametrize("page,per_page", [(0, 10), (1, 0), (1, 31)])
async def test_load_messages_rejects_out_of_range(ledger, chat, page, per_page):
    with pytest.raises(BadRequestError):
        await ledger.load_messages("ada-bob", page=page, per_page=per_page)


async def test_unread_counts_only_other_authors(ledger, users, chat):
    ada, bob = users
    await ledger.add_message("ada-bob", ada.id, "from ada")
    await ledger.add_message("ada-bob", bob.id, "from bob 1")
    await ledger.add_message("ada-bob", bob.id, "from bob 2")

    assert await ledger.count_new_messages("ada-bob", ada.id) == 2
    assert await ledger.count_new_messages("ada-bob", bob.id) == 1


async def test_update_zeroes_count_even_for_future_messages(ledger, users, chat):
    ada, bob = users
    # Client clock ahead of the server
    await ledger.add_message("ada-bob", bob.id, "from the future", created_at=utcnow() + timedelta(hours=1))

    await ledger.update_new_messages("ada-bob", ada.id)
    assert await ledger.count_new_messages("ada-bob", ada.id) == 0

    await ledger.add_message("ada-bob", bob.id, "later", created_at=utcnow() + timedelta(hours=2))
    assert await ledger.count_new_messages("ada-bob", ada.id) == 1


async def test_marker_never_moves_backward(ledger, users, chat):
    ada, bob = users
    await ledger.add_message("ada-bob", bob.id, "ahead", created_at=utcnow() + timedelta(hours=1))

    first = await ledger.update_new_messages("ada-bob", ada.id)
    second = await ledger.update_new_messages("ada-bob", ada.id)

    assert second >= first


async def test_bulk_insert(ledger, users, chat):
    ada, bob = users
    count = await ledger.add_messages([
        {"chat_id": chat.id, "author_id": ada.id, "content": "one"},
        {"chat_id": chat.id, "author_id": bob.id, "content": "two"},
    ])

    assert count == 2
    assert len(await ledger.load_messages("ada-bob", 1, 30)) == 2
    assert await ledger.add_messages([]) == 0


async def test_bulk_batch_pages_are_ordered_and_disjoint(ledger, users, chat):
    ada, bob = users
    before = as_utc((await ledger.get_chat("ada-bob")).updated_at)
    await ledger.add_messages([
        {"chat_id": chat.id, "author_id": (ada if i % 2 == 0 else bob).id, "content": f"b{i}"}
        for i in range(6)
    ])

    pages = [await ledger.load_messages("ada-bob", page=p, per_page=2) for p in (1, 2, 3)]
    contents = [m.content for page in pages for m in page]

    assert contents == ["b5", "b4", "b3", "b2", "b1", "b0"]
    assert len({m.id for page in pages for m in page}) == 6
    assert await ledger.load_messages("ada-bob", page=4, per_page=2) == []

    newest = pages[0][0]
    updated = as_utc((await ledger.get_chat("ada-bob")).updated_at)
    assert updated == as_utc(newest.created_at)
    assert updated > before


async def test_bulk_insert_into_unknown_chat(ledger, users, chat):
    ada, _ = users

    with pytest.raises(NotFoundError, match="Chat not found"):
        await ledger.add_messages([
            {"chat_id": chat.id, "author_id": ada.id, "content": "kept?"},
            {"chat_id": uuid4(), "author_id": ada.id, "content": "lost"},
        ])

    assert await ledger.load_messages("ada-bob", 1, 30) == []


async def test_delete_message(ledger, users, chat):
    ada, _ = users
    message = await ledger.add_message("ada-bob", ada.id, "oops")

    await ledger.delete_message(message.id)

    with pytest.raises(NotFoundError):
        await ledger.get_message(message.id)
    with pytest.raises(NotFoundError):
        await ledger.delete_message(message.id)
