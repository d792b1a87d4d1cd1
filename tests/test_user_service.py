import pytest
from sqlalchemy.sql.dml import Delete

from app.core.exceptions import ForbiddenError
from app.core.security import secret_hasher
from app.repositories.chat_repo import ChatRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.user_repo import UserRepository
from app.services.message_ledger import MessageLedger
from app.services.user_service import UserService

PASSWORD = "TestPass123!"


@pytest.fixture
def service(db):
    return UserService(db)


@pytest.fixture
async def graph(db):
    """Ada and Bob follow each other and share a chat with one message each."""
    repo = UserRepository(db)
    ada = await repo.create_user("ada@example.com", secret_hasher.hash(PASSWORD), name="Ada")
    bob = await repo.create_user("bob@example.com", secret_hasher.hash(PASSWORD), name="Bob")
    ada_id, bob_id = ada.id, bob.id

    await repo.add_follow(ada_id, bob_id)
    await repo.add_follow(bob_id, ada_id)

    ledger = MessageLedger(db)
    chat = await ledger.create_chat("ada-bob", [ada_id, bob_id])
    await ledger.add_message("ada-bob", ada_id, "hi bob")
    await ledger.add_message("ada-bob", bob_id, "hi ada")
    await ledger.update_new_messages("ada-bob", ada_id)
    return ada_id, bob_id, chat.id


async def test_delete_account_wrong_password_keeps_everything(service, db, graph):
    ada_id, bob_id, chat_id = graph

    with pytest.raises(ForbiddenError):
        await service.delete_account(ada_id, "WrongPass123")

    assert await UserRepository(db).is_following(ada_id, bob_id)


async def test_failed_account_deletion_leaves_graph_intact(service, db, graph, monkeypatch):
    ada_id, bob_id, chat_id = graph
    execute = db.execute

    async def failing_execute(statement, *args, **kwargs):
        if isinstance(statement, Delete) and statement.table.name == "users":
            raise RuntimeError("database went away")
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", failing_execute)
    with pytest.raises(RuntimeError):
        await service.delete_account(ada_id, PASSWORD)
    monkeypatch.setattr(db, "execute", execute)

    users = UserRepository(db)
    chats = ChatRepository(db)
    assert await users.get_by_email("ada@example.com") is not None
    assert await users.is_following(ada_id, bob_id)
    assert await users.is_following(bob_id, ada_id)
    assert await chats.is_participant(chat_id, ada_id)
    assert await chats.get_read_marker(chat_id, ada_id) is not None
    assert await MessageRepository(db).count_chat_messages(chat_id) == 2


async def test_delete_account_removes_graph(service, db, graph):
    ada_id, bob_id, chat_id = graph

    assert await service.delete_account(ada_id, PASSWORD)

    users = UserRepository(db)
    chats = ChatRepository(db)
    assert await users.get_by_email("ada@example.com") is None
    assert not await users.is_following(bob_id, ada_id)
    assert not await chats.is_participant(chat_id, ada_id)
    assert await chats.is_participant(chat_id, bob_id)
    assert await MessageRepository(db).count_chat_messages(chat_id) == 1
