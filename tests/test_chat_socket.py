"""
End-to-end scenario over a real WebSocket.

Starlette's TestClient drives the socket in its own event loop, so this
module uses a NullPool engine: every session opens a fresh connection in
whichever loop asks for it.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketDisconnect

from app.db.database import Base, get_db, get_session_factory
from app.main import app as fastapi_app

from conftest import API, PASSWORD, bearer, user_id_of


@pytest.fixture
def sync_client(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'socket.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_session_factory] = lambda: factory

    with TestClient(fastapi_app) as client:
        yield client

    fastapi_app.dependency_overrides.clear()


def _signup(client, email, name):
    response = client.post(f"{API}/auth/signup", json={"email": email, "password": PASSWORD, "name": name})
    assert response.status_code == 201, response.text
    return response.json()


def _receive(ws, event):
    while True:
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame


def test_socket_rejects_missing_or_bad_token(sync_client):
    with pytest.raises(WebSocketDisconnect):
        with sync_client.websocket_connect(f"{API}/chat/ws") as ws:
            ws.receive_json()

    with pytest.raises(WebSocketDisconnect):
        with sync_client.websocket_connect(f"{API}/chat/ws?token=garbage") as ws:
            ws.receive_json()


def test_two_users_chat_in_real_time(sync_client):
    ada = _signup(sync_client, "ada@example.com", "Ada")
    bob = _signup(sync_client, "bob@example.com", "Bob")
    ada_id, bob_id = str(user_id_of(ada)), str(user_id_of(bob))

    created = sync_client.post(
        f"{API}/chat",
        json={"name": "ada-bob", "userIds": [ada_id, bob_id]},
        headers=bearer(ada["access_token"]),
    )
    assert created.status_code == 201

    with sync_client.websocket_connect(f"{API}/chat/ws?token={ada['access_token']}") as ada_ws, \
            sync_client.websocket_connect(f"{API}/chat/ws?token={bob['access_token']}") as bob_ws:
        assert _receive(ada_ws, "connected")["data"]["user_id"] == ada_id
        assert _receive(bob_ws, "connected")["data"]["user_id"] == bob_id

        ada_ws.send_json({"event": "event_join", "data": "ada-bob"})
        bob_ws.send_json({"event": "event_join", "data": "ada-bob"})
        assert _receive(ada_ws, "joined")["room"] == "ada-bob"
        assert _receive(bob_ws, "joined")["room"] == "ada-bob"

        bob_ws.send_json({"event": "event_message", "data": {"chatName": "ada-bob", "content": "hello ada"}})

        to_ada = _receive(ada_ws, "new_message")
        to_bob = _receive(bob_ws, "new_message")

        assert to_ada["room"] == "ada-bob"
        assert to_ada["data"]["content"] == "hello ada"
        assert to_ada["data"]["authorId"] == bob_id
        assert to_ada["data"]["id"] == to_bob["data"]["id"]

        ada_ws.send_text("not json")
        assert _receive(ada_ws, "error")["data"]["detail"] == "Malformed frame"

    count = sync_client.get(f"{API}/chat/new-messages-count/ada-bob", headers=bearer(ada["access_token"]))
    assert count.json()["count"] == 1

    sync_client.put(
        f"{API}/chat/update-new-messages",
        json={"chatName": "ada-bob"},
        headers=bearer(ada["access_token"]),
    )
    count = sync_client.get(f"{API}/chat/new-messages-count/ada-bob", headers=bearer(ada["access_token"]))
    assert count.json()["count"] == 0

    history = sync_client.post(
        f"{API}/chat/load",
        json={"chatName": "ada-bob", "page": 1, "perPage": 10},
        headers=bearer(ada["access_token"]),
    )
    assert [m["content"] for m in history.json()] == ["hello ada"]


def test_outsider_cannot_join(sync_client):
    ada = _signup(sync_client, "ada@example.com", "Ada")
    bob = _signup(sync_client, "bob@example.com", "Bob")
    eve = _signup(sync_client, "eve@example.com", "Eve")
    sync_client.post(
        f"{API}/chat",
        json={"name": "ada-bob", "userIds": [str(user_id_of(ada)), str(user_id_of(bob))]},
        headers=bearer(ada["access_token"]),
    )

    with sync_client.websocket_connect(f"{API}/chat/ws?token={eve['access_token']}") as eve_ws:
        _receive(eve_ws, "connected")
        eve_ws.send_json({"event": "event_join", "data": "ada-bob"})
        error = _receive(eve_ws, "error")

    assert error["data"] == {"event": "event_join", "detail": "Access Denied"}
