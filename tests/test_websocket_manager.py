import asyncio
import json

import pytest

from app.services import websocket_manager as manager_module
from app.services.websocket_manager import ConnectionManager, EventTypes


class FakeSocket:
    def __init__(self, fail_on_send=False):
        self.accepted = False
        self.closed = False
        self.sent = []
        self.fail_on_send = fail_on_send

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail_on_send and self.accepted and self.sent:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(text))

    async def close(self, code=1000):
        self.closed = True

    def events(self, name):
        return [frame for frame in self.sent if frame["event"] == name]


@pytest.fixture
def manager():
    return ConnectionManager(use_redis=False)


async def test_connect_accepts_and_greets(manager):
    ws = FakeSocket()
    await manager.connect(ws, "user-1")

    assert ws.accepted
    assert ws.sent[0]["event"] == EventTypes.CONNECTED
    assert ws.sent[0]["data"]["user_id"] == "user-1"


async def test_broadcast_reaches_room_members_only(manager):
    a, b, outsider = FakeSocket(), FakeSocket(), FakeSocket()
    for ws, user in ((a, "a"), (b, "b"), (outsider, "c")):
        await manager.connect(ws, user)

    manager.join(a, "room-1")
    manager.join(b, "room-1")
    manager.join(outsider, "room-2")

    await manager.broadcast_to_room("room-1", EventTypes.NEW_MESSAGE, {"content": "hi"})

    for ws in (a, b):
        frames = ws.events(EventTypes.NEW_MESSAGE)
        assert len(frames) == 1
        assert frames[0]["room"] == "room-1"
        assert frames[0]["data"] == {"content": "hi"}
    assert outsider.events(EventTypes.NEW_MESSAGE) == []


async def test_leave_is_idempotent_and_stops_delivery(manager):
    ws = FakeSocket()
    await manager.connect(ws, "a")
    manager.join(ws, "room-1")

    manager.leave(ws, "room-1")
    manager.leave(ws, "room-1")
    manager.leave(ws, "never-joined")

    await manager.broadcast_to_room("room-1", EventTypes.NEW_MESSAGE, {})
    assert ws.events(EventTypes.NEW_MESSAGE) == []
    assert manager.members("room-1") == set()


async def test_disconnect_drops_every_membership(manager):
    ws = FakeSocket()
    await manager.connect(ws, "a")
    manager.join(ws, "room-1")
    manager.join(ws, "room-2")
    assert manager.rooms_of(ws) == {"room-1", "room-2"}

    manager.disconnect(ws)
    manager.disconnect(ws)

    assert manager.members("room-1") == set()
    assert manager.members("room-2") == set()
    assert manager.rooms_of(ws) == set()


async def test_failing_socket_is_dropped_without_affecting_others(manager):
    healthy, broken = FakeSocket(), FakeSocket(fail_on_send=True)
    await manager.connect(healthy, "a")
    await manager.connect(broken, "b")
    manager.join(healthy, "room-1")
    manager.join(broken, "room-1")

    await manager.broadcast_to_room("room-1", EventTypes.NEW_MESSAGE, {"n": 1})

    assert len(healthy.events(EventTypes.NEW_MESSAGE)) == 1
    assert manager.members("room-1") == {healthy}
    assert manager.rooms_of(broken) == set()


async def test_broadcast_to_empty_room_is_a_no_op(manager):
    await manager.broadcast_to_room("nobody-here", EventTypes.NEW_MESSAGE, {})


async def test_shutdown_closes_sockets(manager):
    ws = FakeSocket()
    await manager.connect(ws, "a")
    manager.join(ws, "room-1")

    await manager.shutdown()

    assert ws.closed
    assert manager.members("room-1") == set()


class FlakyPubSub:
    def __init__(self):
        self.closed = False

    async def psubscribe(self, pattern):
        self.pattern = pattern

    async def listen(self):
        raise ConnectionError("connection lost")
        yield

    async def aclose(self):
        self.closed = True


class FlakyRedis:
    def __init__(self):
        self.subscriptions = []

    def pubsub(self):
        pubsub = FlakyPubSub()
        self.subscriptions.append(pubsub)
        return pubsub


async def test_subscriber_closes_pubsub_before_resubscribing(monkeypatch):
    redis = FlakyRedis()

    async def fake_get_redis():
        return redis

    monkeypatch.setattr(manager_module, "get_redis", fake_get_redis)
    monkeypatch.setattr(manager_module, "SUBSCRIBER_RETRY_SECONDS", 0)

    manager = ConnectionManager(use_redis=False)
    task = asyncio.create_task(manager._redis_subscriber_loop())
    for _ in range(100):
        if len(redis.subscriptions) >= 3:
            break
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(redis.subscriptions) >= 3
    assert all(pubsub.closed for pubsub in redis.subscriptions[:-1])
    assert redis.subscriptions[0].pattern == "room:*"
