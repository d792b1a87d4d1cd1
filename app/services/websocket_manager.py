"""
WebSocket Manager

Room registry for real-time chat. A room is named after a chat; each
connected socket can be a member of any number of rooms.

When Redis is enabled, broadcasts go through Redis Pub/Sub so that every
backend instance delivers to its own local members. Otherwise (or when
publishing fails) delivery is local only.

Delivery is best effort and at most once: no acknowledgement, no retry,
no persistence.
"""

import asyncio
import json
import logging
from typing import Dict, Set, Optional, Any
from dataclasses import dataclass, asdict
from datetime import datetime, timezone

from fastapi import WebSocket

from app.core.config import settings
from app.db.redis import get_redis

logger = logging.getLogger(__name__)

ROOM_CHANNEL_PREFIX = "room:"
SUBSCRIBER_RETRY_SECONDS = 5


# ============================================================
# Message Types
# ============================================================

@dataclass
class RealtimeEvent:
    """Frame sent from the server to a socket."""
    event: str
    room: str
    data: Any
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, data: str) -> "RealtimeEvent":
        parsed = json.loads(data)
        return cls(**parsed)


class EventTypes:
    """WebSocket event name constants."""
    JOIN = "event_join"              # client -> server
    LEAVE = "event_leave"            # client -> server
    MESSAGE = "event_message"        # client -> server
    NEW_MESSAGE = "new_message"      # server -> room
    CONNECTED = "connected"          # server -> socket
    JOINED = "joined"                # server -> socket, join acknowledged
    ERROR = "error"                  # server -> socket


# ============================================================
# Connection Manager
# ============================================================

class ConnectionManager:
    """
    Tracks connected sockets and their room memberships.

    Sockets are owned by the transport; rooms only hold references and
    forget a socket as soon as it disconnects or fails a send.
    """

    def __init__(self, use_redis: Optional[bool] = None):
        # Map: room name -> Set of WebSocket connections
        self._rooms: Dict[str, Set[WebSocket]] = {}

        # Map: WebSocket -> (user_id, rooms joined) for cleanup
        self._connection_info: Dict[WebSocket, tuple] = {}

        self.use_redis = settings.REDIS_ENABLED if use_redis is None else use_redis

        # Redis subscription task
        self._redis_subscriber_task: Optional[asyncio.Task] = None

    # ============================================================
    # Connection Management
    # ============================================================

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """
        Accept and register a new WebSocket connection.
        """
        await websocket.accept()
        self._connection_info[websocket] = (user_id, set())

        logger.info(f"WebSocket connected: user={user_id}. Total connections: {len(self._connection_info)}")

        await self.send_to_socket(websocket, RealtimeEvent(
            event=EventTypes.CONNECTED,
            room="",
            data={"user_id": user_id, "status": "connected"}
        ))

        if self.use_redis:
            await self._ensure_redis_subscriber()

    def disconnect(self, websocket: WebSocket) -> None:
        """
        Remove a WebSocket connection from every room.
        """
        info = self._connection_info.pop(websocket, None)
        if info is None:
            return

        user_id, rooms = info
        for room in rooms:
            self._discard_member(room, websocket)

        logger.info(f"WebSocket disconnected: user={user_id}, rooms={sorted(rooms)}")

    # ============================================================
    # Room Membership
    # ============================================================

    def join(self, websocket: WebSocket, room: str) -> None:
        """Add a socket to a room's broadcast group."""
        self._rooms.setdefault(room, set()).add(websocket)
        if websocket in self._connection_info:
            self._connection_info[websocket][1].add(room)
        logger.info(f"Joined room {room}. Members: {len(self._rooms[room])}")

    def leave(self, websocket: WebSocket, room: str) -> None:
        """Remove a socket from a room. Leaving twice is a no-op."""
        self._discard_member(room, websocket)
        if websocket in self._connection_info:
            self._connection_info[websocket][1].discard(room)

    def members(self, room: str) -> Set[WebSocket]:
        return set(self._rooms.get(room, set()))

    def rooms_of(self, websocket: WebSocket) -> Set[str]:
        info = self._connection_info.get(websocket)
        return set(info[1]) if info else set()

    def _discard_member(self, room: str, websocket: WebSocket) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._rooms[room]

    # ============================================================
    # Message Broadcasting
    # ============================================================

    async def broadcast_to_room(self, room: str, event: str, payload: Any) -> None:
        """
        Broadcast an event to every member of a room.
        """
        message = RealtimeEvent(event=event, room=room, data=payload)

        if not self.use_redis:
            await self._deliver_to_room_local(room, message)
            return

        channel = f"{ROOM_CHANNEL_PREFIX}{room}"
        try:
            redis = await get_redis()
            await redis.publish(channel, message.to_json())
            logger.debug(f"Published {event} to Redis channel {channel}")
        except Exception as e:
            logger.error(f"Failed to publish to Redis: {e}")
            # Fallback to direct delivery for local connections
            await self._deliver_to_room_local(room, message)

    async def _deliver_to_room_local(self, room: str, message: RealtimeEvent) -> None:
        """
        Deliver a message to local WebSocket connections only.
        """
        connections = self.members(room)

        if not connections:
            logger.debug(f"No local connections for room {room}")
            return

        disconnected = []
        for websocket in connections:
            try:
                await self.send_to_socket(websocket, message)
            except Exception as e:
                logger.warning(f"Failed to send to websocket: {e}")
                disconnected.append(websocket)

        for ws in disconnected:
            self.disconnect(ws)
            self._discard_member(room, ws)

    async def send_to_socket(self, websocket: WebSocket, message: RealtimeEvent) -> None:
        """Send a message to a specific WebSocket."""
        await websocket.send_text(message.to_json())

    # ============================================================
    # Redis Pub/Sub Subscriber
    # ============================================================

    async def _ensure_redis_subscriber(self) -> None:
        """Ensure Redis subscriber is running."""
        if self._redis_subscriber_task is None or self._redis_subscriber_task.done():
            self._redis_subscriber_task = asyncio.create_task(
                self._redis_subscriber_loop()
            )
            logger.info("Started Redis Pub/Sub subscriber task")

    async def _redis_subscriber_loop(self) -> None:
        """
        Background task that subscribes to room channels and delivers
        messages to local members.
        """
        while True:
            pubsub = None
            try:
                redis = await get_redis()
                pubsub = redis.pubsub()

                await pubsub.psubscribe(f"{ROOM_CHANNEL_PREFIX}*")
                logger.info(f"Subscribed to Redis pattern: {ROOM_CHANNEL_PREFIX}*")

                async for message in pubsub.listen():
                    if message["type"] != "pmessage":
                        continue
                    try:
                        channel = message["channel"]
                        if isinstance(channel, bytes):
                            channel = channel.decode("utf-8")
                        room = channel[len(ROOM_CHANNEL_PREFIX):]

                        data = message["data"]
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")

                        await self._deliver_to_room_local(room, RealtimeEvent.from_json(data))
                    except Exception as e:
                        logger.error(f"Error processing Redis message: {e}")

            except asyncio.CancelledError:
                logger.info("Redis subscriber task cancelled")
                raise
            except Exception as e:
                logger.error(f"Redis subscriber error: {e}")
            finally:
                if pubsub is not None:
                    try:
                        await pubsub.aclose()
                    except Exception as e:
                        logger.debug(f"Error closing Redis pubsub: {e}")

            # Wait before resubscribing
            await asyncio.sleep(SUBSCRIBER_RETRY_SECONDS)

    async def shutdown(self) -> None:
        """Gracefully shutdown the connection manager."""
        if self._redis_subscriber_task:
            self._redis_subscriber_task.cancel()
            try:
                await self._redis_subscriber_task
            except asyncio.CancelledError:
                pass

        for websocket in list(self._connection_info.keys()):
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing websocket during shutdown: {e}")

        self._rooms.clear()
        self._connection_info.clear()

        logger.info("WebSocket ConnectionManager shutdown complete")


# ============================================================
# Singleton Instance
# ============================================================

# Global connection manager instance
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> ConnectionManager:
    """Get the singleton ConnectionManager instance."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager()
    return _connection_manager


async def shutdown_connection_manager() -> None:
    """Shutdown the connection manager on app shutdown."""
    global _connection_manager
    if _connection_manager is not None:
        await _connection_manager.shutdown()
        _connection_manager = None
