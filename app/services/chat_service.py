"""
Chat Service

Orchestrates the chat flow between HTTP, WebSocket and storage:
1. Check that the caller takes part in the chat
2. Persist through the MessageLedger
3. Fan out over the ConnectionManager (WebSocket messages only)

Messages posted over REST are stored but not broadcast; connected
clients see them on their next load.
"""

import logging
from typing import Any, List, Optional
from uuid import UUID

from fastapi import WebSocket
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AppError, BadRequestError, ForbiddenError, NotFoundError
from app.models import Chat, Message
from app.repositories.chat_repo import ChatRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.user_repo import UserRepository
from app.schemas.chat import (
    ChatWithMessages,
    MessageCreate,
    MessageListItem,
    MessageResponse,
    NewMessagesCount,
    RealtimeEnvelope,
    UserSummary,
)
from app.services.message_ledger import MessageLedger
from app.services.websocket_manager import (
    ConnectionManager,
    EventTypes,
    RealtimeEvent,
    get_connection_manager,
)

logger = logging.getLogger(__name__)


class ChatService:
    """
    Service for chat operations.

    Handles:
    - Room join/leave for connected sockets
    - Real-time and REST message posting
    - Inbox listing and history pages
    - Unread counters
    """

    def __init__(self, db: AsyncSession, manager: Optional[ConnectionManager] = None):
        self.db = db
        self.ledger = MessageLedger(db)
        self.chat_repo = ChatRepository(db)
        self.message_repo = MessageRepository(db)
        self.user_repo = UserRepository(db)
        self.manager = manager or get_connection_manager()

    # ============================================================
    # ACCESS
    # ============================================================

    async def _require_participant(self, chat_name: str, user_id: UUID) -> Chat:
        chat = await self.ledger.get_chat(chat_name)
        if not await self.chat_repo.is_participant(chat.id, user_id):
            raise ForbiddenError("Access Denied")
        return chat

    # ============================================================
    # REAL-TIME
    # ============================================================

    async def handle_join(self, websocket: WebSocket, user_id: UUID, room: str) -> None:
        """Subscribe a socket to a chat's room. Participants only."""
        await self._require_participant(room, user_id)
        self.manager.join(websocket, room)
        await self.manager.send_to_socket(websocket, RealtimeEvent(
            event=EventTypes.JOINED,
            room=room,
            data={"chatName": room},
        ))

    def handle_leave(self, websocket: WebSocket, room: str) -> None:
        self.manager.leave(websocket, room)

    async def handle_message(self, user_id: UUID, payload: MessageCreate) -> MessageResponse:
        """
        Persist a socket message, then broadcast it to the chat's room.

        The broadcast carries the stored message, so every member sees the
        same id and timestamp. A failed write raises before any fan-out.
        """
        await self._require_participant(payload.chat_name, user_id)

        message = await self.ledger.add_message(
            chat_name=payload.chat_name,
            author_id=user_id,
            content=payload.content,
            created_at=payload.created_at,
        )
        response = MessageResponse.model_validate(message)

        data = response.model_dump(mode="json", by_alias=True)
        data["chatName"] = payload.chat_name
        await self.manager.broadcast_to_room(payload.chat_name, EventTypes.NEW_MESSAGE, data)

        return response

    async def handle_frame(self, websocket: WebSocket, user_id: UUID, envelope: RealtimeEnvelope) -> None:
        """
        Dispatch one client frame.

        Failures are reported to the sending socket only; the connection
        stays open.
        """
        try:
            if envelope.event == EventTypes.JOIN:
                await self.handle_join(websocket, user_id, self._room_from(envelope.data))
            elif envelope.event == EventTypes.LEAVE:
                self.handle_leave(websocket, self._room_from(envelope.data))
            elif envelope.event == EventTypes.MESSAGE:
                payload = MessageCreate.model_validate(envelope.data)
                await self.handle_message(user_id, payload)
            else:
                raise BadRequestError(f"Unknown event: {envelope.event}")
        except ValidationError as e:
            await self._send_error(websocket, envelope, f"Invalid payload: {e.errors()[0]['msg']}")
        except AppError as e:
            logger.info(f"Rejected {envelope.event} from user {user_id}: {e.message}")
            await self._send_error(websocket, envelope, e.message)

    @staticmethod
    def _room_from(data: Any) -> str:
        """Rooms arrive either as a bare chat name or as {"chatName": ...}."""
        if isinstance(data, dict):
            data = data.get("chatName") or data.get("chat_name")
        if not isinstance(data, str) or not data:
            raise BadRequestError("Room name is required")
        return data

    async def _send_error(self, websocket: WebSocket, envelope: RealtimeEnvelope, detail: str) -> None:
        await self.manager.send_to_socket(websocket, RealtimeEvent(
            event=EventTypes.ERROR,
            room="",
            data={"event": envelope.event, "detail": detail},
        ))

    # ============================================================
    # REST
    # ============================================================

    async def post_message(self, user_id: UUID, payload: MessageCreate) -> Message:
        """Persist a message sent over HTTP. No broadcast."""
        await self._require_participant(payload.chat_name, user_id)
        return await self.ledger.add_message(
            chat_name=payload.chat_name,
            author_id=user_id,
            content=payload.content,
            created_at=payload.created_at,
        )

    async def add_messages(self, user_id: UUID, items: List[MessageListItem]) -> int:
        """Bulk import; the caller must author every item and take part in every chat."""
        if any(item.author_id != user_id for item in items):
            raise ForbiddenError("Access Denied")
        for chat_id in dict.fromkeys(item.chat_id for item in items):
            if await self.chat_repo.get_by_id(chat_id) is None:
                raise NotFoundError("Chat not found")
            if not await self.chat_repo.is_participant(chat_id, user_id):
                raise ForbiddenError("Access Denied")
        return await self.ledger.add_messages([item.model_dump() for item in items])

    async def create_chat(self, user_id: UUID, name: str, participant_ids: List[UUID]) -> Chat:
        """The caller must be one of the two participants."""
        if user_id not in participant_ids:
            raise ForbiddenError("Access Denied")
        return await self.ledger.create_chat(name, participant_ids)

    async def get_chats(self, user_id: UUID) -> List[ChatWithMessages]:
        """
        Inbox for a user, most recently active chat first.

        Each entry holds the newest messages (newest first), the total
        message count and the other participants.
        """
        chats = await self.chat_repo.get_user_chats(user_id)

        inbox = []
        for chat in chats:
            messages = await self.message_repo.get_recent_messages(
                chat.id, limit=settings.CHAT_PREVIEW_MESSAGES
            )
            count = await self.message_repo.count_chat_messages(chat.id)
            others = [
                UserSummary(
                    id=participant.id,
                    name=participant.name,
                    picture=participant.profile.picture if participant.profile else None,
                )
                for participant in chat.participants
                if participant.id != user_id
            ]
            inbox.append(ChatWithMessages(
                id=chat.id,
                name=chat.name,
                created_at=chat.created_at,
                updated_at=chat.updated_at,
                messages=[MessageResponse.model_validate(m) for m in messages],
                message_count=count,
                participants=others,
            ))
        return inbox

    async def following_to_chat(self, user_id: UUID) -> List[UserSummary]:
        """Followed users who don't share a chat with the caller yet."""
        following = await self.user_repo.get_following(user_id)
        partner_ids = await self.chat_repo.get_chat_partner_ids(user_id)
        return [
            UserSummary(
                id=user.id,
                name=user.name,
                picture=user.profile.picture if user.profile else None,
            )
            for user in following
            if user.id not in partner_ids
        ]

    async def load_messages(self, user_id: UUID, chat_name: str, page: int, per_page: int) -> List[Message]:
        await self._require_participant(chat_name, user_id)
        return await self.ledger.load_messages(chat_name, page, per_page)

    async def delete_message(self, message_id: UUID) -> Message:
        return await self.ledger.delete_message(message_id)

    # ============================================================
    # UNREAD
    # ============================================================

    async def count_new_messages(self, user_id: UUID, chat_name: str) -> NewMessagesCount:
        await self._require_participant(chat_name, user_id)
        count = await self.ledger.count_new_messages(chat_name, user_id)
        return NewMessagesCount(chat_name=chat_name, count=count)

    async def update_new_messages(self, user_id: UUID, chat_name: str) -> NewMessagesCount:
        await self._require_participant(chat_name, user_id)
        await self.ledger.update_new_messages(chat_name, user_id)
        return NewMessagesCount(chat_name=chat_name, count=0)
