"""
Message Ledger

Durable, append-only chat history: chat creation, message persistence,
paginated history and unread bookkeeping.

Authorization is not checked here; ChatService and the HTTP ownership
dependencies decide who may call what.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BadRequestError, NotFoundError
from app.models import Chat, Message
from app.models.base import as_utc, utcnow
from app.repositories.chat_repo import ChatRepository
from app.repositories.message_repo import MessageRepository
from app.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class MessageLedger:
    """Chat and message persistence."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.chat_repo = ChatRepository(db)
        self.message_repo = MessageRepository(db)
        self.user_repo = UserRepository(db)

    # ============================================================
    # CHATS
    # ============================================================

    async def get_chat(self, chat_name: str) -> Chat:
        chat = await self.chat_repo.get_by_name(chat_name)
        if chat is None:
            raise NotFoundError("Chat not found")
        return chat

    async def create_chat(self, name: str, participant_ids: List[UUID]) -> Chat:
        """
        Create a chat between exactly two users.

        Raises:
            BadRequestError: name taken, or not two distinct participants
            NotFoundError: a participant does not exist
        """
        unique_ids = list(dict.fromkeys(participant_ids))
        if len(participant_ids) != 2 or len(unique_ids) != 2:
            raise BadRequestError("A chat needs exactly two different participants")

        if await self.chat_repo.get_by_name(name):
            raise BadRequestError("Chat already exist")

        users = await self.user_repo.get_many(unique_ids)
        if len(users) != 2:
            raise NotFoundError("User not found")

        chat = await self.chat_repo.create_chat(name, users)
        logger.info(f"Chat created: name={name}, id={chat.id}")
        return chat

    # ============================================================
    # MESSAGES
    # ============================================================

    async def add_message(
        self,
        chat_name: str,
        author_id: UUID,
        content: str,
        created_at: Optional[datetime] = None
    ) -> Message:
        """
        Append a message and bump the chat's updated_at to its timestamp.

        created_at comes from the client when present.
        """
        chat = await self.get_chat(chat_name)
        timestamp = as_utc(created_at) if created_at else utcnow()

        message = self.message_repo.add_message(
            chat_id=chat.id,
            author_id=author_id,
            content=content,
            created_at=timestamp,
        )
        await self.chat_repo.touch(chat, timestamp)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def add_messages(self, items: List[dict]) -> int:
        """
        Bulk insert of {chat_id, author_id, content} rows.

        Rows of one batch get strictly increasing timestamps in input
        order, and every touched chat moves to its newest row.

        Raises:
            NotFoundError: an item references a chat that does not exist
        """
        if not items:
            return 0

        chat_ids = list(dict.fromkeys(item["chat_id"] for item in items))
        chats = {chat.id: chat for chat in await self.chat_repo.get_many(chat_ids)}
        if len(chats) != len(chat_ids):
            raise NotFoundError("Chat not found")

        now = utcnow()
        rows = []
        for index, item in enumerate(items):
            timestamp = now + timedelta(microseconds=index)
            rows.append({
                "chat_id": item["chat_id"],
                "author_id": item["author_id"],
                "content": item["content"],
                "created_at": timestamp,
            })
            await self.chat_repo.touch(chats[item["chat_id"]], timestamp)

        count = await self.message_repo.bulk_insert(rows)
        await self.db.commit()
        return count

    async def load_messages(self, chat_name: str, page: int, per_page: int) -> List[Message]:
        """
        One page of history, newest first. page and per_page are 1-indexed.
        """
        if page < 1:
            raise BadRequestError("page must be at least 1")
        if per_page < 1 or per_page > settings.CHAT_MAX_PAGE_SIZE:
            raise BadRequestError(
                f"perPage must be between 1 and {settings.CHAT_MAX_PAGE_SIZE}"
            )

        chat = await self.get_chat(chat_name)
        return await self.message_repo.get_page(
            chat.id,
            offset=(page - 1) * per_page,
            limit=per_page,
        )

    async def get_message(self, message_id: UUID) -> Message:
        message = await self.message_repo.get_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    async def delete_message(self, message_id: UUID) -> Message:
        """Hard delete. Ownership is enforced by the caller."""
        message = await self.get_message(message_id)
        await self.message_repo.delete(message.id)
        return message

    # ============================================================
    # UNREAD COUNTERS
    # ============================================================

    async def count_new_messages(self, chat_name: str, user_id: UUID) -> int:
        """Messages from other users newer than the user's marker."""
        chat = await self.get_chat(chat_name)
        marker = await self.chat_repo.get_read_marker(chat.id, user_id)
        since = marker.last_seen_at if marker else None
        return await self.message_repo.count_since(chat.id, user_id, since)

    async def update_new_messages(self, chat_name: str, user_id: UUID) -> datetime:
        """
        Mark everything in the chat as seen.

        The marker only moves forward and always covers the newest
        message, even one stamped in the future by a client clock.
        """
        chat = await self.get_chat(chat_name)
        marker = await self.chat_repo.get_read_marker(chat.id, user_id)

        candidates = [utcnow()]
        latest = await self.message_repo.latest_timestamp(chat.id)
        if latest is not None:
            candidates.append(as_utc(latest))
        if marker is not None:
            candidates.append(as_utc(marker.last_seen_at))

        seen_at = max(candidates)
        await self.chat_repo.set_read_marker(chat.id, user_id, seen_at)
        return seen_at
