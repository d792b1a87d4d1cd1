"""
Chat Repository

Data access layer for Chat and ChatReadMarker models.
"""

from datetime import datetime
from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.repositories.base import BaseRepository
from app.models import Chat, ChatReadMarker, User, chat_participants


class ChatRepository(BaseRepository[Chat]):
    """Repository for Chat model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Chat, db)

    async def get_by_name(self, name: str) -> Optional[Chat]:
        result = await self.db.execute(
            select(Chat).where(Chat.name == name)
        )
        return result.scalar_one_or_none()

    async def get_many(self, chat_ids: List[UUID]) -> List[Chat]:
        result = await self.db.execute(
            select(Chat).where(Chat.id.in_(chat_ids))
        )
        return list(result.scalars().all())

    async def create_chat(self, name: str, participants: List[User]) -> Chat:
        chat = Chat(name=name)
        chat.participants = list(participants)
        self.db.add(chat)
        await self.db.commit()
        await self.db.refresh(chat)
        return chat

    async def is_participant(self, chat_id: UUID, user_id: UUID) -> bool:
        result = await self.db.execute(
            select(chat_participants.c.chat_id).where(
                chat_participants.c.chat_id == chat_id,
                chat_participants.c.user_id == user_id,
            )
        )
        return result.first() is not None

    async def get_user_chats(self, user_id: UUID) -> List[Chat]:
        """
        Chats the user participates in, most recently updated first.

        Participants and their profiles are eagerly loaded.
        """
        result = await self.db.execute(
            select(Chat)
            .join(chat_participants, Chat.id == chat_participants.c.chat_id)
            .where(chat_participants.c.user_id == user_id)
            .options(
                selectinload(Chat.participants).selectinload(User.profile)
            )
            .order_by(Chat.updated_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().unique().all())

    async def get_chat_partner_ids(self, user_id: UUID) -> Set[UUID]:
        """Ids of every participant of every chat the user is in."""
        user_chats = (
            select(chat_participants.c.chat_id)
            .where(chat_participants.c.user_id == user_id)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(chat_participants.c.user_id)
            .where(chat_participants.c.chat_id.in_(user_chats))
        )
        return set(result.scalars().all())

    async def touch(self, chat: Chat, when: datetime) -> None:
        """Bump updated_at for inbox ordering (not committed)."""
        chat.updated_at = when

    # =================
    # Read markers
    # =================
    async def get_read_marker(self, chat_id: UUID, user_id: UUID) -> Optional[ChatReadMarker]:
        result = await self.db.execute(
            select(ChatReadMarker).where(
                ChatReadMarker.chat_id == chat_id,
                ChatReadMarker.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def set_read_marker(self, chat_id: UUID, user_id: UUID, seen_at: datetime) -> ChatReadMarker:
        marker = await self.get_read_marker(chat_id, user_id)
        if marker is None:
            marker = ChatReadMarker(chat_id=chat_id, user_id=user_id, last_seen_at=seen_at)
            self.db.add(marker)
        else:
            marker.last_seen_at = seen_at
        await self.db.commit()
        await self.db.refresh(marker)
        return marker
