"""
Message Repository

Data access layer for Message model.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.message import Message


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    async def get_page(
        self,
        chat_id: UUID,
        offset: int,
        limit: int
    ) -> List[Message]:
        """
        Get one page of a chat's history.

        Returns:
            Messages ordered newest first
        """
        stmt = (
            select(self.model)
            .where(self.model.chat_id == chat_id)
            .order_by(self.model.created_at.desc(), self.model.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_recent_messages(
        self,
        chat_id: UUID,
        limit: int = 15
    ) -> List[Message]:
        """Most recent messages, newest first."""
        return await self.get_page(chat_id, offset=0, limit=limit)

    def add_message(
        self,
        chat_id: UUID,
        author_id: UUID,
        content: str,
        created_at: datetime
    ) -> Message:
        """Stage a message in the session (caller commits)."""
        message = Message(
            chat_id=chat_id,
            author_id=author_id,
            content=content,
            created_at=created_at,
        )
        self.db.add(message)
        return message

    async def bulk_insert(self, rows: List[dict]) -> int:
        """Insert many rows in one statement (caller commits)."""
        if not rows:
            return 0
        await self.db.execute(insert(self.model), rows)
        return len(rows)

    async def count_chat_messages(self, chat_id: UUID) -> int:
        """Count messages in a chat."""
        stmt = select(func.count(self.model.id)).where(
            self.model.chat_id == chat_id
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def count_since(
        self,
        chat_id: UUID,
        exclude_author_id: UUID,
        since: Optional[datetime]
    ) -> int:
        """Count messages by other authors created after `since`."""
        stmt = select(func.count(self.model.id)).where(
            self.model.chat_id == chat_id,
            self.model.author_id != exclude_author_id,
        )
        if since is not None:
            stmt = stmt.where(self.model.created_at > since)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def latest_timestamp(self, chat_id: UUID) -> Optional[datetime]:
        result = await self.db.execute(
            select(func.max(self.model.created_at)).where(self.model.chat_id == chat_id)
        )
        return result.scalar()
