"""
User Repository

Data access layer for User and Profile models, including the
follow graph and the transactional account removal.
"""

from typing import Optional, List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, insert, or_
from sqlalchemy.orm import selectinload

from app.repositories.base import BaseRepository
from app.models import (
    User,
    Profile,
    AuthProvider,
    Message,
    ChatReadMarker,
    user_follows,
    chat_participants,
)


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    # =================
    # Get by email
    # =================
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by email address."""
        result = await self.db.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def get_with_profile(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.profile))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: List[UUID]) -> List[User]:
        result = await self.db.execute(
            select(User).where(User.id.in_(user_ids))
        )
        return list(result.scalars().all())

    # =================
    # Create user
    # =================
    async def create_user(
        self,
        email: str,
        password_hash: Optional[str],
        name: Optional[str] = None,
        picture: str = "",
        auth_provider: str = AuthProvider.EMAIL,
    ) -> User:
        """Create a new user together with an empty profile."""
        user = User(
            email=email,
            password_hash=password_hash,
            name=name,
            auth_provider=auth_provider,
        )
        user.profile = Profile(bio="", picture=picture or "", cover="")

        # Save to database
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        return user

    # =================
    # Follow graph
    # =================
    async def is_following(self, follower_id: UUID, followed_id: UUID) -> bool:
        result = await self.db.execute(
            select(user_follows.c.follower_id).where(
                user_follows.c.follower_id == follower_id,
                user_follows.c.followed_id == followed_id,
            )
        )
        return result.first() is not None

    async def add_follow(self, follower_id: UUID, followed_id: UUID) -> None:
        if await self.is_following(follower_id, followed_id):
            return
        await self.db.execute(
            insert(user_follows).values(follower_id=follower_id, followed_id=followed_id)
        )
        await self.db.commit()

    async def remove_follow(self, follower_id: UUID, followed_id: UUID) -> None:
        await self.db.execute(
            delete(user_follows).where(
                user_follows.c.follower_id == follower_id,
                user_follows.c.followed_id == followed_id,
            )
        )
        await self.db.commit()

    async def get_following(self, user_id: UUID) -> List[User]:
        """Users followed by user_id, with profiles loaded."""
        result = await self.db.execute(
            select(User)
            .join(user_follows, User.id == user_follows.c.followed_id)
            .where(user_follows.c.follower_id == user_id)
            .options(selectinload(User.profile))
            .order_by(User.name)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # =================
    # Delete user
    # =================
    async def delete_user_graph(self, user_id: UUID) -> None:
        """
        Remove a user and every row that references it in one transaction.

        Nothing is committed unless every statement succeeds.
        """
        statements = [
            delete(user_follows).where(
                or_(
                    user_follows.c.follower_id == user_id,
                    user_follows.c.followed_id == user_id,
                )
            ),
            delete(ChatReadMarker).where(ChatReadMarker.user_id == user_id),
            delete(chat_participants).where(chat_participants.c.user_id == user_id),
            delete(Message).where(Message.author_id == user_id),
            delete(Profile).where(Profile.user_id == user_id),
            delete(User).where(User.id == user_id),
        ]
        try:
            for statement in statements:
                await self.db.execute(statement)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
