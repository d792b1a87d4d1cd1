"""
User Service

Follow graph and account lifecycle.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.core.security import secret_hasher
from app.models import User
from app.repositories.user_repo import UserRepository
from app.schemas.chat import UserSummary
from app.schemas.user import CurrentUserResponse

logger = logging.getLogger(__name__)


class UserService:
    """Service for follow edges and account management."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)

    async def _get_user(self, user_id: UUID) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    # ============================================================
    # CURRENT USER
    # ============================================================

    async def get_current_user_info(self, user_id: UUID) -> CurrentUserResponse:
        user = await self.user_repo.get_with_profile(user_id)
        if not user:
            raise NotFoundError("User not found")
        return CurrentUserResponse(
            id=user.id,
            email=user.email,
            name=user.name,
            picture=user.profile.picture if user.profile else None,
        )

    # ============================================================
    # FOLLOW GRAPH
    # ============================================================

    async def follow(self, user_id: UUID, target_id: UUID) -> bool:
        """Following an already-followed user is a no-op."""
        if user_id == target_id:
            raise BadRequestError("Users cannot follow themselves")
        await self._get_user(target_id)
        await self.user_repo.add_follow(user_id, target_id)
        logger.info(f"User {user_id} follows {target_id}")
        return True

    async def unfollow(self, user_id: UUID, target_id: UUID) -> bool:
        await self._get_user(target_id)
        await self.user_repo.remove_follow(user_id, target_id)
        logger.info(f"User {user_id} unfollowed {target_id}")
        return False

    async def is_following(self, user_id: UUID, target_id: UUID) -> bool:
        return await self.user_repo.is_following(user_id, target_id)

    async def get_following(self, user_id: UUID) -> List[UserSummary]:
        await self._get_user(user_id)
        following = await self.user_repo.get_following(user_id)
        return [
            UserSummary(
                id=user.id,
                name=user.name,
                picture=user.profile.picture if user.profile else None,
            )
            for user in following
        ]

    # ============================================================
    # ACCOUNT
    # ============================================================

    async def delete_account(self, user_id: UUID, password: str) -> bool:
        """
        Remove the account and everything attached to it.

        The password is checked first; the removal itself runs in a
        single transaction.

        Raises:
            NotFoundError: user absent
            ForbiddenError: wrong password or no password set
        """
        user = await self._get_user(user_id)

        if not secret_hasher.verify(user.password_hash, password):
            raise ForbiddenError("Access Denied")

        await self.user_repo.delete_user_graph(user.id)
        logger.info(f"Account deleted: id={user_id}")
        return True
