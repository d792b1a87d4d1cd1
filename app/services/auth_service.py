"""
Auth Service

Session manager. A user has at most one live session, represented by the
hash of its current refresh token stored on the user row:

    ANONYMOUS -> AUTHENTICATED (hash stored)
              -> AUTHENTICATED (hash rotated on every refresh)
              -> ANONYMOUS (hash cleared on logout)

Any sign-in, sign-up or OAuth login overwrites the stored hash, which
silently ends whatever session existed before.

Two concurrent refreshes with the same token can both pass verification;
the last write wins and the other pair stops working on its next refresh.
No locking beyond the database's own is applied.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.core.security import (
    InvalidTokenError,
    TokenPair,
    create_token_pair,
    secret_hasher,
    verify_access_token,
)
from app.db.redis import get_arq_pool
from app.models import AuthProvider, User
from app.models.base import as_utc, utcnow
from app.repositories.user_repo import UserRepository
from app.schemas.auth import PasswordResetTicket, TokenResponse
from app.services.google_oauth import OAuthIdentity
from app.tasks.email_tasks import send_password_reset_email
from app.utils.email import build_reset_url

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service class for authentication operations.
    """
    def __init__(self, db: AsyncSession):
        """
        Initialize with database session.

        Args:
            db: AsyncSession instance
        """
        self.db = db
        self.user_repo = UserRepository(db)

    # ============================================================
    # Sign Up
    # ============================================================
    async def sign_up(self, email: str, password: str, name: Optional[str] = None) -> TokenResponse:
        """
        Register a new user and open a session.

        Raises:
            ConflictError: If email already exists
        """
        if await self.user_repo.get_by_email(email):
            raise ConflictError("Email in use")

        user = await self.user_repo.create_user(
            email=email,
            password_hash=secret_hasher.hash(password),
            name=name,
        )
        logger.info(f"User signed up: id={user.id}")

        return await self._open_session(user)

    # ============================================================
    # Sign In
    # ============================================================
    async def sign_in(self, email: str, password: str) -> TokenResponse:
        """
        Authenticate with email and password.

        Unknown email and wrong password are reported differently on
        purpose; clients rely on the distinction.

        Raises:
            NotFoundError: no account with this email
            ForbiddenError: wrong password, or an OAuth-only account
        """
        user = await self.user_repo.get_by_email(email)

        if not user:
            raise NotFoundError("User not found")

        # password_hash is NULL for OAuth-created accounts; verify() rejects it
        if not secret_hasher.verify(user.password_hash, password):
            raise ForbiddenError("Access Denied")

        logger.info(f"User signed in: id={user.id}")
        return await self._open_session(user)

    # ============================================================
    # Token Refresh
    # ============================================================
    async def refresh(self, user_id: UUID, refresh_token: str) -> TokenResponse:
        """
        Rotate the session: the presented token must match the stored hash.

        Raises:
            NotFoundError: user no longer exists
            ForbiddenError: no active session or token already rotated
        """
        user = await self.user_repo.get_by_id(user_id)

        if not user:
            raise NotFoundError("User not found")

        if not user.hashed_refresh_token:
            raise ForbiddenError("Access Denied")

        if not secret_hasher.verify(user.hashed_refresh_token, refresh_token):
            raise ForbiddenError("Access Denied")

        logger.info(f"Session rotated: user={user.id}")
        return await self._open_session(user)

    # ============================================================
    # Logout
    # ============================================================
    async def logout(self, user_id: UUID) -> bool:
        """Drop the stored refresh hash. Safe to call repeatedly."""
        user = await self.user_repo.get_by_id(user_id)
        if user and user.hashed_refresh_token is not None:
            user.hashed_refresh_token = None
            await self.db.commit()
            logger.info(f"User logged out: id={user.id}")
        return True

    # ============================================================
    # OAuth Login
    # ============================================================
    async def oauth_login(self, identity: Optional[OAuthIdentity]) -> TokenResponse:
        """
        Sign in with an external identity, creating the account on first use.

        Accounts created here have no password hash and cannot use
        password sign-in until they go through a password reset.

        Raises:
            ForbiddenError: identity missing
        """
        if identity is None or not identity.email:
            raise ForbiddenError("Access Denied")

        user = await self.user_repo.get_by_email(identity.email)
        if user is None:
            user = await self.user_repo.create_user(
                email=identity.email,
                password_hash=None,
                name=identity.name,
                picture=identity.picture or "",
                auth_provider=AuthProvider.GOOGLE,
            )
            logger.info(f"User created from OAuth identity: id={user.id}")

        return await self._open_session(user)

    # ============================================================
    # Password Reset - Request
    # ============================================================
    async def request_password_reset(self, email: str) -> PasswordResetTicket:
        """
        Create a reset token, mail it as a link and return it.

        Only the token hash is stored. A new request replaces any
        previous token.

        Raises:
            NotFoundError: no account with this email
        """
        user = await self.user_repo.get_by_email(email)

        if not user:
            raise NotFoundError("User not found")

        token = secrets.token_urlsafe(32)
        user.reset_token_hash = secret_hasher.hash(token)
        user.reset_token_expires_at = utcnow() + timedelta(
            minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
        )
        await self.db.commit()

        await self._dispatch_reset_email(user, build_reset_url(str(user.id), token))
        logger.info(f"Password reset requested: user={user.id}")

        return PasswordResetTicket(
            message="Email sent",
            user_id=user.id,
            token=token,
        )

    # ============================================================
    # Password Reset - Verify Token
    # ============================================================
    async def verify_reset_token(self, user_id: UUID, token: str) -> bool:
        """
        Check a reset token without consuming it.

        Raises:
            NotFoundError: user absent
            ForbiddenError: no pending reset, mismatch or expired
        """
        await self._check_reset_token(user_id, token)
        return True

    # ============================================================
    # Password Reset - Reset Password
    # ============================================================
    async def reset_password(self, user_id: UUID, token: str, new_password: str) -> bool:
        """
        Set a new password; the reset token is consumed.

        Raises:
            NotFoundError: user absent
            ForbiddenError: no pending reset, mismatch or expired
        """
        user = await self._check_reset_token(user_id, token)

        user.password_hash = secret_hasher.hash(new_password)
        user.reset_token_hash = None
        user.reset_token_expires_at = None
        await self.db.commit()

        logger.info(f"Password reset completed: user={user.id}")
        return True

    # ============================================================
    # Get Current User
    # ============================================================
    async def get_current_user(self, token: str) -> User:
        """
        Get user from access token.

        Raises:
            InvalidTokenError: token invalid, expired or user gone
        """
        payload = verify_access_token(token)

        try:
            user_id = UUID(payload["sub"])
        except ValueError as e:
            raise InvalidTokenError("Invalid token subject") from e

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise InvalidTokenError("User not found")

        return user

    # ============================================================
    # Helper Methods
    # ============================================================

    async def _open_session(self, user: User) -> TokenResponse:
        """Issue a pair and store the refresh hash, replacing any previous one."""
        pair: TokenPair = create_token_pair(user.id, user.email)

        user.hashed_refresh_token = secret_hasher.hash(pair.refresh_token)
        await self.db.commit()

        return TokenResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    async def _check_reset_token(self, user_id: UUID, token: str) -> User:
        user = await self.user_repo.get_by_id(user_id)

        if not user:
            raise NotFoundError("User not found")

        if not user.reset_token_hash:
            raise ForbiddenError("Access Denied")

        expires_at = as_utc(user.reset_token_expires_at)
        if expires_at is None or expires_at <= utcnow():
            raise ForbiddenError("Reset token expired")

        if not secret_hasher.verify(user.reset_token_hash, token):
            raise ForbiddenError("Access Denied")

        return user

    async def _dispatch_reset_email(self, user: User, url: str) -> None:
        """
        Queue the reset mail on ARQ; send it inline if the queue is unavailable.
        """
        job_kwargs = {
            "email": user.email,
            "url": url,
            "name": user.name,
            "expires_in_minutes": settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES,
        }

        if settings.REDIS_ENABLED:
            try:
                pool = await get_arq_pool()
                await pool.enqueue_job("send_password_reset_email", **job_kwargs)
                logger.info(f"Reset mail for user {user.id} queued (ARQ)")
                return
            except Exception as e:
                logger.warning(f"ARQ queue unavailable ({e}), sending reset mail inline")

        await send_password_reset_email({}, **job_kwargs)
