from fastapi import HTTPException, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from uuid import UUID
import logging

from app.db.database import get_db, get_session_factory
from app.models import User
from app.core.exceptions import ForbiddenError
from app.core.security import InvalidTokenError, verify_refresh_token
from app.services.auth_service import AuthService
from app.services.chat_service import ChatService
from app.services.message_ledger import MessageLedger
from app.services.user_service import UserService
from app.services.websocket_manager import get_connection_manager

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI; cookies are accepted as a fallback
security = HTTPBearer(auto_error=False)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def _extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    cookie_name: str
) -> str:
    if credentials and credentials.credentials:
        return credentials.credentials
    token = request.cookies.get(cookie_name)
    if not token:
        raise _unauthorized("Not authenticated")
    return token


# =====================================================
# Get Current user
# =====================================================
async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency that validates the access token and returns current user.

    Raises:
        HTTPException 401: If token is invalid or missing
    """
    token = _extract_token(request, credentials, ACCESS_COOKIE)

    auth_service = AuthService(db)

    try:
        return await auth_service.get_current_user(token)
    except InvalidTokenError as e:
        raise _unauthorized(str(e))


# =====================================================
# Refresh token
# =====================================================
async def get_refresh_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Validate the refresh token and return its claims plus the raw token.

    Only signature, expiry and type are checked here; whether the token
    is still the current one is decided by AuthService.refresh.
    """
    token = _extract_token(request, credentials, REFRESH_COOKIE)

    try:
        payload = verify_refresh_token(token)
        user_id = UUID(payload["sub"])
    except (InvalidTokenError, ValueError) as e:
        raise _unauthorized(str(e))

    return {"user_id": user_id, "email": payload.get("email"), "token": token}


# =====================================================
# Ownership guards
# =====================================================
async def require_message_author(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> UUID:
    """Only the author of a message may delete it."""
    message = await MessageLedger(db).get_message(message_id)
    if message.author_id != current_user.id:
        raise ForbiddenError("Access Denied")
    return message_id


async def require_account_owner(
    user_id: UUID,
    current_user: User = Depends(get_current_user)
) -> User:
    """Path user id must be the caller's own id."""
    if user_id != current_user.id:
        raise ForbiddenError("Access Denied")
    return current_user


# =====================================================
# Service providers
# =====================================================
def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def get_chat_service(db: AsyncSession = Depends(get_db)) -> ChatService:
    return ChatService(db, get_connection_manager())


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


# =====================================================
# WebSocket Authentication
# =====================================================
async def get_current_user_ws(token: Optional[str], session_factory=None) -> Optional[User]:
    """
    Authenticate user from a JWT token for WebSocket connections.

    Unlike HTTP dependencies, WebSocket auth must be done manually
    since we can't use the standard Depends() pattern.

    Returns:
        User if valid, None if invalid
    """
    if not token:
        return None

    session_factory = session_factory or get_session_factory()
    try:
        async with session_factory() as db:
            auth_service = AuthService(db)
            return await auth_service.get_current_user(token)
    except InvalidTokenError as e:
        logger.warning(f"WebSocket auth failed: {e}")
        return None
