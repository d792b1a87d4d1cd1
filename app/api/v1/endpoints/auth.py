"""
Authentication Endpoints

Endpoints:
----------
- POST /auth/signup                                 - Register and open a session
- POST /auth/signin                                 - Email/password sign-in
- GET  /auth/refresh                                - Rotate the session
- POST /auth/logout                                 - End the session
- GET  /auth/google                                 - Redirect to Google consent
- GET  /auth/google/redirect                        - Google callback, sets cookies
- POST /auth/google                                 - Sign in with a Google ID token
- POST /auth/request-reset-password                 - Mail a reset link
- GET  /auth/verify-reset-token/{token}/{userId}    - Check a reset token
- POST /auth/reset-password                         - Set a new password
"""

import logging
import secrets
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from app.api.deps import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    get_auth_service,
    get_current_user,
    get_refresh_claims,
)
from app.core.config import settings
from app.core.rate_limit import RateLimiter
from app.models.user import User
from app.schemas.auth import (
    ErrorResponse,
    GoogleAuthRequest,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    PasswordResetTicket,
    SignInRequest,
    SignUpRequest,
    TokenResponse,
)
from app.services.auth_service import AuthService
from app.services.google_oauth import (
    GoogleOAuthClient,
    GoogleOAuthError,
    OAuthIdentity,
    get_google_client,
)

logger = logging.getLogger(__name__)

OAUTH_STATE_COOKIE = "oauth_state"

# ============================================================
# Router Setup
# ============================================================

router = APIRouter(tags=["Authentication"])


def _set_session_cookies(response, tokens: TokenResponse) -> None:
    cookie_options = {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": "lax",
        "domain": settings.COOKIE_DOMAIN or None,
    }
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **cookie_options
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        max_age=settings.REFRESH_TOKEN_MAX_AGE_SECONDS,
        **cookie_options
    )


# ============================================================
# Sign Up / Sign In
# ============================================================

@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimiter("signup", 5, 60))],
    responses={
        201: {"description": "User created successfully"},
        409: {"model": ErrorResponse, "description": "Email already exists"},
        429: {"model": ErrorResponse, "description": "Too many requests"},
    }
)
async def sign_up(
    data: SignUpRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new account.

    Returns an access token (short-lived) and a refresh token (long-lived).
    """
    return await auth_service.sign_up(data.email, data.password, data.name)


@router.post(
    "/signin",
    response_model=TokenResponse,
    dependencies=[Depends(RateLimiter("signin", 10, 60))],
    responses={
        200: {"description": "Login successful"},
        403: {"model": ErrorResponse, "description": "Wrong password"},
        404: {"model": ErrorResponse, "description": "Unknown email"},
        429: {"model": ErrorResponse, "description": "Too many requests"},
    }
)
async def sign_in(
    data: SignInRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Authenticate with email and password.

    Any session opened earlier for this user stops refreshing.
    """
    return await auth_service.sign_in(data.email, data.password)


# ============================================================
# Session Renewal
# ============================================================

@router.get(
    "/refresh",
    response_model=TokenResponse,
    dependencies=[Depends(RateLimiter("refresh", 20, 60))],
    responses={
        401: {"description": "Missing or invalid refresh token"},
        403: {"model": ErrorResponse, "description": "Token already rotated or logged out"},
    }
)
async def refresh(
    claims: dict = Depends(get_refresh_claims),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Exchange the current refresh token for a new pair.

    Send the refresh token as `Authorization: Bearer <refresh_token>`
    or in the `refresh_token` cookie. Each refresh token works once.
    """
    return await auth_service.refresh(claims["user_id"], claims["token"])


@router.post("/logout", response_model=MessageResponse)
async def logout(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """End the session. The access token stays valid until it expires."""
    await auth_service.logout(current_user.id)
    return MessageResponse(message="Logged out")


# ============================================================
# Google Sign-In
# ============================================================

@router.get("/google", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
async def google_login(
    google: GoogleOAuthClient = Depends(get_google_client)
):
    """Redirect to Google's consent screen."""
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(google.authorization_url(state))
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=600,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    return response


@router.get("/google/redirect")
async def google_redirect(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    google: GoogleOAuthClient = Depends(get_google_client),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Google callback.

    Sets the session cookies and sends the browser back to the frontend.
    A missing code, a state mismatch or a rejected code ends in 403.
    """
    identity: Optional[OAuthIdentity] = None
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)

    if code and state and expected_state and secrets.compare_digest(state, expected_state):
        try:
            identity = await google.exchange_code(code)
        except GoogleOAuthError as e:
            logger.warning(f"Google callback rejected: {e}")
    else:
        logger.warning("Google callback without a valid code/state")

    tokens = await auth_service.oauth_login(identity)

    response = RedirectResponse(settings.FRONTEND_URL, status_code=status.HTTP_302_FOUND)
    _set_session_cookies(response, tokens)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response


@router.post(
    "/google",
    response_model=TokenResponse,
    responses={
        200: {"description": "Google authentication successful"},
        403: {"model": ErrorResponse, "description": "Invalid Google token"},
    }
)
async def google_token_login(
    request_data: GoogleAuthRequest,
    google: GoogleOAuthClient = Depends(get_google_client),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Authenticate or register via Google Sign-In.

    The client sends the Google ID token obtained from the Google Sign-In SDK.
    The backend verifies it with Google, finds or creates the user, and returns
    JWT tokens.
    """
    try:
        identity = await google.verify_id_token(request_data.id_token)
    except GoogleOAuthError as e:
        logger.warning(f"Google ID token rejected: {e}")
        identity = None

    return await auth_service.oauth_login(identity)


# ============================================================
# Password Reset
# ============================================================

@router.post(
    "/request-reset-password",
    response_model=PasswordResetTicket,
    response_model_by_alias=True,
    dependencies=[Depends(RateLimiter("reset-request", 5, 60))],
    responses={
        404: {"model": ErrorResponse, "description": "Unknown email"},
    }
)
async def request_reset_password(
    data: PasswordResetRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Mail a reset link to the user. A new request replaces the previous link."""
    return await auth_service.request_password_reset(data.email)


@router.get(
    "/verify-reset-token/{token}/{user_id}",
    response_model=MessageResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Invalid or expired token"},
    }
)
async def verify_reset_token(
    token: str,
    user_id: UUID,
    auth_service: AuthService = Depends(get_auth_service)
):
    await auth_service.verify_reset_token(user_id, token)
    return MessageResponse(message="Token is valid")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Invalid or expired token"},
    }
)
async def reset_password(
    data: PasswordResetConfirm,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Set a new password. The reset token cannot be used again."""
    await auth_service.reset_password(data.user_id, data.token, data.password)
    return MessageResponse(message="Password updated")
