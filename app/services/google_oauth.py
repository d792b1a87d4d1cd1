"""
Google OAuth Client

Talks to Google's OAuth 2.0 endpoints and turns the result into an
OAuthIdentity that AuthService.oauth_login understands.

Two entry points:
- Server-side redirect flow: authorization_url() -> exchange_code()
- Client-side Sign-In SDK: verify_id_token()
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"


@dataclass
class OAuthIdentity:
    """External identity as reported by the provider."""
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class GoogleOAuthError(Exception):
    """Google rejected the code/token or returned an unusable profile."""
    pass


class GoogleOAuthClient:
    """Thin async wrapper over Google's OAuth endpoints."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        timeout: float = 10.0
    ):
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.GOOGLE_CALLBACK_URL
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str) -> str:
        """Consent screen URL requesting email and profile scopes."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthIdentity:
        """
        Exchange an authorization code for the user's profile.

        Raises:
            GoogleOAuthError: if Google rejects the code or the profile has no email
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_response.raise_for_status()
                access_token = token_response.json().get("access_token")
                if not access_token:
                    raise GoogleOAuthError("Google returned no access token")

                profile_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                profile_response.raise_for_status()
                profile = profile_response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Google code exchange failed: {e}")
            raise GoogleOAuthError("Google authentication failed") from e

        return self._identity_from(profile)

    async def verify_id_token(self, id_token: str) -> OAuthIdentity:
        """
        Validate an ID token with Google's tokeninfo endpoint.

        Raises:
            GoogleOAuthError: invalid token, wrong audience or unverified email
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    GOOGLE_TOKENINFO_URL,
                    params={"id_token": id_token},
                )
                response.raise_for_status()
                claims = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Google ID token verification failed: {e}")
            raise GoogleOAuthError("Invalid Google token") from e

        if self.client_id and claims.get("aud") != self.client_id:
            raise GoogleOAuthError("Google token was issued for another client")

        return self._identity_from(claims)

    @staticmethod
    def _identity_from(profile: dict) -> OAuthIdentity:
        email = profile.get("email")
        verified = profile.get("email_verified", True)
        if isinstance(verified, str):
            verified = verified.lower() == "true"

        if not email or not verified:
            raise GoogleOAuthError("Google account has no verified email")

        return OAuthIdentity(
            email=email,
            name=profile.get("name"),
            picture=profile.get("picture"),
        )


def get_google_client() -> GoogleOAuthClient:
    """Dependency providing the Google OAuth client."""
    return GoogleOAuthClient()
