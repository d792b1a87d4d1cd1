import base64
import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional, Union
import uuid

from jose import JWTError, jwt

# Use bcrypt directly to avoid passlib/bcrypt version conflicts
import bcrypt

# =====================================================
# Application Settings
# =====================================================
from app.core.config import settings


# =====================================================
# Credential Store
# =====================================================
class SecretHasher:
    """
    One-way hashing for passwords, refresh tokens and reset tokens.

    Secrets are SHA-256 pre-hashed before bcrypt so that inputs longer
    than bcrypt's 72-byte limit (JWTs share a long common prefix) are
    never truncated.
    """

    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds

    @staticmethod
    def _prehash(secret: str) -> bytes:
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        return base64.b64encode(digest)

    def hash(self, secret: str) -> str:
        """
        Hash a secret with a fresh salt.
        """
        salt = bcrypt.gensalt(rounds=self.rounds or settings.BCRYPT_ROUNDS)
        return bcrypt.hashpw(self._prehash(secret), salt).decode("utf-8")

    def verify(self, hashed: Optional[str], candidate: Optional[str]) -> bool:
        """
        Check a candidate against a stored hash.

        Malformed hashes and primitive errors count as a mismatch.
        """
        if not hashed or not candidate:
            return False
        try:
            return bcrypt.checkpw(
                self._prehash(candidate),
                hashed.encode("utf-8")
            )
        except (ValueError, TypeError):
            return False


# Hasher instance
secret_hasher = SecretHasher()


# =====================================================
# Token Type Constants
# =====================================================
TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


class InvalidTokenError(Exception):
    """Token signature, expiry, type or structure is invalid."""
    pass


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


def _secret_for(token_type: str) -> str:
    if token_type == TOKEN_TYPE_REFRESH:
        return settings.JWT_REFRESH_SECRET
    return settings.JWT_ACCESS_SECRET


# =====================================================
# JWT Creation Functions
# =====================================================
def issue_token(
    subject: Union[str, Any],
    email: str,
    token_type: str,
    secret: str,
    expires_delta: timedelta
) -> str:
    """
    Sign a JWT carrying the subject id and email.
    """
    now = datetime.now(timezone.utc)

    to_encode = {
        "sub": str(subject),
        "email": email,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
        "jti": str(uuid.uuid4())           # Makes every issued token distinct
    }

    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(
    subject: Union[str, Any],
    email: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.
    """
    return issue_token(
        subject,
        email,
        TOKEN_TYPE_ACCESS,
        settings.JWT_ACCESS_SECRET,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def create_refresh_token(
    subject: Union[str, Any],
    email: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT refresh token.
    """
    return issue_token(
        subject,
        email,
        TOKEN_TYPE_REFRESH,
        settings.JWT_REFRESH_SECRET,
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def create_token_pair(subject: Union[str, Any], email: str) -> TokenPair:
    """
    Create access + refresh token pair.
    """
    return TokenPair(
        access_token=create_access_token(subject, email),
        refresh_token=create_refresh_token(subject, email),
    )


# =====================================================
# Token Verification Functions
# =====================================================
def verify_token(
    token: str,
    token_type: str = TOKEN_TYPE_ACCESS,
    secret: Optional[str] = None
) -> Dict[str, Any]:
    """
    Verify a JWT and return its payload.

    Raises:
        InvalidTokenError: bad signature, expired, wrong type or malformed
    """
    if not token:
        raise InvalidTokenError("Missing token")

    try:
        payload = jwt.decode(
            token,
            secret or _secret_for(token_type),
            algorithms=[settings.ALGORITHM]
        )
    except JWTError as e:
        raise InvalidTokenError("Invalid or expired token") from e

    if payload.get("type") != token_type:
        raise InvalidTokenError("Invalid token type")

    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject")

    return payload


def verify_access_token(token: str) -> Dict[str, Any]:
    return verify_token(token, TOKEN_TYPE_ACCESS)


def verify_refresh_token(token: str) -> Dict[str, Any]:
    return verify_token(token, TOKEN_TYPE_REFRESH)
