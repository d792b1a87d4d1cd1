from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from uuid import UUID


# ============================================================
# Request Schemas (What client sends)
# ============================================================

class SignUpRequest(BaseModel):
    """Schema for user registration request"""

    email: EmailStr  # Pydantic validates this is a valid email
    password: str = Field(
        min_length=8,
        max_length=100,
        description="Password must be 8-100 characters"
    )
    name: Optional[str] = Field(
        default=None,
        max_length=40,
        description="Display name, at most 40 characters"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        """Remove extra whitespace from name"""
        if v is None:
            return v
        return " ".join(v.split())

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "ada@example.com",
                "password": "SecurePass123",
                "name": "Ada Lovelace"
            }
        }
    )


class SignInRequest(BaseModel):
    """Schema for user login request"""

    email: EmailStr
    password: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "ada@example.com",
                "password": "SecurePass123"
            }
        }
    )


class GoogleAuthRequest(BaseModel):
    """Google ID token obtained by a client-side Sign-In SDK"""
    id_token: str = Field(min_length=1)


class PasswordResetRequest(BaseModel):
    """Schema for password reset request"""
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Schema for setting new password after reset"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = Field(alias="userId")
    token: str = Field(min_length=1)
    password: str = Field(
        min_length=8,
        max_length=100,
        description="Password must be 8-100 characters"
    )


# ============================================================
# Response Schemas (What server sends back)
# ============================================================

class MessageResponse(BaseModel):
    """Schema for simple message responses"""
    message: str
    success: bool = True


class TokenResponse(BaseModel):
    """Schema for authentication token response"""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until access token expires

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 900
            }
        }
    )


class PasswordResetTicket(BaseModel):
    """Returned by a reset request; the token is also mailed to the user"""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: UUID = Field(alias="userId")
    token: str


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Schema for error responses"""

    detail: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "detail": "Access Denied"
            }
        }
    )
