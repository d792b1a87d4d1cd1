from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


class CurrentUserResponse(BaseModel):
    """Schema for user data in responses (NO password!)"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    name: Optional[str] = None
    picture: Optional[str] = None


class DeleteAccountRequest(BaseModel):
    password: str


class FollowStatus(BaseModel):
    following: bool
