"""
Chat Schemas

Pydantic models for chat HTTP and WebSocket payloads.

Chat payloads use camelCase on the wire (chatName, perPage, createdAt)
and snake_case in Python.
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.base import as_utc


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================
# REQUEST SCHEMAS
# ============================================================

class ChatCreate(CamelModel):
    """A chat always connects exactly two users."""
    name: str = Field(..., min_length=1, max_length=255)
    user_ids: List[UUID] = Field(..., min_length=2, max_length=2)


class MessageCreate(CamelModel):
    """
    Schema for sending a new message.

    The author is the authenticated user; createdAt is optional and
    defaults to server time.
    """
    chat_name: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, max_length=10000)
    created_at: Optional[datetime] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Clean and validate message content."""
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        return v


class MessageListItem(CamelModel):
    """One entry of a bulk message import."""
    chat_id: UUID
    author_id: UUID
    content: str = Field(..., min_length=1, max_length=10000)


class LoadMessagesRequest(CamelModel):
    chat_name: str = Field(..., min_length=1)
    page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1, le=30)


class ChatNameRequest(CamelModel):
    chat_name: str = Field(..., min_length=1)


class RealtimeEnvelope(BaseModel):
    """Frame sent by a WebSocket client."""
    event: str
    data: Any = None


# ============================================================
# RESPONSE SCHEMAS
# ============================================================

class UserSummary(CamelModel):
    id: UUID
    name: Optional[str] = None
    picture: Optional[str] = None


class MessageResponse(CamelModel):
    id: UUID
    chat_id: UUID
    author_id: UUID
    content: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class ChatResponse(CamelModel):
    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class ChatWithMessages(ChatResponse):
    """Inbox entry: newest messages first, plus the other participants."""
    messages: List[MessageResponse] = Field(default_factory=list)
    message_count: int = 0
    participants: List[UserSummary] = Field(default_factory=list)


class NewMessagesCount(CamelModel):
    chat_name: str
    count: int


class BulkInsertResponse(CamelModel):
    count: int
