from sqlalchemy import Column, String, DateTime, ForeignKey, Table, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.database import Base
from .base import BaseModel, utcnow


chat_participants = Table(
    "chat_participants",
    Base.metadata,
    Column("chat_id", Uuid(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Chat(BaseModel):
    __tablename__ = "chats"

    # Room name for real-time fan-out; the uniqueness key of a chat
    name = Column(String(255), unique=True, nullable=False, index=True)

    # Relationships
    participants = relationship("User", secondary=chat_participants, back_populates="chats")
    messages = relationship("Message", back_populates="chat", cascade="all, delete-orphan", order_by="Message.created_at")


class ChatReadMarker(BaseModel):
    """Last-seen position of a user in a chat (unread counters)."""
    __tablename__ = "chat_read_markers"
    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uq_chat_read_markers_chat_user"),
    )

    chat_id = Column(Uuid(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
