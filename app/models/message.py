from sqlalchemy import Column, ForeignKey, Text, DateTime, Uuid, func
from sqlalchemy.orm import relationship
import uuid

from app.db.database import Base
from .base import utcnow


class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    chat_id = Column(Uuid(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    # Client-supplied when given; ordering trusts the sender's clock
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    # Relationships
    chat = relationship("Chat", back_populates="messages")
    author = relationship("User")
