from sqlalchemy import Column, String, DateTime, ForeignKey, Table, Uuid, Text
from sqlalchemy.orm import relationship

from app.db.database import Base
from .base import BaseModel


# Self-referential follow edges: follower -> followed
user_follows = Table(
    "user_follows",
    Base.metadata,
    Column("follower_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("followed_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class AuthProvider:
    EMAIL = "email"
    GOOGLE = "google"


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    # NULL for accounts created through OAuth; such accounts cannot sign in with a password
    password_hash = Column(String(255), nullable=True)
    name = Column(String(100), nullable=True)
    auth_provider = Column(String(50), nullable=False, default=AuthProvider.EMAIL, server_default=AuthProvider.EMAIL)

    # Session / reset state
    hashed_refresh_token = Column(String(255), nullable=True)
    reset_token_hash = Column(String(255), nullable=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships - User OWNS these
    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    following = relationship(
        "User",
        secondary=user_follows,
        primaryjoin="User.id == user_follows.c.follower_id",
        secondaryjoin="User.id == user_follows.c.followed_id",
        back_populates="followed_by",
    )
    followed_by = relationship(
        "User",
        secondary=user_follows,
        primaryjoin="User.id == user_follows.c.followed_id",
        secondaryjoin="User.id == user_follows.c.follower_id",
        back_populates="following",
    )
    chats = relationship("Chat", secondary="chat_participants", back_populates="participants")


class Profile(BaseModel):
    __tablename__ = "profiles"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    bio = Column(Text, nullable=False, default="")
    picture = Column(String(500), nullable=False, default="")
    cover = Column(String(500), nullable=False, default="")

    user = relationship("User", back_populates="profile")
