from app.models.base import Base
from app.models.user import User, Profile, AuthProvider, user_follows
from app.models.chat import Chat, ChatReadMarker, chat_participants
from app.models.message import Message

__all__ = [
    "Base",
    "User",
    "Profile",
    "AuthProvider",
    "user_follows",
    "Chat",
    "ChatReadMarker",
    "chat_participants",
    "Message",
]
