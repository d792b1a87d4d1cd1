from app.repositories.base import BaseRepository
from app.repositories.user_repo import UserRepository
from app.repositories.chat_repo import ChatRepository
from app.repositories.message_repo import MessageRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ChatRepository",
    "MessageRepository",
]
