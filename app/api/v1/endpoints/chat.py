"""
Chat Endpoints

HTTP and WebSocket API for direct chats.

Endpoints:
----------
- GET    /chat/all                              - Inbox with message previews
- POST   /chat                                  - Create a chat between two users
- POST   /chat/message                          - Post a message (no broadcast)
- POST   /chat/messages                         - Bulk import messages
- DELETE /chat/message/{message_id}             - Delete own message
- GET    /chat/following-to-chat                - Followed users without a chat
- POST   /chat/load                             - One page of history
- GET    /chat/new-messages-count/{chat_name}   - Unread count
- PUT    /chat/update-new-messages              - Mark chat as read
- WS     /chat/ws?token=<access_token>          - Real-time rooms
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from app.api.deps import (
    get_chat_service,
    get_current_user,
    get_current_user_ws,
    require_message_author,
)
from app.db.database import get_session_factory
from app.models.user import User
from app.schemas.auth import ErrorResponse
from app.schemas.chat import (
    BulkInsertResponse,
    ChatCreate,
    ChatNameRequest,
    ChatResponse,
    ChatWithMessages,
    LoadMessagesRequest,
    MessageCreate,
    MessageListItem,
    MessageResponse,
    NewMessagesCount,
    RealtimeEnvelope,
    UserSummary,
)
from app.services.chat_service import ChatService
from app.services.websocket_manager import (
    EventTypes,
    RealtimeEvent,
    get_connection_manager,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


# ============================================================
# CHATS
# ============================================================

@router.get(
    "/all",
    response_model=List[ChatWithMessages],
    summary="List the user's chats",
)
async def get_chats(
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """
    Chats ordered by latest activity, each with the 15 newest messages,
    the total message count and the other participant.
    """
    return await service.get_chats(current_user.id)


@router.post(
    "",
    response_model=ChatResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Chat already exists"},
        403: {"model": ErrorResponse, "description": "Caller is not a participant"},
    }
)
async def create_chat(
    data: ChatCreate,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.create_chat(current_user.id, data.name, data.user_ids)


@router.get(
    "/following-to-chat",
    response_model=List[UserSummary],
)
async def following_to_chat(
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Followed users the caller has no chat with yet."""
    return await service.following_to_chat(current_user.id)


# ============================================================
# MESSAGES
# ============================================================

@router.post(
    "/message",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """
    Store a message.

    Connected clients are not notified; use the WebSocket for live delivery.
    """
    return await service.post_message(current_user.id, data)


@router.post(
    "/messages",
    response_model=BulkInsertResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_messages(
    data: List[MessageListItem],
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    count = await service.add_messages(current_user.id, data)
    return BulkInsertResponse(count=count)


@router.delete(
    "/message/{message_id}",
    response_model=MessageResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not the author"},
        404: {"model": ErrorResponse, "description": "Message not found"},
    }
)
async def delete_message(
    message_id: UUID = Depends(require_message_author),
    service: ChatService = Depends(get_chat_service),
):
    return await service.delete_message(message_id)


@router.post(
    "/load",
    response_model=List[MessageResponse],
)
async def load_messages(
    data: LoadMessagesRequest,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Page of history, newest first. `page` starts at 1; `perPage` is at most 30."""
    return await service.load_messages(current_user.id, data.chat_name, data.page, data.per_page)


# ============================================================
# UNREAD
# ============================================================

@router.get(
    "/new-messages-count/{chat_name}",
    response_model=NewMessagesCount,
)
async def new_messages_count(
    chat_name: str,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.count_new_messages(current_user.id, chat_name)


@router.put(
    "/update-new-messages",
    response_model=NewMessagesCount,
)
async def update_new_messages(
    data: ChatNameRequest,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.update_new_messages(current_user.id, data.chat_name)


# ============================================================
# WEBSOCKET
# ============================================================

@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    session_factory=Depends(get_session_factory),
):
    """
    Real-time chat.

    Client frames: {"event": "event_join" | "event_leave" | "event_message", "data": ...}
    Server frames: {"event": "new_message", "room": <chat name>, "data": <message>, "timestamp": ...}

    Each frame is handled in its own short database session.
    """
    user = await get_current_user_ws(token, session_factory)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = get_connection_manager()
    await manager.connect(websocket, str(user.id))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                envelope = RealtimeEnvelope.model_validate_json(raw)
            except ValidationError:
                await manager.send_to_socket(websocket, RealtimeEvent(
                    event=EventTypes.ERROR,
                    room="",
                    data={"detail": "Malformed frame"},
                ))
                continue

            async with session_factory() as db:
                service = ChatService(db, manager)
                await service.handle_frame(websocket, user.id, envelope)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
