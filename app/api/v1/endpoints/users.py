"""
User Endpoints

Endpoints:
----------
- GET    /users/current-user          - Authenticated user's summary
- POST   /users/{user_id}/follow      - Follow a user
- POST   /users/{user_id}/unfollow    - Unfollow a user
- GET    /users/{user_id}/is-following - Does the caller follow user_id
- GET    /users/{user_id}/following   - Users followed by user_id
- DELETE /users/{user_id}             - Delete own account
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, get_user_service, require_account_owner
from app.core.rate_limit import RateLimiter
from app.models.user import User
from app.schemas.auth import ErrorResponse, MessageResponse
from app.schemas.chat import UserSummary
from app.schemas.user import CurrentUserResponse, DeleteAccountRequest, FollowStatus
from app.services.user_service import UserService

router = APIRouter(tags=["Users"])


@router.get(
    "/current-user",
    response_model=CurrentUserResponse,
    dependencies=[Depends(RateLimiter("current-user", 20, 60))],
)
async def current_user_info(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return await service.get_current_user_info(current_user.id)


# ============================================================
# Follow graph
# ============================================================

@router.post("/{user_id}/follow", response_model=FollowStatus)
async def follow(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return FollowStatus(following=await service.follow(current_user.id, user_id))


@router.post("/{user_id}/unfollow", response_model=FollowStatus)
async def unfollow(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return FollowStatus(following=await service.unfollow(current_user.id, user_id))


@router.get("/{user_id}/is-following", response_model=FollowStatus)
async def is_following(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return FollowStatus(following=await service.is_following(current_user.id, user_id))


@router.get("/{user_id}/following", response_model=List[UserSummary])
async def following(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return await service.get_following(user_id)


# ============================================================
# Account
# ============================================================

@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Wrong password or not the owner"},
    }
)
async def delete_account(
    data: DeleteAccountRequest,
    owner: User = Depends(require_account_owner),
    service: UserService = Depends(get_user_service),
):
    """
    Permanently delete the caller's account, follow edges, chat
    memberships and authored messages.
    """
    await service.delete_account(owner.id, data.password)
    return MessageResponse(message="Account deleted")
