from fastapi import APIRouter
from app.api.v1.endpoints import auth, chat, users

# ============================================================
# Main API v1 Router
# ============================================================

api_router = APIRouter()

# Include auth routes at /auth
api_router.include_router(
    auth.router,
    prefix="/auth"
)

# Chat routes (REST + WebSocket)
api_router.include_router(
    chat.router,
    prefix="/chat"
)

# Follow graph and account routes
api_router.include_router(
    users.router,
    prefix="/users"
)
