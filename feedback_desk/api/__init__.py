"""API routes for Feedback Desk."""

from fastapi import APIRouter

from .admin import router as admin_router
from .feedback import router as feedback_router
from .forms import router as forms_router
from .notifications import router as notifications_router
from .user import router as user_router

# Main API router
api_router = APIRouter()

# Ticket lifecycle endpoints
api_router.include_router(feedback_router)
api_router.include_router(forms_router)

# User routes (/me, /me/notifications)
api_router.include_router(user_router)
api_router.include_router(notifications_router)

# Admin-only routes
api_router.include_router(admin_router)

__all__ = ["api_router"]
