"""
API v1 Router
"""

from fastapi import APIRouter

from . import (
    auth,
    billing,
    chat,
    communities,
    dashboard,
    notifications,
    plans,
    subscriptions,
    users,
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth")
router.include_router(billing.router, prefix="/billing")
router.include_router(notifications.router, prefix="/notifications")
router.include_router(users.router, prefix="/users")
router.include_router(communities.router, prefix="/communities")
router.include_router(dashboard.router, prefix="/dashboard")
router.include_router(chat.router, prefix="/chat")
router.include_router(plans.router, prefix="/plans")
router.include_router(subscriptions.router, prefix="/subscriptions")


@router.get("/", tags=["API"])
async def api_root():
    """Version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth",
            "/billing/stripe-webhooks",
            "/notifications",
            "/users/{userId}",
            "/communities/{communityId}",
            "/dashboard",
            "/chat/channels",
            "/plans",
            "/subscriptions",
        ],
    }
