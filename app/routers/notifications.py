# =============================================================================
# app/routers/notifications.py - In-App Notifications
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path, Query

from app.dependencies import CurrentUser
from core.services.notification_service import NotificationService

router = APIRouter()


@router.get("")
async def list_notifications(
    user: CurrentUser,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    unread_only: Annotated[bool, Query(description="Only unread notifications")] = False,
):
    """The caller's notifications, newest first."""
    notifications = NotificationService.list_for_user(user.uid, limit=limit, unread_only=unread_only)
    return {
        "notifications": notifications,
        "unread": sum(1 for n in notifications if not n.get("read")),
    }


@router.post("/read-all")
async def mark_all_read(user: CurrentUser):
    updated = NotificationService.mark_all_read(user.uid)
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: Annotated[str, Path(description="Notification ID")],
    user: CurrentUser,
):
    NotificationService.mark_read(user.uid, notification_id)
    return {"success": True}
