"""
Notification endpoints
"""

from fastapi import APIRouter, Depends, Query

from fleetsync.api.deps import get_console
from fleetsync.console import FleetConsole
from fleetsync.schemas.api import NotificationListResponse

router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
async def get_notifications(
    limit: int = Query(50, ge=1, le=1000),
    console: FleetConsole = Depends(get_console)
):
    """Most recent notifications, newest last"""
    notifications = console.notifications.recent(limit)
    return NotificationListResponse(notifications=notifications, total=len(console.notifications))


@router.delete("/notifications")
async def clear_notifications(console: FleetConsole = Depends(get_console)):
    console.notifications.clear()
    return {"message": "Notifications cleared"}
