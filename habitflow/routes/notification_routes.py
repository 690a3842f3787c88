from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import Optional

from habitflow.auth import get_current_user
from habitflow.services.notification_service import NOTIFICATION_TYPES, notification_queue


router = APIRouter(prefix="/api/notifications", tags=["Notifications"])
reminders_router = APIRouter(prefix="/api/reminders", tags=["Notifications"])


class SendNotificationRequest(BaseModel):
    type: str = "notification"
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    action_url: Optional[str] = None
    habit_id: Optional[int] = None


class ScheduleReminderRequest(BaseModel):
    habit_id: Optional[int] = None
    time: Optional[str] = None
    message: Optional[str] = Field(default=None, max_length=1000)


@router.get("")
async def list_notifications(user_id: int = Depends(get_current_user)):
    """All notifications for the user, newest first, with the unread count."""
    notes = notification_queue.list_all(user_id)
    return {
        "status": "success",
        "data": {
            "notifications": [n.to_dict() for n in notes],
            "unread_count": sum(1 for n in notes if not n.read),
        },
    }


@router.post("/mark-all-read")
async def mark_all_read(user_id: int = Depends(get_current_user)):
    changed = notification_queue.mark_all_read(user_id)
    return {"status": "success", "data": {"updated": changed}}


@router.post("/send")
async def send_notification(body: SendNotificationRequest, user_id: int = Depends(get_current_user)):
    if body.type not in NOTIFICATION_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown notification type: {body.type}")
    notification = notification_queue.append(
        user_id, body.type, body.title, body.message, habit_id=body.habit_id, action_url=body.action_url
    )
    return {"status": "success", "data": notification.to_dict()}


@router.post("/{notification_id}/read")
async def mark_as_read(notification_id: str, user_id: int = Depends(get_current_user)):
    """Mark a notification as read."""
    if not notification_queue.mark_read(user_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"status": "success"}


@reminders_router.post("/schedule")
async def schedule_reminder(body: ScheduleReminderRequest, user_id: int = Depends(get_current_user)):
    """Queue a reminder notification right away; ``time`` is informational for the client."""
    notification = notification_queue.append(
        user_id,
        "reminder",
        "Habit Reminder",
        body.message or "Time to check your habits!",
        habit_id=body.habit_id,
    )
    return {"status": "success", "data": notification.to_dict()}
