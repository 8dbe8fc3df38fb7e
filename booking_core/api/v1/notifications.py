from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from booking_core.api.dependencies import get_notification_service
from booking_core.schemas import NotificationData
from booking_core.services.notification import NotificationService

router = APIRouter()


@router.get("/notifications/admin", response_model=List[NotificationData])
def admin_notifications(
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.get_admin_notifications()


@router.post("/notifications/admin/read-all")
def mark_admin_notifications_read(
    notifications: NotificationService = Depends(get_notification_service),
):
    return {"marked": notifications.mark_all_as_read()}


@router.get("/notifications/users/{user_id}", response_model=List[NotificationData])
def user_notifications(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.get_user_notifications(user_id)


@router.post("/notifications/users/{user_id}/read-all")
def mark_user_notifications_read(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
):
    return {"marked": notifications.mark_all_as_read(user_id)}


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    user_id: Optional[str] = None,
    notifications: NotificationService = Depends(get_notification_service),
):
    if not notifications.mark_as_read(notification_id, user_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"read": notification_id}
