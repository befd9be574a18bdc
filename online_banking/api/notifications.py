"""
Customer notification endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import serialize
from ..users import User


router = APIRouter()


@router.get("")
async def list_notifications(
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.notifications.list_for_user(user.id, page, limit, unread_only)
    return {
        "notifications": serialize(result['items']),
        "pagination": result['pagination'],
        "unread_count": result['unread_count'],
    }


@router.put("/read-all")
async def mark_all_read(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    count = system.notifications.mark_all_as_read(user.id)
    return {"count": count, "message": "All notifications marked as read"}


@router.delete("/read")
async def delete_read(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    count = system.notifications.delete_all_read(user.id)
    return {"count": count, "message": "Read notifications deleted"}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    notification = system.notifications.mark_as_read(notification_id, user.id)
    return {"notification": serialize(notification), "message": "Notification marked as read"}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    system.notifications.delete(notification_id, user.id)
    return {"message": "Notification deleted"}
