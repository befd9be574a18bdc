"""
Customer profile endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import (
    UpdateProfileRequest, ProfilePhotoRequest, ChangePasswordRequest, ChangePinRequest,
    UpdateSettingsRequest, page_response,
)
from ..users import User, sanitize_user


router = APIRouter()


@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return {"user": sanitize_user(user)}


@router.put("/profile")
async def update_profile(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    updated = system.users.update_profile(user.id, request.model_dump(exclude_none=True))
    return {"user": sanitize_user(updated), "message": "Profile updated successfully"}


@router.put("/profile/photo")
async def update_profile_photo(
    request: ProfilePhotoRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    updated = system.users.update_profile_photo(user.id, request.photo_url)
    return {"user": sanitize_user(updated), "message": "Profile photo updated"}


@router.put("/password")
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    system.auth.change_password(user.id, request.current_password, request.new_password)
    return {"message": "Password changed successfully"}


@router.put("/pin")
async def change_pin(
    request: ChangePinRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    system.users.change_pin(user.id, request.current_pin, request.new_pin)
    return {"message": "PIN updated successfully"}


@router.put("/settings")
async def update_settings(
    request: UpdateSettingsRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    updated = system.users.update_settings(
        user.id, request.email_notifications, request.sms_notifications, request.theme
    )
    return {"user": sanitize_user(updated), "message": "Settings updated"}


@router.post("/verify-email")
async def verify_email(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    updated = system.auth.verify_email(user.id)
    return {"user": sanitize_user(updated), "message": "Email verified"}


@router.get("/dashboard")
async def get_dashboard(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    return system.users.get_dashboard_data(user.id)


@router.get("/activity")
async def get_activity(
    page: int = 1,
    limit: int = 20,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return page_response(system.activity.get_user_activities(user.id, page, limit), "activities")
