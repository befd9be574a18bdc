"""
Back-office endpoints: dashboard, customers, staff, activity, IP blocks and broadcasts
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, get_banking_system, get_current_admin, require_super_admin
from .schemas import (
    AdminCreateUserRequest, BalanceAdjustmentRequest, AuthCodesRequest, LimitsRequest,
    CreateAdminRequest, UpdateAdminRequest, AdminPasswordRequest, BlockIpRequest,
    EmailBroadcastRequest, NotificationBroadcastRequest, ChangePasswordRequest,
    page_response, serialize,
)
from ..activity import ActorType
from ..admin import Admin, AdminRole, AdminStatus, sanitize_admin
from ..notifications import NotificationType
from ..users import BalanceType, KycStatus, UserStatus, sanitize_user


router = APIRouter()


# Dashboard

@router.get("/dashboard")
async def dashboard(admin: Admin = Depends(get_current_admin), system: BankingSystem = Depends(get_banking_system)):
    return {
        "stats": serialize(system.admins.get_dashboard_stats()),
        "recent_activities": system.admins.get_recent_activities(10),
    }


@router.get("/activities")
async def activities(
    page: int = 1,
    limit: int = 20,
    actor_type: Optional[str] = None,
    action: Optional[str] = None,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.activity.list(page, limit, ActorType(actor_type) if actor_type else None, action)
    return page_response(result, "activities")


@router.get("/activities/verify")
async def verify_activities(admin: Admin = Depends(get_current_admin),
                            system: BankingSystem = Depends(get_banking_system)):
    return system.activity.verify_integrity()


# Customers

@router.get("/users")
async def list_users(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    kyc_status: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.users.get_all(
        page, limit, search,
        UserStatus(status) if status else None,
        KycStatus(kyc_status) if kyc_status else None,
        sort_by, sort_order,
    )
    return {"users": result['items'], "pagination": result['pagination']}


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: AdminCreateUserRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    user = system.users.create_user_by_admin(request.model_dump(exclude_none=True), admin.id)
    return {"user": sanitize_user(user), "message": "User created successfully"}


@router.get("/users/{user_id}")
async def get_user(user_id: str, admin: Admin = Depends(get_current_admin),
                   system: BankingSystem = Depends(get_banking_system)):
    user = system.users.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    data = sanitize_user(user)
    # Back office sees the authorization codes
    data.update({"tax_code": user.tax_code, "imf_code": user.imf_code, "cot_code": user.cot_code})
    return {
        "user": data,
        "recent_transactions": serialize(system.transactions.get_recent(user.id, 10)),
    }


@router.get("/users/{user_id}/login-activity")
async def login_activity(user_id: str, admin: Admin = Depends(get_current_admin),
                         system: BankingSystem = Depends(get_banking_system)):
    user = system.users.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {
        "activities": serialize(system.activity.get_login_activity(user.id)),
        "user": {"id": user.id, "name": user.name, "email": user.email},
    }


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    data: Dict[str, Any],
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    user = system.users.admin_update_user(user_id, data, admin.id)
    return {"user": sanitize_user(user), "message": "User updated successfully"}


@router.post("/users/{user_id}/approve")
async def approve_user(user_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    user = system.users.approve_account(user_id, admin.id)
    return {"user": sanitize_user(user), "message": "Account approved"}


@router.post("/users/{user_id}/topup")
async def topup_user(
    user_id: str,
    request: BalanceAdjustmentRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    user = system.users.topup_balance(user_id, request.amount, BalanceType(request.type),
                                      request.description, admin.id)
    return {"user": sanitize_user(user), "message": "Balance credited successfully"}


@router.post("/users/{user_id}/deduct")
async def deduct_user(
    user_id: str,
    request: BalanceAdjustmentRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    user = system.users.deduct_balance(user_id, request.amount, BalanceType(request.type),
                                       request.description, admin.id)
    return {"user": sanitize_user(user), "message": "Balance debited successfully"}


@router.post("/users/{user_id}/block")
async def block_user(user_id: str, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    return {"user": sanitize_user(system.users.block_user(user_id, admin.id)), "message": "User blocked"}


@router.post("/users/{user_id}/unblock")
async def unblock_user(user_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"user": sanitize_user(system.users.unblock_user(user_id, admin.id)), "message": "User unblocked"}


@router.post("/users/{user_id}/dormant")
async def dormant_user(user_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"user": sanitize_user(system.users.set_dormant(user_id, admin.id)), "message": "User set to dormant"}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    system.users.delete_user(user_id, admin.id)
    return {"message": "User deleted successfully"}


@router.put("/users/{user_id}/codes")
async def update_codes(
    user_id: str,
    request: AuthCodesRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    system.users.update_auth_codes(user_id, admin.id, request.tax_code, request.imf_code, request.cot_code)
    return {"message": "Authorization codes updated"}


@router.put("/users/{user_id}/limits")
async def update_limits(
    user_id: str,
    request: LimitsRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    user = system.users.update_limits(user_id, admin.id, request.daily_transfer_limit,
                                      request.daily_withdrawal_limit)
    return {"user": sanitize_user(user), "message": "Limits updated"}


# Staff

@router.get("/admins")
async def list_admins(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.admins.get_all(
        page, limit, search,
        AdminRole(role) if role else None,
        AdminStatus(status) if status else None,
    )
    return {"admins": result['items'], "pagination": result['pagination']}


@router.post("/admins", status_code=status.HTTP_201_CREATED)
async def create_admin(
    request: CreateAdminRequest,
    admin: Admin = Depends(require_super_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    created = system.admins.create_admin(request.email, request.password, request.name,
                                         AdminRole(request.role), request.permissions, admin.id)
    return {"admin": sanitize_admin(created), "message": "Admin created successfully"}


@router.put("/admins/{admin_id}")
async def update_admin(
    admin_id: str,
    request: UpdateAdminRequest,
    admin: Admin = Depends(require_super_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    updated = system.admins.update_admin(admin_id, request.model_dump(exclude_none=True), admin.id)
    return {"admin": sanitize_admin(updated), "message": "Admin updated successfully"}


@router.delete("/admins/{admin_id}")
async def delete_admin(admin_id: str, admin: Admin = Depends(require_super_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    system.admins.delete_admin(admin_id, admin.id)
    return {"message": "Admin deleted successfully"}


@router.post("/admins/{admin_id}/block")
async def block_admin(admin_id: str, admin: Admin = Depends(require_super_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    return {"admin": sanitize_admin(system.admins.block_admin(admin_id, admin.id)), "message": "Admin blocked"}


@router.post("/admins/{admin_id}/unblock")
async def unblock_admin(admin_id: str, admin: Admin = Depends(require_super_admin),
                        system: BankingSystem = Depends(get_banking_system)):
    return {"admin": sanitize_admin(system.admins.unblock_admin(admin_id, admin.id)), "message": "Admin unblocked"}


@router.post("/admins/{admin_id}/reset-password")
async def reset_admin_password(
    admin_id: str,
    request: AdminPasswordRequest,
    admin: Admin = Depends(require_super_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    system.admins.reset_admin_password(admin_id, request.password, admin.id)
    return {"message": "Password reset successfully"}


@router.put("/password")
async def change_own_password(
    request: ChangePasswordRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    system.auth.change_admin_password(admin.id, request.current_password, request.new_password)
    return {"message": "Password changed successfully"}


# IP blocks

@router.get("/blocked-ips")
async def blocked_ips(page: int = 1, limit: int = 20, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    return page_response(system.ip_blocks.get_all_blocked(page, limit), "blocked_ips")


@router.post("/blocked-ips", status_code=status.HTTP_201_CREATED)
async def block_ip(
    request: BlockIpRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    entry = system.ip_blocks.block_ip(request.ip_address, admin.id, request.reason, request.expires_at)
    return {"blocked_ip": serialize(entry), "message": "IP address blocked"}


@router.delete("/blocked-ips/{blocked_ip_id}")
async def unblock_ip(blocked_ip_id: str, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    system.ip_blocks.unblock_by_id(blocked_ip_id, admin.id)
    return {"message": "IP address unblocked"}


# Broadcasts

@router.post("/email")
async def send_email(
    request: EmailBroadcastRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    """Email one customer, a list of customers or every active customer"""
    if request.type == "single":
        if request.user_id:
            sent = system.admins.send_to_user(request.user_id, request.subject, request.message, admin.id)
        elif request.email:
            sent = system.admins.send_to_email(request.email, request.subject, request.message, admin.id)
        else:
            raise ValueError("Recipient email or user id is required")
        result = {"sentCount": int(sent), "failedCount": int(not sent)}
    elif request.type == "multiple":
        if not request.user_ids:
            raise ValueError("At least one recipient is required")
        result = system.admins.send_to_users(request.user_ids, request.subject, request.message, admin.id)
    elif request.type == "all":
        result = system.admins.send_to_all_users(request.subject, request.message, admin.id)
    else:
        raise ValueError("Type must be single, multiple or all")
    return {**result, "message": f"Email sent to {result['sentCount']} recipient(s)"}


@router.post("/notifications")
async def send_notification(
    request: NotificationBroadcastRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    count = system.admins.broadcast_notification(
        request.title, request.message, admin.id, NotificationType(request.type), request.user_ids
    )
    return {"count": count, "message": f"Notification sent to {count} user(s)"}
