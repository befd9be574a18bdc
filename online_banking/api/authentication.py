"""
Authentication endpoints
"""

from fastapi import APIRouter, Depends, Request, status

from .auth import BankingSystem, get_banking_system, get_current_user, get_current_admin, client_ip
from .schemas import (
    RegisterRequest, LoginRequest, RefreshRequest, ForgotPasswordRequest, ResetPasswordRequest,
)
from ..admin import Admin, sanitize_admin
from ..users import User, sanitize_user


router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    http_request: Request,
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a customer account pending approval"""
    user = system.auth.register(request.model_dump(exclude_none=True), client_ip(http_request))
    return {
        "user": sanitize_user(user),
        "message": "Registration successful. Your account is pending approval."
    }


@router.post("/login")
async def login(
    request: LoginRequest,
    http_request: Request,
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.auth.login(request.email, request.password, client_ip(http_request))
    return {**result, "message": "Login successful"}


@router.post("/admin/login")
async def admin_login(
    request: LoginRequest,
    http_request: Request,
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.auth.admin_login(request.email, request.password, client_ip(http_request))
    return {**result, "message": "Login successful"}


@router.post("/refresh")
async def refresh(request: RefreshRequest, system: BankingSystem = Depends(get_banking_system)):
    return {**system.auth.refresh(request.refresh_token), "message": "Token refreshed"}


@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    http_request: Request,
    system: BankingSystem = Depends(get_banking_system)
):
    """Always succeeds so that registered addresses cannot be probed"""
    system.auth.request_password_reset(
        request.email, client_ip(http_request), http_request.headers.get("user-agent")
    )
    return {"message": "If an account exists with this email, a password reset link has been sent"}


@router.post("/reset-password")
async def reset_password(request: ResetPasswordRequest, system: BankingSystem = Depends(get_banking_system)):
    system.auth.reset_password(request.token, request.password)
    return {"message": "Password reset successful"}


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return {"user": sanitize_user(user)}


@router.get("/admin/me")
async def admin_me(admin: Admin = Depends(get_current_admin)):
    return {"admin": sanitize_admin(admin)}
