"""
Customer membership and course endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import MembershipSubscribeRequest, serialize
from ..users import User


router = APIRouter()


@router.get("")
async def my_enrollments(
    active_only: bool = False,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return {"enrollments": serialize(system.memberships.get_user_enrollments(user.id, active_only))}


@router.get("/available")
async def available(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    return {"memberships": serialize(system.memberships.get_active_memberships())}


@router.get("/courses")
async def courses(
    membership_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return {"courses": serialize(system.memberships.get_courses(membership_id))}


@router.get("/courses/{course_id}/access")
async def course_access(course_id: str, user: User = Depends(get_current_user),
                        system: BankingSystem = Depends(get_banking_system)):
    return {"has_access": system.memberships.has_access(user.id, course_id)}


@router.post("/subscribe", status_code=status.HTTP_201_CREATED)
async def subscribe(
    request: MembershipSubscribeRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    enrollment = system.memberships.subscribe(user.id, request.membership_id)
    return {"enrollment": serialize(enrollment), "message": "Successfully subscribed to membership"}
