"""
Customer investment plan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import SubscribeRequest, page_response, serialize
from ..plans import UserPlanStatus
from ..users import User


router = APIRouter()


@router.get("")
async def list_plans(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    return {"plans": serialize(system.plans.get_active_plans())}


@router.get("/mine")
async def my_plans(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.plans.get_user_plans(user.id, page, limit, UserPlanStatus(status) if status else None)
    return page_response(result, "user_plans")


@router.post("/subscribe", status_code=status.HTTP_201_CREATED)
async def subscribe(
    request: SubscribeRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    user_plan = system.plans.subscribe(user.id, request.plan_id, request.amount)
    return {"user_plan": serialize(user_plan), "message": "Investment successful"}


@router.post("/{user_plan_id}/cancel")
async def cancel(
    user_plan_id: str,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    user_plan = system.plans.cancel(user_plan_id, user.id)
    return {"user_plan": serialize(user_plan), "message": "Investment cancelled and refunded"}
