"""
Customer trading signal endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import SignalSubscribeRequest, page_response, serialize
from ..users import User


router = APIRouter()


@router.get("")
async def my_subscriptions(
    active_only: bool = False,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return {"subscriptions": serialize(system.signals.get_user_subscriptions(user.id, active_only))}


@router.get("/providers")
async def providers(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    return {"providers": serialize(system.signals.get_active_providers())}


@router.get("/providers/{provider_id}/signals")
async def provider_signals(
    provider_id: str,
    page: int = 1,
    limit: int = 10,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.signals.get_signals_for_subscriber(user.id, provider_id, page, limit)
    return page_response(result, "signals")


@router.post("/subscribe", status_code=status.HTTP_201_CREATED)
async def subscribe(
    request: SignalSubscribeRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    subscription = system.signals.subscribe(user.id, request.provider_id, request.duration_days)
    return {"subscription": serialize(subscription), "message": "Successfully subscribed to signal provider"}
