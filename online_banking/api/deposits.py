"""
Customer deposit endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import DepositRequest, page_response, serialize
from ..deposits import DepositStatus
from ..users import User


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_deposit(
    request: DepositRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    deposit = system.deposits.create_deposit(
        user.id, request.amount, request.payment_method_id, request.proof_image
    )
    return {"deposit": serialize(deposit), "message": "Deposit request submitted successfully"}


@router.get("")
async def list_deposits(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.deposits.get_user_deposits(
        user.id, page, limit, DepositStatus(status) if status else None
    )
    return page_response(result, "deposits")
