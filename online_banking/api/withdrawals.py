"""
Customer withdrawal endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import WithdrawalRequest, page_response, serialize
from ..withdrawals import WithdrawalStatus
from ..users import User


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_withdrawal(
    request: WithdrawalRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    withdrawal = system.withdrawals.create_withdrawal(
        user.id, request.amount, request.payment_method_id, request.payment_details
    )
    return {"withdrawal": serialize(withdrawal), "message": "Withdrawal request submitted successfully"}


@router.get("")
async def list_withdrawals(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.withdrawals.get_user_withdrawals(
        user.id, page, limit, WithdrawalStatus(status) if status else None
    )
    return page_response(result, "withdrawals")
