"""
Customer loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import LoanApplicationRequest
from ..loans import LoanStatus
from ..users import User


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def apply_loan(
    request: LoanApplicationRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    loan = system.loans.apply_loan(user.id, request.amount, request.duration_months, request.purpose)
    return {"loan": loan.to_response(), "message": "Loan application submitted successfully"}


@router.get("")
async def list_loans(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.loans.get_user_loans(user.id, page, limit, LoanStatus(status) if status else None)
    return {"loans": [loan.to_response() for loan in result['items']], "pagination": result['pagination']}
