"""
Customer transaction history endpoints
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import page_response
from ..transactions import TransactionType, TransactionStatus
from ..users import User


router = APIRouter()


@router.get("")
async def list_transactions(
    page: int = 1,
    limit: int = 10,
    type: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.transactions.get_user_transactions(
        user.id, page, limit,
        type=TransactionType(type) if type else None,
        status=TransactionStatus(status) if status else None,
        start_date=start_date,
        end_date=end_date,
    )
    return page_response(result, "transactions")


@router.get("/export")
async def export_transactions(
    type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Download the customer's transactions as CSV"""
    content = system.exports.export_user_transactions(
        user.id, start_date, end_date, TransactionType(type) if type else None
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=transactions-{datetime.now():%Y-%m-%d}.csv"}
    )
