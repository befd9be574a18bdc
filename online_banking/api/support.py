"""
Customer support ticket endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import TicketRequest, page_response, serialize
from ..users import User


router = APIRouter()


@router.get("")
async def my_tickets(
    page: int = 1,
    limit: int = 10,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return page_response(system.support.get_user_tickets(user.id, page, limit), "tickets")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: TicketRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    ticket = system.support.create_ticket(user.id, request.subject, request.message, request.priority)
    return {"ticket": serialize(ticket), "message": "Support ticket submitted successfully"}
