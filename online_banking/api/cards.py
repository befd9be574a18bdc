"""
Customer card endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import CardApplicationRequest, CardPinRequest, page_response
from ..cards import CardStatus, CardType, sanitize_card
from ..users import User


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def apply_card(
    request: CardApplicationRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    card = system.cards.apply_card(
        user.id, CardType(request.card_type), request.cardholder_name,
        request.billing_address, request.card_design
    )
    return {"card": sanitize_card(card), "message": "Card application submitted successfully"}


@router.get("")
async def list_cards(
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    cards = system.cards.get_user_cards(user.id, CardStatus(status) if status else None)
    return {"cards": [sanitize_card(c) for c in cards]}


@router.put("/{card_id}/pin")
async def set_card_pin(
    card_id: str,
    request: CardPinRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    system.cards.set_card_pin(card_id, user.id, request.pin)
    return {"message": "Card PIN set successfully"}


@router.post("/{card_id}/activate")
async def activate_card(
    card_id: str,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    card = system.cards.activate_card(card_id, user.id)
    return {"card": sanitize_card(card), "message": "Card activated"}


@router.post("/{card_id}/block")
async def block_card(
    card_id: str,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    card = system.cards.block_card(card_id, user.id)
    return {"card": sanitize_card(card), "message": "Card blocked"}


@router.get("/{card_id}/transactions")
async def card_transactions(
    card_id: str,
    page: int = 1,
    limit: int = 10,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return page_response(system.cards.get_card_transactions(card_id, user.id, page, limit), "transactions")
