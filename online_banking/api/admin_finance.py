"""
Back-office money endpoints: deposits, withdrawals, transfers, payment methods,
cards, loans, crypto assets, investment plans and exports
"""

from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, status
from fastapi.responses import Response

from .auth import BankingSystem, get_banking_system, get_current_admin
from .schemas import (
    ReviewRequest, RejectRequest, CardAmountRequest, LoanPaymentRequest, CryptoAssetRequest,
    CryptoPriceRequest, PlanRequest, page_response, serialize,
)
from ..admin import Admin
from ..cards import CardStatus, sanitize_card
from ..deposits import DepositStatus
from ..loans import LoanStatus
from ..plans import PlanStatus, UserPlanStatus
from ..transfers import TransferStatus, TransferType
from ..withdrawals import WithdrawalStatus


router = APIRouter()


def _csv(content: str, name: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={name}-{datetime.now():%Y-%m-%d}.csv"}
    )


# Deposits

@router.get("/deposits")
async def list_deposits(page: int = 1, limit: int = 20, status: Optional[str] = None,
                        admin: Admin = Depends(get_current_admin),
                        system: BankingSystem = Depends(get_banking_system)):
    result = system.deposits.get_all(page, limit, DepositStatus(status) if status else None)
    return page_response(result, "deposits")


@router.put("/deposits/{deposit_id}")
async def process_deposit(
    deposit_id: str,
    request: ReviewRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    deposit = system.deposits.process_deposit(deposit_id, DepositStatus(request.status), admin.id,
                                              request.admin_note)
    return {"deposit": serialize(deposit), "message": f"Deposit {deposit.status.value}"}


# Withdrawals

@router.get("/withdrawals")
async def list_withdrawals(page: int = 1, limit: int = 20, status: Optional[str] = None,
                           admin: Admin = Depends(get_current_admin),
                           system: BankingSystem = Depends(get_banking_system)):
    result = system.withdrawals.get_all(page, limit, WithdrawalStatus(status) if status else None)
    return page_response(result, "withdrawals")


@router.put("/withdrawals/{withdrawal_id}")
async def process_withdrawal(
    withdrawal_id: str,
    request: ReviewRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    withdrawal = system.withdrawals.process_withdrawal(withdrawal_id, WithdrawalStatus(request.status),
                                                       admin.id, request.admin_note)
    return {"withdrawal": serialize(withdrawal), "message": f"Withdrawal {withdrawal.status.value}"}


# Transfers

@router.get("/transfers")
async def list_transfers(page: int = 1, limit: int = 20, type: Optional[str] = None,
                         status: Optional[str] = None, admin: Admin = Depends(get_current_admin),
                         system: BankingSystem = Depends(get_banking_system)):
    result = system.transfers.get_all(
        page, limit, TransferType(type) if type else None, TransferStatus(status) if status else None
    )
    return page_response(result, "transfers")


@router.put("/transfers/{transfer_id}")
async def process_transfer(
    transfer_id: str,
    request: ReviewRequest,
    admin: Admin = Depends(get_current_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    transfer = system.transfers.process_transfer(transfer_id, TransferStatus(request.status), admin.id,
                                                 request.admin_note)
    return {"transfer": serialize(transfer), "message": f"Transfer {transfer.status.value}"}


# Payment methods

@router.get("/payment-methods")
async def list_payment_methods(admin: Admin = Depends(get_current_admin),
                               system: BankingSystem = Depends(get_banking_system)):
    return {"payment_methods": serialize(system.payment_methods.list_all())}


@router.post("/payment-methods", status_code=status.HTTP_201_CREATED)
async def create_payment_method(data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                                system: BankingSystem = Depends(get_banking_system)):
    method = system.payment_methods.create(data, admin.id)
    return {"payment_method": serialize(method), "message": "Payment method created"}


@router.put("/payment-methods/{method_id}")
async def update_payment_method(method_id: str, data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                                system: BankingSystem = Depends(get_banking_system)):
    method = system.payment_methods.update(method_id, data, admin.id)
    return {"payment_method": serialize(method), "message": "Payment method updated"}


@router.delete("/payment-methods/{method_id}")
async def delete_payment_method(method_id: str, admin: Admin = Depends(get_current_admin),
                                system: BankingSystem = Depends(get_banking_system)):
    system.payment_methods.delete(method_id, admin.id)
    return {"message": "Payment method deleted"}


# Cards

@router.get("/cards")
async def list_cards(page: int = 1, limit: int = 20, status: Optional[str] = None,
                     admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    result = system.cards.get_all(page, limit, CardStatus(status) if status else None)
    return {"cards": [sanitize_card(c) for c in result['items']], "pagination": result['pagination']}


@router.post("/cards/{card_id}/approve")
async def approve_card(card_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"card": sanitize_card(system.cards.approve_card(card_id, admin.id)), "message": "Card approved"}


@router.post("/cards/{card_id}/reject")
async def reject_card(card_id: str, request: RejectRequest, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    system.cards.reject_card(card_id, admin.id, request.reason)
    return {"message": "Card application rejected"}


@router.post("/cards/{card_id}/topup")
async def topup_card(card_id: str, request: CardAmountRequest, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    card = system.cards.topup_card(card_id, request.amount, admin.id)
    return {"card": sanitize_card(card), "message": "Card topped up"}


@router.post("/cards/{card_id}/deduct")
async def deduct_card(card_id: str, request: CardAmountRequest, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    card = system.cards.deduct_card(card_id, request.amount, admin.id, request.description)
    return {"card": sanitize_card(card), "message": "Card debited"}


@router.post("/cards/{card_id}/block")
async def block_card(card_id: str, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    return {"card": sanitize_card(system.cards.admin_block_card(card_id, admin.id)), "message": "Card blocked"}


@router.post("/cards/{card_id}/unblock")
async def unblock_card(card_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"card": sanitize_card(system.cards.admin_unblock_card(card_id, admin.id)), "message": "Card unblocked"}


# Loans

@router.get("/loans")
async def list_loans(page: int = 1, limit: int = 20, status: Optional[str] = None,
                     admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    result = system.loans.get_all(page, limit, LoanStatus(status) if status else None)
    return {"loans": [loan.to_response() for loan in result['items']], "pagination": result['pagination']}


@router.post("/loans/{loan_id}/approve")
async def approve_loan(loan_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"loan": system.loans.approve_loan(loan_id, admin.id).to_response(), "message": "Loan approved"}


@router.post("/loans/{loan_id}/reject")
async def reject_loan(loan_id: str, request: RejectRequest, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    loan = system.loans.reject_loan(loan_id, admin.id, request.reason)
    return {"loan": loan.to_response(), "message": "Loan rejected"}


@router.post("/loans/{loan_id}/disburse")
async def disburse_loan(loan_id: str, admin: Admin = Depends(get_current_admin),
                        system: BankingSystem = Depends(get_banking_system)):
    return {"loan": system.loans.disburse_loan(loan_id, admin.id).to_response(), "message": "Loan disbursed"}


@router.post("/loans/{loan_id}/payment")
async def record_loan_payment(loan_id: str, request: LoanPaymentRequest, admin: Admin = Depends(get_current_admin),
                              system: BankingSystem = Depends(get_banking_system)):
    loan = system.loans.record_payment(loan_id, request.amount, admin.id)
    return {"loan": loan.to_response(), "message": "Payment recorded"}


@router.post("/loans/{loan_id}/default")
async def default_loan(loan_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"loan": system.loans.mark_defaulted(loan_id, admin.id).to_response(), "message": "Loan marked as defaulted"}


# Crypto assets

@router.post("/crypto/assets", status_code=status.HTTP_201_CREATED)
async def create_crypto_asset(request: CryptoAssetRequest, admin: Admin = Depends(get_current_admin),
                              system: BankingSystem = Depends(get_banking_system)):
    asset = system.crypto.create_asset(request.symbol, request.name, request.price, request.icon, admin.id)
    return {"asset": serialize(asset), "message": "Asset created"}


@router.put("/crypto/assets/{symbol}/price")
async def update_crypto_price(symbol: str, request: CryptoPriceRequest, admin: Admin = Depends(get_current_admin),
                              system: BankingSystem = Depends(get_banking_system)):
    asset = system.crypto.update_asset_price(symbol, request.price, request.change_24h, admin.id)
    return {"asset": serialize(asset), "message": "Price updated"}


# Investment plans

@router.get("/plans")
async def list_plans(page: int = 1, limit: int = 20, status: Optional[str] = None,
                     admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    return page_response(system.plans.get_all(page, limit, PlanStatus(status) if status else None), "plans")


@router.post("/plans", status_code=status.HTTP_201_CREATED)
async def create_plan(request: PlanRequest, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    plan = system.plans.create_plan(request.model_dump(exclude_none=True), admin.id)
    return {"plan": serialize(plan), "message": "Plan created"}


@router.put("/plans/{plan_id}")
async def update_plan(plan_id: str, request: PlanRequest, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    plan = system.plans.update_plan(plan_id, request.model_dump(exclude_none=True), admin.id)
    return {"plan": serialize(plan), "message": "Plan updated"}


@router.delete("/plans/{plan_id}")
async def delete_plan(plan_id: str, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    system.plans.delete_plan(plan_id, admin.id)
    return {"message": "Plan deleted"}


@router.get("/user-plans")
async def list_user_plans(page: int = 1, limit: int = 20, status: Optional[str] = None,
                          admin: Admin = Depends(get_current_admin),
                          system: BankingSystem = Depends(get_banking_system)):
    result = system.plans.get_all_user_plans(page, limit, UserPlanStatus(status) if status else None)
    return page_response(result, "user_plans")


@router.post("/user-plans/{user_plan_id}/complete")
async def complete_user_plan(user_plan_id: str, admin: Admin = Depends(get_current_admin),
                             system: BankingSystem = Depends(get_banking_system)):
    user_plan = system.plans.complete(user_plan_id, admin.id)
    return {"user_plan": serialize(user_plan), "message": "Investment paid out"}


# Exports

@router.get("/export/deposits")
async def export_deposits(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                          status: Optional[str] = None, user_id: Optional[str] = None,
                          admin: Admin = Depends(get_current_admin),
                          system: BankingSystem = Depends(get_banking_system)):
    content = system.exports.export_deposits(user_id, start_date, end_date,
                                             DepositStatus(status) if status else None, admin.id)
    return _csv(content, "deposits")


@router.get("/export/withdrawals")
async def export_withdrawals(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                             status: Optional[str] = None, user_id: Optional[str] = None,
                             admin: Admin = Depends(get_current_admin),
                             system: BankingSystem = Depends(get_banking_system)):
    content = system.exports.export_withdrawals(user_id, start_date, end_date,
                                                WithdrawalStatus(status) if status else None, admin.id)
    return _csv(content, "withdrawals")


@router.get("/export/transfers")
async def export_transfers(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                           status: Optional[str] = None, user_id: Optional[str] = None,
                           admin: Admin = Depends(get_current_admin),
                           system: BankingSystem = Depends(get_banking_system)):
    content = system.exports.export_transfers(user_id, start_date, end_date,
                                              TransferStatus(status) if status else None, admin.id)
    return _csv(content, "transfers")


@router.get("/export/users/{user_id}")
async def export_user_data(user_id: str, admin: Admin = Depends(get_current_admin),
                           system: BankingSystem = Depends(get_banking_system)):
    system.users.require_user(user_id)
    return system.exports.export_user_data(user_id)
