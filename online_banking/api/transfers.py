"""
Customer transfer endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import (
    TransferRequest, VerifyTransferRequest, VerifyCodeRequest, SendOtpRequest,
    BitcoinTransferRequest, page_response, serialize,
)
from ..passwords import InvalidPinError
from ..transfers import TransferType, TransferStatus
from ..users import User


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transfer(
    request: TransferRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Create an internal, local or international transfer after checking the PIN"""
    if not system.users.verify_pin(user.id, request.pin):
        raise InvalidPinError()

    transfer_type = TransferType(request.type)
    if transfer_type == TransferType.INTERNAL:
        if not request.recipient_account_number:
            raise ValueError("Recipient account number is required")
        transfer = system.transfers.create_internal_transfer(
            user.id, request.recipient_account_number, request.amount, request.description
        )
        message = "Transfer completed successfully"
    else:
        transfer = system.transfers.create_external_transfer(
            user.id, transfer_type, request.recipient_details, request.amount, request.description
        )
        message = "Transfer initiated successfully"
    return {"transfer": serialize(transfer), "message": message}


@router.get("")
async def list_transfers(
    page: int = 1,
    limit: int = 10,
    type: Optional[str] = None,
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.transfers.get_user_transfers(
        user.id, page, limit,
        TransferType(type) if type else None,
        TransferStatus(status) if status else None,
    )
    return page_response(result, "transfers")


@router.post("/verify")
async def verify_transfer(
    request: VerifyTransferRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Release a pending international transfer with its IMF/COT codes"""
    transfer = system.transfers.verify_transfer_codes(
        request.transfer_id, user.id, request.imf_code, request.cot_code
    )
    return {"transfer": serialize(transfer), "message": "Transfer verified successfully"}


@router.post("/verify-code")
async def verify_code(
    request: VerifyCodeRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return system.transfers.verify_step(user.id, request.step, request.code)


@router.post("/send-otp")
def send_otp(
    request: SendOtpRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return system.transfers.send_transfer_otp(user.id, request.amount, request.recipient_name)


@router.post("/bitcoin", status_code=status.HTTP_201_CREATED)
def bitcoin_transfer(
    request: BitcoinTransferRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    transfer = system.transfers.create_bitcoin_transfer(
        user.id, request.amount, request.recipient_address, request.pin
    )
    return {"transfer": serialize(transfer), "message": "Bitcoin transfer initiated successfully"}
