"""
Customer KYC endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import KycSubmitRequest, serialize
from ..kyc import DocumentType
from ..users import User


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_kyc(
    request: KycSubmitRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    record = system.kyc.submit_kyc(
        user.id, DocumentType(request.document_type), request.document_number,
        request.front_image, request.selfie_image, request.back_image
    )
    return {"kyc": serialize(record), "message": "KYC documents submitted successfully"}


@router.get("")
async def kyc_status(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    record = system.kyc.get_user_kyc(user.id)
    return {"kyc_status": user.kyc_status.value, "kyc": serialize(record) if record else None}
