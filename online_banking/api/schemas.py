"""
Pydantic schemas for API requests and response helpers
"""

from decimal import Decimal
from datetime import datetime
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field

from ..storage import StorageRecord, encode_value


def serialize(value: Any) -> Any:
    """Records and nested containers to JSON-ready values"""
    if isinstance(value, StorageRecord):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return encode_value(value)


def page_response(result: Dict[str, Any], key: str, message: Optional[str] = None) -> Dict[str, Any]:
    response = {key: serialize(result['items']), "pagination": result['pagination']}
    if message:
        response["message"] = message
    return response


# Auth schemas
class RegisterRequest(BaseModel):
    email: str
    password: str
    name: str
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    zip_code: Optional[str] = None
    date_of_birth: Optional[str] = None  # ISO date string
    gender: Optional[str] = None
    occupation: Optional[str] = None
    account_type: Optional[str] = None
    currency: Optional[str] = None
    pin: Optional[str] = None
    referral_code: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


# Profile schemas
class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    zip_code: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None


class ProfilePhotoRequest(BaseModel):
    photo_url: str


class ChangePinRequest(BaseModel):
    current_pin: Optional[str] = None
    new_pin: str


class UpdateSettingsRequest(BaseModel):
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None
    theme: Optional[str] = None


# Money movement schemas
class DepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method_id: str
    proof_image: Optional[str] = None


class WithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method_id: str
    payment_details: Dict[str, Any] = Field(default_factory=dict)


class TransferRequest(BaseModel):
    type: str = Field(..., description="Transfer type (internal, local, international)")
    amount: Decimal = Field(..., gt=0)
    pin: str
    recipient_account_number: Optional[str] = None
    recipient_details: Dict[str, Any] = Field(default_factory=dict)
    description: Optional[str] = None


class VerifyTransferRequest(BaseModel):
    transfer_id: str
    imf_code: Optional[str] = None
    cot_code: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    step: str = Field(..., description="Verification step (imf, cot, otp)")
    code: str


class SendOtpRequest(BaseModel):
    amount: Decimal = Decimal("0")
    recipient_name: Optional[str] = None


class BitcoinTransferRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    recipient_address: str
    pin: str


# Card schemas
class CardApplicationRequest(BaseModel):
    card_type: str = Field(..., description="Card network (visa, mastercard)")
    cardholder_name: str
    billing_address: Dict[str, Any] = Field(default_factory=dict)
    card_design: Optional[str] = None


class CardPinRequest(BaseModel):
    pin: str


class CardAmountRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None


# Loan schemas
class LoanApplicationRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    duration_months: int
    purpose: str = ""


class LoanPaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)


# Crypto schemas
class CryptoBuyRequest(BaseModel):
    asset: str
    amount: Decimal = Field(..., gt=0, description="Fiat amount to spend")


class CryptoSellRequest(BaseModel):
    asset: str
    amount: Decimal = Field(..., gt=0, description="Crypto amount to sell")


class CryptoSwapRequest(BaseModel):
    from_asset: str
    to_asset: str
    amount: Decimal = Field(..., gt=0)


class CryptoAssetRequest(BaseModel):
    symbol: str
    name: str
    price: Decimal = Field(..., gt=0)
    icon: Optional[str] = None


class CryptoPriceRequest(BaseModel):
    price: Decimal = Field(..., gt=0)
    change_24h: Optional[Decimal] = None


# KYC schemas
class KycSubmitRequest(BaseModel):
    document_type: str = Field(..., description="Document type (passport, drivers_license, national_id)")
    document_number: str
    front_image: str
    selfie_image: str
    back_image: Optional[str] = None


# Plan schemas
class SubscribeRequest(BaseModel):
    plan_id: str
    amount: Decimal = Field(..., gt=0)


class PlanRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    return_percentage: Optional[Decimal] = None
    duration_days: Optional[int] = None
    features: Optional[List[str]] = None
    status: Optional[str] = None


# Membership schemas
class MembershipSubscribeRequest(BaseModel):
    membership_id: str


class MembershipRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    duration_days: Optional[int] = None
    features: Optional[List[str]] = None
    status: Optional[str] = None


class CourseRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    membership_id: Optional[str] = None
    thumbnail: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[int] = None
    order: Optional[int] = None
    status: Optional[str] = None


# Signal schemas
class SignalSubscribeRequest(BaseModel):
    provider_id: str
    duration_days: int = Field(30, ge=1)


class SignalProviderRequest(BaseModel):
    name: str
    subscription_fee: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    avatar: Optional[str] = None


class SignalRequest(BaseModel):
    asset: str
    action: str
    entry_price: Decimal
    take_profit: Decimal
    stop_loss: Decimal


class CloseSignalRequest(BaseModel):
    result: str
    profit_loss: Decimal = Decimal("0")


# Support schemas
class TicketRequest(BaseModel):
    subject: str
    message: str
    priority: Optional[str] = None


class TicketUpdateRequest(BaseModel):
    status: Optional[str] = None
    admin_response: Optional[str] = None


# Admin schemas
class ReviewRequest(BaseModel):
    """Approve/reject decision on a pending request"""
    status: str
    admin_note: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class AdminCreateUserRequest(BaseModel):
    email: str
    password: str
    name: str
    phone: Optional[str] = None
    country: Optional[str] = None
    account_type: Optional[str] = None
    currency: Optional[str] = None
    pin: Optional[str] = None


class BalanceAdjustmentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    type: str = Field("balance", description="Balance type (balance, bonus, trading)")
    description: Optional[str] = None


class AuthCodesRequest(BaseModel):
    tax_code: Optional[str] = None
    imf_code: Optional[str] = None
    cot_code: Optional[str] = None


class LimitsRequest(BaseModel):
    daily_transfer_limit: Optional[Decimal] = None
    daily_withdrawal_limit: Optional[Decimal] = None


class CreateAdminRequest(BaseModel):
    email: str
    password: str
    name: str
    role: str = "admin"
    permissions: List[str] = Field(default_factory=list)


class UpdateAdminRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[List[str]] = None
    status: Optional[str] = None


class AdminPasswordRequest(BaseModel):
    password: str


class BlockIpRequest(BaseModel):
    ip_address: str
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None


class EmailBroadcastRequest(BaseModel):
    type: str = Field("single", description="Recipients (single, multiple, all)")
    subject: str
    message: str
    email: Optional[str] = None
    user_id: Optional[str] = None
    user_ids: List[str] = Field(default_factory=list)


class NotificationBroadcastRequest(BaseModel):
    title: str
    message: str
    type: str = "info"
    user_ids: Optional[List[str]] = None


class ContentRequest(BaseModel):
    content: str
    title: Optional[str] = None
    type: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    settings: List[Dict[str, Any]]
