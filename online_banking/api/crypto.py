"""
Customer crypto endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import CryptoBuyRequest, CryptoSellRequest, CryptoSwapRequest, page_response, serialize
from ..users import User


router = APIRouter()


@router.get("/assets")
async def list_assets(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    return {"assets": serialize(system.crypto.get_assets())}


@router.get("/wallets")
async def list_wallets(user: User = Depends(get_current_user), system: BankingSystem = Depends(get_banking_system)):
    return {
        "wallets": serialize(system.crypto.get_user_wallets(user.id)),
        "bitcoin_balance": str(user.bitcoin_balance),
    }


@router.post("/buy")
async def buy(
    request: CryptoBuyRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    transaction = system.crypto.buy(user.id, request.asset, request.amount)
    return {"transaction": serialize(transaction), "message": f"Bought {transaction.to_amount} {transaction.to_asset}"}


@router.post("/sell")
async def sell(
    request: CryptoSellRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    transaction = system.crypto.sell(user.id, request.asset, request.amount)
    return {"transaction": serialize(transaction), "message": f"Sold {transaction.from_amount} {transaction.from_asset}"}


@router.post("/swap")
async def swap(
    request: CryptoSwapRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    transaction = system.crypto.swap(user.id, request.from_asset, request.to_asset, request.amount)
    return {"transaction": serialize(transaction), "message": "Swap completed successfully"}


@router.post("/btc-swap")
def btc_swap(
    request: CryptoSwapRequest,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Exchange between the fiat balance and the Bitcoin balance at the live price"""
    result = system.crypto.swap_btc(user.id, request.from_asset, request.to_asset, request.amount)
    return {**serialize(result), "message": "Swap completed successfully"}


@router.get("/transactions")
async def list_transactions(
    page: int = 1,
    limit: int = 10,
    user: User = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    return page_response(system.crypto.get_user_transactions(user.id, page, limit), "transactions")
