"""
Public site endpoints (no authentication)
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import BankingSystem, get_banking_system
from .schemas import serialize


router = APIRouter()


@router.get("/faqs")
async def faqs(system: BankingSystem = Depends(get_banking_system)):
    return {"faqs": serialize(system.cms.get_all_faqs(active_only=True))}


@router.get("/testimonials")
async def testimonials(system: BankingSystem = Depends(get_banking_system)):
    return {"testimonials": serialize(system.cms.get_all_testimonials(active_only=True))}


@router.get("/content/{key}")
async def content(key: str, system: BankingSystem = Depends(get_banking_system)):
    record = system.cms.get_content(key)
    if not record:
        raise HTTPException(status_code=404, detail="Content not found")
    return {"content": serialize(record)}


@router.get("/payment-methods")
async def payment_methods(system: BankingSystem = Depends(get_banking_system)):
    return {"payment_methods": serialize(system.payment_methods.list_active())}


@router.get("/appearance")
async def appearance(system: BankingSystem = Depends(get_banking_system)):
    return {"appearance": serialize(system.settings.get_appearance())}


@router.get("/settings")
async def app_settings(system: BankingSystem = Depends(get_banking_system)):
    return {"settings": system.settings.get_app_settings()}


@router.get("/plans")
async def plans(system: BankingSystem = Depends(get_banking_system)):
    return {"plans": serialize(system.plans.get_active_plans())}


@router.get("/crypto-assets")
async def crypto_assets(system: BankingSystem = Depends(get_banking_system)):
    return {"assets": serialize(system.crypto.get_assets())}


@router.get("/privacy")
async def privacy_policy(system: BankingSystem = Depends(get_banking_system)):
    return {"content": system.cms.get_privacy_policy()}


@router.get("/terms")
async def terms_of_service(system: BankingSystem = Depends(get_banking_system)):
    return {"content": system.cms.get_terms_of_service()}


@router.get("/about")
async def about_us(system: BankingSystem = Depends(get_banking_system)):
    return {"content": system.cms.get_about_us()}
