"""
Back-office content endpoints: KYC review, CMS, site settings, appearance and CRM
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, get_banking_system, get_current_admin
from .schemas import ContentRequest, RejectRequest, SettingsUpdateRequest, page_response, serialize
from ..admin import Admin
from ..cms import ContentType
from ..crm import LeadStatus, TaskPriority, TaskStatus
from ..site_settings import SettingsCategory
from ..users import KycStatus


router = APIRouter()

SETTINGS_GROUPS = {
    "app": ("get_app_settings", "update_app_info"),
    "referral": ("get_referral_settings", "update_referral_bonus"),
    "limits": ("get_limits", "update_limits"),
    "security": ("get_security_settings", "update_security_settings"),
    "email": ("get_email_settings", "update_email_settings"),
}


# KYC

@router.get("/kyc")
async def list_kyc(page: int = 1, limit: int = 20, status: Optional[str] = None,
                   admin: Admin = Depends(get_current_admin),
                   system: BankingSystem = Depends(get_banking_system)):
    return page_response(system.kyc.get_all(page, limit, KycStatus(status) if status else None), "kyc")


@router.post("/kyc/{kyc_id}/approve")
async def approve_kyc(kyc_id: str, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    return {"kyc": serialize(system.kyc.approve_kyc(kyc_id, admin.id)), "message": "KYC approved"}


@router.post("/kyc/{kyc_id}/reject")
async def reject_kyc(kyc_id: str, request: RejectRequest, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    record = system.kyc.reject_kyc(kyc_id, admin.id, request.reason or "")
    return {"kyc": serialize(record), "message": "KYC rejected"}


# FAQs

@router.get("/faqs")
async def list_faqs(admin: Admin = Depends(get_current_admin), system: BankingSystem = Depends(get_banking_system)):
    return {"faqs": serialize(system.cms.get_all_faqs())}


@router.post("/faqs", status_code=status.HTTP_201_CREATED)
async def create_faq(data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    return {"faq": serialize(system.cms.create_faq(data, admin.id)), "message": "FAQ created"}


@router.put("/faqs/{faq_id}")
async def update_faq(faq_id: str, data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    return {"faq": serialize(system.cms.update_faq(faq_id, data, admin.id)), "message": "FAQ updated"}


@router.delete("/faqs/{faq_id}")
async def delete_faq(faq_id: str, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    system.cms.delete_faq(faq_id, admin.id)
    return {"message": "FAQ deleted"}


# Testimonials

@router.get("/testimonials")
async def list_testimonials(admin: Admin = Depends(get_current_admin),
                            system: BankingSystem = Depends(get_banking_system)):
    return {"testimonials": serialize(system.cms.get_all_testimonials())}


@router.post("/testimonials", status_code=status.HTTP_201_CREATED)
async def create_testimonial(data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                             system: BankingSystem = Depends(get_banking_system)):
    testimonial = system.cms.create_testimonial(data, admin.id)
    return {"testimonial": serialize(testimonial), "message": "Testimonial created"}


@router.put("/testimonials/{testimonial_id}")
async def update_testimonial(testimonial_id: str, data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                             system: BankingSystem = Depends(get_banking_system)):
    testimonial = system.cms.update_testimonial(testimonial_id, data, admin.id)
    return {"testimonial": serialize(testimonial), "message": "Testimonial updated"}


@router.delete("/testimonials/{testimonial_id}")
async def delete_testimonial(testimonial_id: str, admin: Admin = Depends(get_current_admin),
                             system: BankingSystem = Depends(get_banking_system)):
    system.cms.delete_testimonial(testimonial_id, admin.id)
    return {"message": "Testimonial deleted"}


# Keyed content

@router.get("/content")
async def list_content(admin: Admin = Depends(get_current_admin), system: BankingSystem = Depends(get_banking_system)):
    return {"content": serialize(system.cms.get_all_content())}


@router.put("/content/{key}")
async def set_content(key: str, request: ContentRequest, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    record = system.cms.set_content(key, request.content, admin.id, request.title,
                                    ContentType(request.type) if request.type else None)
    return {"content": serialize(record), "message": "Content saved"}


@router.delete("/content/{key}")
async def delete_content(key: str, admin: Admin = Depends(get_current_admin),
                         system: BankingSystem = Depends(get_banking_system)):
    system.cms.delete_content(key, admin.id)
    return {"message": "Content deleted"}


# Legal pages

PAGE_SETTERS = {
    "privacy": "set_privacy_policy",
    "terms": "set_terms_of_service",
    "about": "set_about_us",
}


@router.put("/pages/{page}")
async def set_page(page: str, request: ContentRequest, admin: Admin = Depends(get_current_admin),
                   system: BankingSystem = Depends(get_banking_system)):
    if page not in PAGE_SETTERS:
        raise HTTPException(status_code=404, detail="Page not found")
    record = getattr(system.cms, PAGE_SETTERS[page])(request.content, admin.id)
    return {"content": serialize(record), "message": "Page updated"}


# Site settings

@router.get("/settings")
async def get_settings(category: Optional[str] = None, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    if category:
        return {"settings": system.settings.get_by_category(SettingsCategory(category))}
    return {"settings": system.settings.get_all()}


@router.put("/settings")
async def update_settings(request: SettingsUpdateRequest, admin: Admin = Depends(get_current_admin),
                          system: BankingSystem = Depends(get_banking_system)):
    count = system.settings.update_many(request.settings, admin.id)
    return {"count": count, "message": "Settings updated"}


@router.get("/settings/{group}")
async def get_settings_group(group: str, admin: Admin = Depends(get_current_admin),
                             system: BankingSystem = Depends(get_banking_system)):
    if group not in SETTINGS_GROUPS:
        raise HTTPException(status_code=404, detail="Settings group not found")
    return {"settings": getattr(system.settings, SETTINGS_GROUPS[group][0])()}


@router.put("/settings/{group}")
async def update_settings_group(group: str, data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                                system: BankingSystem = Depends(get_banking_system)):
    if group not in SETTINGS_GROUPS:
        raise HTTPException(status_code=404, detail="Settings group not found")
    count = getattr(system.settings, SETTINGS_GROUPS[group][1])(data, admin.id)
    return {"count": count, "message": "Settings updated"}


# Appearance

@router.get("/appearance")
async def get_appearance(admin: Admin = Depends(get_current_admin), system: BankingSystem = Depends(get_banking_system)):
    return {"appearance": serialize(system.settings.get_appearance())}


@router.put("/appearance")
async def update_appearance(data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                            system: BankingSystem = Depends(get_banking_system)):
    appearance = system.settings.update_appearance(data, admin.id)
    return {"appearance": serialize(appearance), "message": "Appearance updated"}


@router.post("/appearance/reset")
async def reset_appearance(admin: Admin = Depends(get_current_admin),
                           system: BankingSystem = Depends(get_banking_system)):
    return {"appearance": serialize(system.settings.reset_appearance(admin.id)), "message": "Appearance reset"}


# CRM

@router.get("/crm/stats")
async def crm_stats(admin: Admin = Depends(get_current_admin), system: BankingSystem = Depends(get_banking_system)):
    return {"stats": system.crm.get_stats()}


@router.get("/crm/tasks")
async def list_tasks(page: int = 1, limit: int = 20, status: Optional[str] = None,
                     priority: Optional[str] = None, assigned_to: Optional[str] = None,
                     admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    result = system.crm.get_all_tasks(
        page, limit,
        TaskStatus(status) if status else None,
        TaskPriority(priority) if priority else None,
        assigned_to,
    )
    return page_response(result, "tasks")


@router.post("/crm/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    return {"task": serialize(system.crm.create_task(data, admin.id)), "message": "Task created"}


@router.put("/crm/tasks/{task_id}")
async def update_task(task_id: str, data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    return {"task": serialize(system.crm.update_task(task_id, data, admin.id)), "message": "Task updated"}


@router.delete("/crm/tasks/{task_id}")
async def delete_task(task_id: str, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    system.crm.delete_task(task_id, admin.id)
    return {"message": "Task deleted"}


@router.get("/crm/leads")
async def list_leads(page: int = 1, limit: int = 20, status: Optional[str] = None,
                     assigned_to: Optional[str] = None, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    result = system.crm.get_all_leads(page, limit, LeadStatus(status) if status else None, assigned_to)
    return page_response(result, "leads")


@router.post("/crm/leads", status_code=status.HTTP_201_CREATED)
async def create_lead(data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    return {"lead": serialize(system.crm.create_lead(data, admin.id)), "message": "Lead created"}


@router.put("/crm/leads/{lead_id}")
async def update_lead(lead_id: str, data: Dict[str, Any], admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    return {"lead": serialize(system.crm.update_lead(lead_id, data, admin.id)), "message": "Lead updated"}


@router.post("/crm/leads/{lead_id}/convert/{user_id}")
async def convert_lead(lead_id: str, user_id: str, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"lead": serialize(system.crm.convert_lead(lead_id, user_id, admin.id)), "message": "Lead converted"}


@router.delete("/crm/leads/{lead_id}")
async def delete_lead(lead_id: str, admin: Admin = Depends(get_current_admin),
                      system: BankingSystem = Depends(get_banking_system)):
    system.crm.delete_lead(lead_id, admin.id)
    return {"message": "Lead deleted"}
