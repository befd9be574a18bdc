"""
Back-office endpoints for memberships, courses, signal providers and support tickets
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, get_banking_system, get_current_admin
from .schemas import (
    CloseSignalRequest, CourseRequest, MembershipRequest, SignalProviderRequest, SignalRequest,
    TicketUpdateRequest, page_response, serialize,
)
from ..admin import Admin
from ..support import TicketStatus


router = APIRouter()


# Memberships and courses

@router.get("/memberships")
async def list_memberships(admin: Admin = Depends(get_current_admin),
                           system: BankingSystem = Depends(get_banking_system)):
    return {"memberships": serialize(system.memberships.get_all_memberships())}


@router.post("/memberships", status_code=status.HTTP_201_CREATED)
async def create_membership(request: MembershipRequest, admin: Admin = Depends(get_current_admin),
                            system: BankingSystem = Depends(get_banking_system)):
    membership = system.memberships.create_membership(request.model_dump(exclude_none=True), admin.id)
    return {"membership": serialize(membership), "message": "Membership created successfully"}


@router.put("/memberships/{membership_id}")
async def update_membership(membership_id: str, request: MembershipRequest,
                            admin: Admin = Depends(get_current_admin),
                            system: BankingSystem = Depends(get_banking_system)):
    membership = system.memberships.update_membership(membership_id, request.model_dump(exclude_none=True),
                                                      admin.id)
    return {"membership": serialize(membership), "message": "Membership updated successfully"}


@router.get("/courses")
async def list_courses(membership_id: Optional[str] = None, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return {"courses": serialize(system.memberships.get_all_courses(membership_id))}


@router.post("/courses", status_code=status.HTTP_201_CREATED)
async def create_course(request: CourseRequest, admin: Admin = Depends(get_current_admin),
                        system: BankingSystem = Depends(get_banking_system)):
    course = system.memberships.create_course(request.model_dump(exclude_none=True), admin.id)
    return {"course": serialize(course), "message": "Course created successfully"}


@router.put("/courses/{course_id}")
async def update_course(course_id: str, request: CourseRequest, admin: Admin = Depends(get_current_admin),
                        system: BankingSystem = Depends(get_banking_system)):
    course = system.memberships.update_course(course_id, request.model_dump(exclude_none=True), admin.id)
    return {"course": serialize(course), "message": "Course updated successfully"}


# Signal providers

@router.get("/signal-providers")
async def list_providers(admin: Admin = Depends(get_current_admin),
                         system: BankingSystem = Depends(get_banking_system)):
    return {"providers": serialize(system.signals.get_all_providers())}


@router.post("/signal-providers", status_code=status.HTTP_201_CREATED)
async def create_provider(request: SignalProviderRequest, admin: Admin = Depends(get_current_admin),
                          system: BankingSystem = Depends(get_banking_system)):
    provider = system.signals.create_provider(request.model_dump(exclude_none=True), admin.id)
    return {"provider": serialize(provider), "message": "Signal provider created successfully"}


@router.get("/signal-providers/{provider_id}/signals")
async def list_signals(provider_id: str, page: int = 1, limit: int = 10,
                       admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    return page_response(system.signals.get_provider_signals(provider_id, page, limit), "signals")


@router.post("/signal-providers/{provider_id}/signals", status_code=status.HTTP_201_CREATED)
async def create_signal(provider_id: str, request: SignalRequest, admin: Admin = Depends(get_current_admin),
                        system: BankingSystem = Depends(get_banking_system)):
    signal = system.signals.create_signal(provider_id, request.model_dump(), admin.id)
    return {"signal": serialize(signal), "message": "Signal created successfully"}


@router.post("/signals/{signal_id}/close")
async def close_signal(signal_id: str, request: CloseSignalRequest, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    signal = system.signals.close_signal(signal_id, request.result, request.profit_loss, admin.id)
    return {"signal": serialize(signal), "message": "Signal closed successfully"}


# Support tickets

@router.get("/support")
async def list_tickets(page: int = 1, limit: int = 10, status: Optional[str] = None,
                       search: Optional[str] = None, admin: Admin = Depends(get_current_admin),
                       system: BankingSystem = Depends(get_banking_system)):
    result = system.support.get_all(page, limit, TicketStatus(status) if status else None, search)
    return page_response(result, "tickets")


@router.get("/support/{ticket_id}")
async def get_ticket(ticket_id: str, admin: Admin = Depends(get_current_admin),
                     system: BankingSystem = Depends(get_banking_system)):
    ticket = system.support.get(ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return {"ticket": serialize(ticket)}


@router.put("/support/{ticket_id}")
async def update_ticket(ticket_id: str, request: TicketUpdateRequest, admin: Admin = Depends(get_current_admin),
                        system: BankingSystem = Depends(get_banking_system)):
    ticket = system.support.update_ticket(ticket_id, admin.id, request.status, request.admin_response)
    return {"ticket": serialize(ticket), "message": "Ticket updated successfully"}
