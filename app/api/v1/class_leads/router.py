from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.demos.schemas import LeadDemoResponse
from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import ClassLeadStatus, UserRole
from app.core.exceptions import ServiceError
from app.core.notifications import Notifier, get_notifier
from app.db.session import get_db

from .schemas import (
    ClassLeadCreate,
    ClassLeadResponse,
    ClassLeadUpdate,
    DemoAssign,
    ManagerReassign,
    PostLeadResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/class-leads", tags=["class-leads"])

manager_only = require_roles(UserRole.MANAGER)


@router.post("", response_model=ClassLeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: ClassLeadCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(manager_only),
) -> ClassLeadResponse:
    """Create a lead in NEW status."""
    try:
        return await service.create_lead(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=List[ClassLeadResponse])
async def list_leads(
    status_filter: Optional[ClassLeadStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(manager_only),
) -> List[ClassLeadResponse]:
    return await service.list_leads(db, current_user, status_filter=status_filter, page=page, limit=limit)


@router.get("/{lead_id}", response_model=ClassLeadResponse)
async def get_lead(
    lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(manager_only),
) -> ClassLeadResponse:
    try:
        return await service.get_lead(db, lead_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.put("/{lead_id}", response_model=ClassLeadResponse)
async def update_lead(
    lead_id: UUID,
    payload: ClassLeadUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(manager_only),
) -> ClassLeadResponse:
    """Edit a lead that has not reached the demo stage."""
    try:
        return await service.update_lead(db, lead_id, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(manager_only),
) -> None:
    try:
        await service.delete_lead(db, lead_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{lead_id}/post", response_model=PostLeadResponse)
async def post_lead(
    lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(manager_only),
) -> PostLeadResponse:
    """Announce a NEW or REJECTED lead to tutors."""
    try:
        return await service.post_lead(db, lead_id, current_user, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{lead_id}/demo", response_model=LeadDemoResponse)
async def select_tutor_for_demo(
    lead_id: UUID,
    payload: DemoAssign,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(manager_only),
) -> LeadDemoResponse:
    """Schedule a demo with an interested (or directly assigned) tutor."""
    try:
        return await service.select_tutor_for_demo(db, lead_id, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{lead_id}/payment-received", response_model=ClassLeadResponse)
async def mark_payment_received(
    lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(manager_only),
) -> ClassLeadResponse:
    try:
        return await service.mark_payment_received(db, lead_id, current_user, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{lead_id}/reassign-manager", response_model=ClassLeadResponse)
async def reassign_manager(
    lead_id: UUID,
    payload: ManagerReassign,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(manager_only),
) -> ClassLeadResponse:
    try:
        return await service.reassign_manager(db, lead_id, current_user, payload.manager_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
