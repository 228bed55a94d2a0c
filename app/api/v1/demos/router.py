from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import DemoStatus, UserRole
from app.core.exceptions import ServiceError
from app.core.notifications import Notifier, get_notifier
from app.db.session import get_db

from .schemas import (
    DemoApprove,
    DemoComplete,
    DemoReassign,
    DemoReject,
    DemoReschedule,
    DemoResponse,
    LeadDemoResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/demos", tags=["demos"])


@router.get("/my", response_model=List[DemoResponse])
async def list_my_demos(
    status: Optional[DemoStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.TUTOR)),
) -> List[DemoResponse]:
    """Demos assigned to the calling tutor."""
    return await service.list_my_demos(db, current_user.id, status_filter=status, page=page, limit=limit)


@router.get("/lead/{class_lead_id}/history", response_model=List[DemoResponse])
async def list_demo_history(
    class_lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> List[DemoResponse]:
    """Every demo run for a lead, oldest first."""
    try:
        return await service.list_demo_history(db, class_lead_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{demo_id}", response_model=DemoResponse)
async def get_demo(
    demo_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER, UserRole.TUTOR)),
) -> DemoResponse:
    try:
        return await service.get_demo(db, demo_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{demo_id}/complete", response_model=LeadDemoResponse)
async def complete_demo(
    demo_id: UUID,
    payload: DemoComplete,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.TUTOR, UserRole.MANAGER)),
) -> LeadDemoResponse:
    """Record the demo outcome. PRESENT requires topic and duration."""
    try:
        return await service.complete_demo(db, demo_id, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{demo_id}/approve", response_model=LeadDemoResponse)
async def approve_demo(
    demo_id: UUID,
    payload: DemoApprove,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> LeadDemoResponse:
    """Approve a completed demo: provisions the final class and converts the lead."""
    try:
        return await service.approve_demo(db, demo_id, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{demo_id}/reject", response_model=LeadDemoResponse)
async def reject_demo(
    demo_id: UUID,
    payload: DemoReject,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> LeadDemoResponse:
    try:
        return await service.reject_demo(db, demo_id, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{demo_id}/reassign", response_model=LeadDemoResponse)
async def reassign_demo(
    demo_id: UUID,
    payload: DemoReassign,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> LeadDemoResponse:
    """Hand a scheduled demo to a different tutor."""
    try:
        return await service.reassign_demo(db, demo_id, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.put("/{demo_id}/reschedule", response_model=DemoResponse)
async def reschedule_demo(
    demo_id: UUID,
    payload: DemoReschedule,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> DemoResponse:
    try:
        return await service.reschedule_demo(db, demo_id, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
