from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import FinalClassStatus, UserRole
from app.core.exceptions import ServiceError
from app.core.notifications import Notifier, get_notifier
from app.db.session import get_db

from .schemas import ClassSchedule, CoordinatorReassign, FinalClassResponse, FinalClassStatusUpdate, ParentAssign
from . import service

router = APIRouter(prefix="/api/v1/final-classes", tags=["final-classes"])


@router.get("", response_model=List[FinalClassResponse])
async def list_classes(
    status_filter: Optional[FinalClassStatus] = Query(None, alias="status"),
    tutor_id: Optional[UUID] = Query(None),
    coordinator_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FinalClassResponse]:
    """Classes visible to the caller."""
    return await service.list_classes(
        db, current_user,
        status_filter=status_filter, tutor_id=tutor_id, coordinator_id=coordinator_id,
        page=page, limit=limit,
    )


@router.get("/{class_id}", response_model=FinalClassResponse)
async def get_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FinalClassResponse:
    try:
        return await service.get_class(db, class_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{class_id}/reassign-coordinator", response_model=FinalClassResponse)
async def reassign_coordinator(
    class_id: UUID,
    payload: CoordinatorReassign,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> FinalClassResponse:
    try:
        return await service.reassign_coordinator(db, class_id, current_user, payload.coordinator_id, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{class_id}/assign-parent", response_model=FinalClassResponse)
async def assign_parent(
    class_id: UUID,
    payload: ParentAssign,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> FinalClassResponse:
    """Bind the parent who gives final attendance approval."""
    try:
        return await service.assign_parent(db, class_id, current_user, payload.parent_id, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{class_id}/status", response_model=FinalClassResponse)
async def update_class_status(
    class_id: UUID,
    payload: FinalClassStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER, UserRole.COORDINATOR)),
) -> FinalClassResponse:
    """Pause, resume, complete or cancel a class."""
    try:
        return await service.update_class_status(db, class_id, current_user, payload.status, payload.notes)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.put("/{class_id}/schedule", response_model=FinalClassResponse)
async def update_schedule(
    class_id: UUID,
    payload: ClassSchedule,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER, UserRole.COORDINATOR)),
) -> FinalClassResponse:
    try:
        return await service.update_schedule(db, class_id, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
