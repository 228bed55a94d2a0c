from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import AttendanceStatus, UserRole
from app.core.exceptions import ServiceError
from app.core.notifications import Notifier, get_notifier
from app.db.session import get_db

from .schemas import AttendanceReject, AttendanceResponse, AttendanceSubmit, AttendanceSubmitResponse
from . import service

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


@router.post("", response_model=AttendanceSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_attendance(
    payload: AttendanceSubmit,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.TUTOR)),
) -> AttendanceSubmitResponse:
    """Submit attendance for one scheduled session."""
    try:
        return await service.submit_attendance(db, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/pending", response_model=List[AttendanceResponse])
async def list_pending_approvals(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.COORDINATOR, UserRole.PARENT)),
) -> List[AttendanceResponse]:
    """Records awaiting the caller's approval."""
    return await service.list_pending_approvals(db, current_user)


@router.get("/class/{final_class_id}", response_model=List[AttendanceResponse])
async def list_class_attendance(
    final_class_id: UUID,
    status_filter: Optional[AttendanceStatus] = Query(None, alias="status"),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AttendanceResponse]:
    try:
        return await service.list_class_attendance(
            db, final_class_id, current_user,
            status_filter=status_filter, from_date=from_date, to_date=to_date,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{attendance_id}", response_model=AttendanceResponse)
async def get_attendance(
    attendance_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AttendanceResponse:
    try:
        return await service.get_attendance(db, attendance_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{attendance_id}/coordinator-approve", response_model=AttendanceResponse)
async def coordinator_approve(
    attendance_id: UUID,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.COORDINATOR)),
) -> AttendanceResponse:
    try:
        return await service.coordinator_approve(db, attendance_id, current_user, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{attendance_id}/parent-approve", response_model=AttendanceResponse)
async def parent_approve(
    attendance_id: UUID,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.PARENT)),
) -> AttendanceResponse:
    try:
        return await service.parent_approve(db, attendance_id, current_user, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{attendance_id}/reject", response_model=AttendanceResponse)
async def reject_attendance(
    attendance_id: UUID,
    payload: AttendanceReject,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.COORDINATOR, UserRole.PARENT)),
) -> AttendanceResponse:
    """Reject a pending or coordinator-approved record. A reason is required."""
    try:
        return await service.reject_attendance(db, attendance_id, current_user, payload.reason, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
