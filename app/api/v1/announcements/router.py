from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.notifications import Notifier, get_notifier
from app.db.session import get_db

from .schemas import AnnouncementResponse, ExpressInterest, InterestResponse
from . import service

router = APIRouter(prefix="/api/v1/announcements", tags=["announcements"])


@router.get("", response_model=List[AnnouncementResponse])
async def list_active_announcements(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER, UserRole.TUTOR)),
) -> List[AnnouncementResponse]:
    """Open announcements tutors can express interest in."""
    return await service.list_active_announcements(db, page=page, limit=limit)


@router.get("/lead/{class_lead_id}", response_model=AnnouncementResponse)
async def get_announcement_for_lead(
    class_lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER, UserRole.TUTOR)),
) -> AnnouncementResponse:
    try:
        return await service.get_announcement_for_lead(db, class_lead_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{announcement_id}/interest", response_model=InterestResponse)
async def express_interest(
    announcement_id: UUID,
    payload: ExpressInterest,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: CurrentUser = Depends(require_roles(UserRole.TUTOR)),
) -> InterestResponse:
    """Tutor expresses interest in an announced lead."""
    try:
        return await service.express_interest(db, announcement_id, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{announcement_id}/interested-tutors", response_model=List[InterestResponse])
async def list_interested_tutors(
    announcement_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.MANAGER)),
) -> List[InterestResponse]:
    """Interested tutors ranked by match score, for demo selection."""
    try:
        return await service.list_interested_tutors(db, announcement_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
