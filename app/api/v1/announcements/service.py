"""Interest ledger: announcements of leads to tutors and the interests they collect."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.core.enums import ClassLeadStatus
from app.core.exceptions import ServiceError
from app.core.models import Announcement, ClassLead, TutorInterest
from app.core.notifications import TUTOR_INTERESTED, Notifier, dispatch_notification
from app.db.locking import get_or_404

from .matching import compute_match_score
from .schemas import AnnouncementResponse, ExpressInterest, InterestResponse

logger = logging.getLogger(__name__)


async def _interest_count(db: AsyncSession, announcement_id: UUID) -> int:
    result = await db.execute(
        select(func.count(TutorInterest.id)).where(TutorInterest.announcement_id == announcement_id)
    )
    return result.scalar_one()


async def announcement_to_response(db: AsyncSession, a: Announcement) -> AnnouncementResponse:
    return AnnouncementResponse(
        id=a.id,
        class_lead_id=a.class_lead_id,
        posted_by=a.posted_by,
        posted_at=a.posted_at,
        is_active=a.is_active,
        closed_at=a.closed_at,
        interest_count=await _interest_count(db, a.id),
    )


async def get_active_announcement(db: AsyncSession, class_lead_id: UUID) -> Optional[Announcement]:
    result = await db.execute(
        select(Announcement).where(
            Announcement.class_lead_id == class_lead_id,
            Announcement.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def close_active_announcement(db: AsyncSession, class_lead_id: UUID) -> Optional[Announcement]:
    """Deactivate the lead's open announcement, if any. Caller must commit."""
    active = await get_active_announcement(db, class_lead_id)
    if active is not None:
        active.is_active = False
        active.closed_at = datetime.utcnow()
    return active


async def open_announcement(db: AsyncSession, class_lead_id: UUID, posted_by: UUID) -> Announcement:
    """Create a fresh announcement for the lead; any previous one is closed. Caller must commit."""
    await close_active_announcement(db, class_lead_id)
    announcement = Announcement(
        class_lead_id=class_lead_id,
        posted_by=posted_by,
        posted_at=datetime.utcnow(),
        is_active=True,
    )
    db.add(announcement)
    return announcement


async def has_interest(db: AsyncSession, class_lead_id: UUID, tutor_id: UUID) -> bool:
    """True if the tutor expressed interest on the lead's active announcement."""
    result = await db.execute(
        select(TutorInterest.id)
        .join(Announcement, Announcement.id == TutorInterest.announcement_id)
        .where(
            Announcement.class_lead_id == class_lead_id,
            Announcement.is_active.is_(True),
            TutorInterest.tutor_id == tutor_id,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_announcement_for_lead(db: AsyncSession, class_lead_id: UUID) -> AnnouncementResponse:
    """Latest announcement of a lead (active or not)."""
    result = await db.execute(
        select(Announcement)
        .where(Announcement.class_lead_id == class_lead_id)
        .order_by(Announcement.posted_at.desc())
        .limit(1)
    )
    a = result.scalar_one_or_none()
    if a is None:
        raise ServiceError("Lead has not been announced", status.HTTP_404_NOT_FOUND)
    return await announcement_to_response(db, a)


async def list_active_announcements(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
) -> List[AnnouncementResponse]:
    """Open announcements, newest first (tutor feed)."""
    result = await db.execute(
        select(Announcement)
        .where(Announcement.is_active.is_(True))
        .order_by(Announcement.posted_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [await announcement_to_response(db, a) for a in result.scalars().all()]


async def express_interest(
    db: AsyncSession,
    announcement_id: UUID,
    tutor: CurrentUser,
    payload: ExpressInterest,
    notifier: Optional[Notifier] = None,
) -> InterestResponse:
    """Record the tutor's interest with a match score. Repeating it returns the first record."""
    announcement = await get_or_404(db, Announcement, announcement_id, "Announcement")
    if not announcement.is_active:
        raise ServiceError("Announcement is closed", status.HTTP_400_BAD_REQUEST)
    lead = await get_or_404(db, ClassLead, announcement.class_lead_id, "ClassLead")
    if lead.status != ClassLeadStatus.ANNOUNCED.value:
        raise ServiceError("Lead is no longer open for interest", status.HTTP_400_BAD_REQUEST)

    existing = (
        await db.execute(
            select(TutorInterest).where(
                TutorInterest.announcement_id == announcement_id,
                TutorInterest.tutor_id == tutor.id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        return InterestResponse.model_validate(existing)

    profile = payload.profile
    interest = TutorInterest(
        announcement_id=announcement_id,
        tutor_id=tutor.id,
        interested_at=datetime.utcnow(),
        notes=payload.notes.strip() if payload.notes else None,
        match_score=compute_match_score(
            lead.subjects or [],
            profile.subjects,
            approval_ratio=profile.approval_ratio,
            ratings=profile.ratings,
            experience_hours=profile.experience_hours,
        ),
    )
    db.add(interest)
    try:
        await db.commit()
    except IntegrityError:
        # Same tutor raced on another request; the first record wins
        await db.rollback()
        existing = (
            await db.execute(
                select(TutorInterest).where(
                    TutorInterest.announcement_id == announcement_id,
                    TutorInterest.tutor_id == tutor.id,
                )
            )
        ).scalar_one()
        return InterestResponse.model_validate(existing)
    await db.refresh(interest)
    logger.info("Tutor %s interested in lead %s (score %s)", tutor.id, lead.id, interest.match_score)
    await dispatch_notification(
        notifier,
        TUTOR_INTERESTED,
        [lead.reassigned_to or lead.created_by],
        class_lead_id=lead.id,
        tutor_id=tutor.id,
        match_score=interest.match_score,
    )
    return InterestResponse.model_validate(interest)


async def list_interested_tutors(db: AsyncSession, announcement_id: UUID) -> List[InterestResponse]:
    """Interests on an announcement, best match first."""
    await get_or_404(db, Announcement, announcement_id, "Announcement")
    result = await db.execute(
        select(TutorInterest)
        .where(TutorInterest.announcement_id == announcement_id)
        .order_by(TutorInterest.match_score.desc(), TutorInterest.interested_at.asc())
    )
    return [InterestResponse.model_validate(i) for i in result.scalars().all()]
