"""Final class reads and administration: coordinator and parent binding, status and schedule."""

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.core.audit_service import ENTITY_FINAL_CLASS, log_audit
from app.core.enums import FinalClassStatus, UserRole
from app.core.exceptions import PermissionDenied
from app.core.models import FinalClass
from app.core.notifications import COORDINATOR_REASSIGNED, PARENT_ASSIGNED, Notifier, dispatch_notification
from app.core.transitions import FINAL_CLASS_TRANSITIONS, ensure_transition
from app.db.locking import commit_or_conflict, get_or_404, load_for_update

from .schemas import ClassSchedule, FinalClassResponse

logger = logging.getLogger(__name__)

ENTITY = "FinalClass"
_MANAGING_ROLES = (UserRole.ADMIN, UserRole.MANAGER)


def class_to_response(fc: FinalClass) -> FinalClassResponse:
    return FinalClassResponse.model_validate(fc)


def is_participant(fc: FinalClass, actor: CurrentUser) -> bool:
    """Tutor, coordinator or parent bound to the class."""
    return actor.id in (fc.tutor_id, fc.coordinator_id, fc.parent_id)


def ensure_can_view(fc: FinalClass, actor: CurrentUser) -> None:
    if actor.role in _MANAGING_ROLES or is_participant(fc, actor):
        return
    raise PermissionDenied("You are not assigned to this class")


def _ensure_administers(fc: FinalClass, actor: CurrentUser) -> None:
    if actor.role in _MANAGING_ROLES:
        return
    if actor.role == UserRole.COORDINATOR and actor.id == fc.coordinator_id:
        return
    raise PermissionDenied("Only the class coordinator or a manager can change this class")


async def get_class(db: AsyncSession, class_id: UUID, actor: CurrentUser) -> FinalClassResponse:
    fc = await get_or_404(db, FinalClass, class_id, ENTITY)
    ensure_can_view(fc, actor)
    return class_to_response(fc)


async def list_classes(
    db: AsyncSession,
    actor: CurrentUser,
    status_filter: Optional[FinalClassStatus] = None,
    tutor_id: Optional[UUID] = None,
    coordinator_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> List[FinalClassResponse]:
    """Managers/admins see all classes; everyone else only the classes they are bound to."""
    q = select(FinalClass)
    if actor.role == UserRole.TUTOR:
        q = q.where(FinalClass.tutor_id == actor.id)
    elif actor.role == UserRole.COORDINATOR:
        q = q.where(FinalClass.coordinator_id == actor.id)
    elif actor.role == UserRole.PARENT:
        q = q.where(FinalClass.parent_id == actor.id)
    if tutor_id is not None:
        q = q.where(FinalClass.tutor_id == tutor_id)
    if coordinator_id is not None:
        q = q.where(FinalClass.coordinator_id == coordinator_id)
    if status_filter is not None:
        q = q.where(FinalClass.status == status_filter.value)
    q = q.order_by(FinalClass.created_at.desc()).offset((page - 1) * limit).limit(limit)
    result = await db.execute(q)
    return [class_to_response(fc) for fc in result.scalars().all()]


async def reassign_coordinator(
    db: AsyncSession,
    class_id: UUID,
    actor: CurrentUser,
    coordinator_id: UUID,
    notifier: Optional[Notifier] = None,
) -> FinalClassResponse:
    """Bind the class to another coordinator. Status is untouched."""
    if actor.role not in _MANAGING_ROLES:
        raise PermissionDenied("Only a manager can reassign the coordinator")
    fc = await load_for_update(db, FinalClass, class_id, ENTITY)
    previous = fc.coordinator_id
    fc.coordinator_id = coordinator_id
    await log_audit(
        db, ENTITY_FINAL_CLASS, fc.id, "COORDINATOR_REASSIGNED",
        actor=actor, remarks=f"{previous} -> {coordinator_id}",
    )
    await commit_or_conflict(db, ENTITY, fc.id)
    await db.refresh(fc)
    await dispatch_notification(
        notifier, COORDINATOR_REASSIGNED, [previous, coordinator_id], final_class_id=fc.id,
    )
    return class_to_response(fc)


async def assign_parent(
    db: AsyncSession,
    class_id: UUID,
    actor: CurrentUser,
    parent_id: UUID,
    notifier: Optional[Notifier] = None,
) -> FinalClassResponse:
    """Bind (or rebind) the parent account that gives final attendance approval."""
    if actor.role not in _MANAGING_ROLES:
        raise PermissionDenied("Only a manager can assign the class parent")
    fc = await load_for_update(db, FinalClass, class_id, ENTITY)
    previous = fc.parent_id
    fc.parent_id = parent_id
    await log_audit(
        db, ENTITY_FINAL_CLASS, fc.id, "PARENT_ASSIGNED",
        actor=actor, remarks=f"{previous} -> {parent_id}",
    )
    await commit_or_conflict(db, ENTITY, fc.id)
    await db.refresh(fc)
    await dispatch_notification(notifier, PARENT_ASSIGNED, [parent_id], final_class_id=fc.id)
    return class_to_response(fc)


async def update_class_status(
    db: AsyncSession,
    class_id: UUID,
    actor: CurrentUser,
    target: FinalClassStatus,
    notes: Optional[str] = None,
) -> FinalClassResponse:
    """Pause, resume, complete or cancel a class. COMPLETED and CANCELLED are final."""
    fc = await load_for_update(db, FinalClass, class_id, ENTITY)
    _ensure_administers(fc, actor)
    ensure_transition(ENTITY, FINAL_CLASS_TRANSITIONS, fc.status, target)
    from_status = fc.status
    fc.status = target.value
    if target in (FinalClassStatus.COMPLETED, FinalClassStatus.CANCELLED):
        fc.end_date = date.today()
    if notes:
        fc.notes = notes
    await log_audit(
        db, ENTITY_FINAL_CLASS, fc.id, f"STATUS_{target.value}",
        from_status=from_status, to_status=target, actor=actor, remarks=notes,
    )
    await commit_or_conflict(db, ENTITY, fc.id)
    await db.refresh(fc)
    logger.info("Class %s %s -> %s", fc.id, from_status, target.value)
    return class_to_response(fc)


async def update_schedule(
    db: AsyncSession,
    class_id: UUID,
    actor: CurrentUser,
    schedule: ClassSchedule,
) -> FinalClassResponse:
    """Replace the weekly schedule. Existing attendance is not re-validated."""
    fc = await load_for_update(db, FinalClass, class_id, ENTITY)
    _ensure_administers(fc, actor)
    fc.days_of_week = [d.value for d in schedule.days_of_week]
    if schedule.time_slot is not None:
        fc.time_slot = schedule.time_slot
    await log_audit(
        db, ENTITY_FINAL_CLASS, fc.id, "SCHEDULE_UPDATED",
        actor=actor, remarks=",".join(fc.days_of_week) or "every day",
    )
    await commit_or_conflict(db, ENTITY, fc.id)
    await db.refresh(fc)
    return class_to_response(fc)
