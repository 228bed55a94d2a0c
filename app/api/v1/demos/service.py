"""Demo workflow: complete, approve (with class provisioning), reject, reassign, reschedule."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.api.v1.class_leads.service import ensure_manages, lead_owner, lead_to_response, transition_lead
from app.api.v1.final_classes import provisioning
from app.api.v1.final_classes.service import class_to_response
from app.auth.schemas import CurrentUser
from app.core.audit_service import ENTITY_DEMO, log_audit
from app.core.enums import ClassLeadStatus, DemoAttendanceStatus, DemoStatus, UserRole
from app.core.exceptions import (
    ConcurrencyConflict,
    CoordinatorRequired,
    PermissionDenied,
    ProvisioningFailure,
    ServiceError,
    ValidationError,
)
from app.core.models import ClassLead, DemoHistory
from app.core.notifications import (
    CLASS_CONVERTED,
    DEMO_APPROVED,
    DEMO_ASSIGNED,
    DEMO_COMPLETED,
    DEMO_REASSIGNED,
    DEMO_REJECTED,
    Notifier,
    dispatch_notification,
)
from app.core.transitions import DEMO_TRANSITIONS, LEAD_TRANSITIONS, ensure_transition
from app.db.locking import commit_or_conflict, get_or_404, load_for_update

from .schemas import (
    DemoApprove,
    DemoComplete,
    DemoReassign,
    DemoReject,
    DemoReschedule,
    DemoResponse,
    LeadDemoResponse,
)

logger = logging.getLogger(__name__)

ENTITY = "DemoHistory"


def demo_to_response(demo: DemoHistory) -> DemoResponse:
    return DemoResponse.model_validate(demo)


async def _apply_demo_transition(
    db: AsyncSession,
    demo: DemoHistory,
    target: DemoStatus,
    actor: CurrentUser,
    remarks: Optional[str] = None,
) -> None:
    ensure_transition(ENTITY, DEMO_TRANSITIONS, demo.status, target)
    from_status = demo.status
    demo.status = target.value
    await log_audit(
        db, ENTITY_DEMO, demo.id, target.value,
        from_status=from_status, to_status=target, actor=actor, remarks=remarks,
    )


async def _load_demo_and_lead(db: AsyncSession, demo_id: UUID):
    demo = await load_for_update(db, DemoHistory, demo_id, ENTITY)
    lead = await load_for_update(db, ClassLead, demo.class_lead_id, "ClassLead")
    return demo, lead


async def get_demo(db: AsyncSession, demo_id: UUID) -> DemoResponse:
    return demo_to_response(await get_or_404(db, DemoHistory, demo_id, ENTITY))


async def list_demo_history(db: AsyncSession, class_lead_id: UUID) -> List[DemoResponse]:
    """Every demo attempt of a lead, oldest first."""
    await get_or_404(db, ClassLead, class_lead_id, "ClassLead")
    result = await db.execute(
        select(DemoHistory)
        .where(DemoHistory.class_lead_id == class_lead_id)
        .order_by(DemoHistory.created_at.asc())
    )
    return [demo_to_response(d) for d in result.scalars().all()]


async def list_my_demos(
    db: AsyncSession,
    tutor_id: UUID,
    status_filter: Optional[DemoStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> List[DemoResponse]:
    q = select(DemoHistory).where(DemoHistory.tutor_id == tutor_id)
    if status_filter is not None:
        q = q.where(DemoHistory.status == status_filter.value)
    q = q.order_by(DemoHistory.demo_date.desc()).offset((page - 1) * limit).limit(limit)
    result = await db.execute(q)
    return [demo_to_response(d) for d in result.scalars().all()]


async def complete_demo(
    db: AsyncSession,
    demo_id: UUID,
    actor: CurrentUser,
    payload: DemoComplete,
    notifier: Optional[Notifier] = None,
) -> LeadDemoResponse:
    """Record the demo outcome; the lead moves to DEMO_COMPLETED."""
    if payload.attendance_status == DemoAttendanceStatus.PRESENT:
        for field in ("topic_covered", "duration"):
            value = getattr(payload, field)
            if not value or not value.strip():
                raise ValidationError(f"{field} is required when the student was present", field=field)

    demo, lead = await _load_demo_and_lead(db, demo_id)
    if actor.role == UserRole.TUTOR and actor.id != demo.tutor_id:
        raise PermissionDenied("Only the assigned tutor can complete this demo")
    if actor.role == UserRole.MANAGER:
        ensure_manages(lead, actor)
    ensure_transition(ENTITY, DEMO_TRANSITIONS, demo.status, DemoStatus.COMPLETED)
    ensure_transition("ClassLead", LEAD_TRANSITIONS, lead.status, ClassLeadStatus.DEMO_COMPLETED)

    await _apply_demo_transition(db, demo, DemoStatus.COMPLETED, actor)
    demo.attendance_status = payload.attendance_status.value
    demo.topic_covered = payload.topic_covered.strip() if payload.topic_covered else None
    demo.duration = payload.duration.strip() if payload.duration else None
    demo.feedback = payload.feedback
    demo.completed_at = datetime.utcnow()
    await transition_lead(db, lead, ClassLeadStatus.DEMO_COMPLETED, actor, "DEMO_COMPLETED")
    await commit_or_conflict(db, ENTITY, demo.id)
    await db.refresh(demo)
    await db.refresh(lead)
    await dispatch_notification(
        notifier, DEMO_COMPLETED, [lead_owner(lead)],
        class_lead_id=lead.id, demo_id=demo.id, attendance_status=demo.attendance_status,
    )
    return LeadDemoResponse(lead=lead_to_response(lead), demo=demo_to_response(demo))


async def approve_demo(
    db: AsyncSession,
    demo_id: UUID,
    actor: CurrentUser,
    payload: DemoApprove,
    notifier: Optional[Notifier] = None,
) -> LeadDemoResponse:
    """
    Approve a completed demo and convert the lead. The demo transition, the new
    FinalClass and the lead's move to CONVERTED commit together or not at all.
    """
    if payload.coordinator_id is None:
        raise CoordinatorRequired(
            "A coordinator is required to approve a demo",
            {"field": "coordinator_id"},
        )

    demo, lead = await _load_demo_and_lead(db, demo_id)
    ensure_manages(lead, actor)
    ensure_transition(ENTITY, DEMO_TRANSITIONS, demo.status, DemoStatus.APPROVED)
    lead_id = lead.id
    ensure_transition("ClassLead", LEAD_TRANSITIONS, lead.status, ClassLeadStatus.CONVERTED)

    try:
        await _apply_demo_transition(db, demo, DemoStatus.APPROVED, actor)
        demo.resolved_by = actor.id
        demo.resolved_at = datetime.utcnow()
        # Claims the demo (version check) before the class exists
        await db.flush()
        final_class = await provisioning.provision_final_class(
            db,
            lead,
            demo,
            payload.coordinator_id,
            actor,
            parent_id=payload.parent_id,
            schedule=payload.schedule,
            class_name=payload.class_name,
        )
        await transition_lead(db, lead, ClassLeadStatus.CONVERTED, actor, "CONVERTED")
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise ConcurrencyConflict(ENTITY, demo_id)
    except ProvisioningFailure:
        await db.rollback()
        logger.warning("Provisioning failed for demo %s; lead left unconverted", demo_id)
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ProvisioningFailure(f"Conversion could not be committed: {exc}", lead_id) from exc

    await db.refresh(demo)
    await db.refresh(lead)
    await db.refresh(final_class)
    logger.info("Demo %s approved; lead %s converted to class %s", demo.id, lead.id, final_class.id)
    await dispatch_notification(
        notifier, DEMO_APPROVED, [demo.tutor_id],
        class_lead_id=lead.id, demo_id=demo.id,
    )
    await dispatch_notification(
        notifier, CLASS_CONVERTED,
        [demo.tutor_id, final_class.coordinator_id, final_class.parent_id],
        class_lead_id=lead.id, final_class_id=final_class.id,
    )
    return LeadDemoResponse(
        lead=lead_to_response(lead),
        demo=demo_to_response(demo),
        final_class=class_to_response(final_class),
    )


async def reject_demo(
    db: AsyncSession,
    demo_id: UUID,
    actor: CurrentUser,
    payload: DemoReject,
    notifier: Optional[Notifier] = None,
) -> LeadDemoResponse:
    """Reject a completed demo; the lead moves to REJECTED and may be reposted."""
    reason = payload.reason.strip() if payload.reason and payload.reason.strip() else None
    demo, lead = await _load_demo_and_lead(db, demo_id)
    ensure_manages(lead, actor)
    ensure_transition(ENTITY, DEMO_TRANSITIONS, demo.status, DemoStatus.REJECTED)
    ensure_transition("ClassLead", LEAD_TRANSITIONS, lead.status, ClassLeadStatus.REJECTED)

    await _apply_demo_transition(db, demo, DemoStatus.REJECTED, actor, remarks=reason)
    demo.rejection_reason = reason
    demo.resolved_by = actor.id
    demo.resolved_at = datetime.utcnow()
    await transition_lead(db, lead, ClassLeadStatus.REJECTED, actor, "DEMO_REJECTED", remarks=reason)
    lead.rejection_reason = reason
    await commit_or_conflict(db, ENTITY, demo.id)
    await db.refresh(demo)
    await db.refresh(lead)
    await dispatch_notification(
        notifier, DEMO_REJECTED, [demo.tutor_id],
        class_lead_id=lead.id, demo_id=demo.id, reason=reason,
    )
    return LeadDemoResponse(lead=lead_to_response(lead), demo=demo_to_response(demo))


async def reassign_demo(
    db: AsyncSession,
    demo_id: UUID,
    actor: CurrentUser,
    payload: DemoReassign,
    notifier: Optional[Notifier] = None,
) -> LeadDemoResponse:
    """Close a SCHEDULED demo as REASSIGNED and schedule a new one with another tutor."""
    demo, lead = await _load_demo_and_lead(db, demo_id)
    ensure_manages(lead, actor)
    ensure_transition(ENTITY, DEMO_TRANSITIONS, demo.status, DemoStatus.REASSIGNED)
    if payload.tutor_id == demo.tutor_id:
        raise ValidationError("Reassignment needs a different tutor", field="tutor_id")

    now = datetime.utcnow()
    await _apply_demo_transition(
        db, demo, DemoStatus.REASSIGNED, actor, remarks=f"reassigned to {payload.tutor_id}",
    )
    demo.resolved_by = actor.id
    demo.resolved_at = now
    replacement = DemoHistory(
        class_lead_id=lead.id,
        tutor_id=payload.tutor_id,
        demo_date=payload.demo_date,
        demo_time=payload.demo_time.strip(),
        notes=payload.notes,
        status=DemoStatus.SCHEDULED.value,
        assigned_by=actor.id,
        assigned_at=now,
    )
    db.add(replacement)
    await db.flush()
    await log_audit(
        db, ENTITY_DEMO, replacement.id, "ASSIGNED",
        to_status=DemoStatus.SCHEDULED, actor=actor, remarks=f"replaces {demo.id}",
    )
    await commit_or_conflict(db, ENTITY, demo.id)
    await db.refresh(replacement)
    await db.refresh(lead)
    await dispatch_notification(
        notifier, DEMO_REASSIGNED, [demo.tutor_id], class_lead_id=lead.id, demo_id=demo.id,
    )
    await dispatch_notification(
        notifier, DEMO_ASSIGNED, [replacement.tutor_id],
        class_lead_id=lead.id, demo_id=replacement.id,
        demo_date=replacement.demo_date.isoformat(), demo_time=replacement.demo_time,
    )
    return LeadDemoResponse(lead=lead_to_response(lead), demo=demo_to_response(replacement))


async def reschedule_demo(
    db: AsyncSession,
    demo_id: UUID,
    actor: CurrentUser,
    payload: DemoReschedule,
) -> DemoResponse:
    """Change date, time or notes of a SCHEDULED demo without reassigning it."""
    demo, lead = await _load_demo_and_lead(db, demo_id)
    ensure_manages(lead, actor)
    if demo.status != DemoStatus.SCHEDULED.value:
        raise ServiceError("Only SCHEDULED demos can be rescheduled", status.HTTP_409_CONFLICT)
    if payload.demo_date is not None:
        demo.demo_date = payload.demo_date
    if payload.demo_time is not None:
        demo.demo_time = payload.demo_time.strip()
    if payload.notes is not None:
        demo.notes = payload.notes
    await log_audit(
        db, ENTITY_DEMO, demo.id, "RESCHEDULED",
        actor=actor, remarks=f"{demo.demo_date} {demo.demo_time}",
    )
    await commit_or_conflict(db, ENTITY, demo.id)
    await db.refresh(demo)
    return demo_to_response(demo)
