"""Lead lifecycle: create, announce, select a demo tutor, payment and manager reassignment."""

import logging
import secrets
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.announcements import service as announcement_service
from app.api.v1.demos.schemas import DemoResponse, LeadDemoResponse
from app.auth.schemas import CurrentUser
from app.core.audit_service import ENTITY_CLASS_LEAD, ENTITY_DEMO, log_audit
from app.core.enums import ClassLeadStatus, DemoStatus, UserRole
from app.core.exceptions import (
    DemoAlreadyActive,
    PermissionDenied,
    ServiceError,
    TutorNotInterested,
    ValidationError,
)
from app.core.models import ClassLead, DemoHistory, FinalClass
from app.core.notifications import (
    DEMO_ASSIGNED,
    LEAD_ANNOUNCED,
    PAYMENT_RECEIVED,
    Notifier,
    dispatch_notification,
)
from app.core.transitions import ACTIVE_DEMO_STATUSES, LEAD_TRANSITIONS, ensure_transition
from app.db.locking import commit_or_conflict, get_or_404, load_for_update

from .rules import lead_invariant_error, lead_totals, normalize_lead_fields
from .schemas import ClassLeadCreate, ClassLeadResponse, ClassLeadUpdate, DemoAssign, PostLeadResponse

logger = logging.getLogger(__name__)

ENTITY = "ClassLead"
# Leads whose details may still be edited
EDITABLE_STATUSES = (ClassLeadStatus.NEW.value, ClassLeadStatus.ANNOUNCED.value)


def lead_to_response(lead: ClassLead) -> ClassLeadResponse:
    total_fees, total_tutor_fees = lead_totals(
        lead.student_type, lead.payment_amount, lead.tutor_fees, lead.student_details
    )
    return ClassLeadResponse(
        id=lead.id,
        lead_code=lead.lead_code,
        student_type=lead.student_type,
        student_name=lead.student_name,
        student_gender=lead.student_gender,
        parent_name=lead.parent_name,
        parent_email=lead.parent_email,
        parent_phone=lead.parent_phone,
        grade=lead.grade,
        board=lead.board,
        subjects=list(lead.subjects or []),
        mode=lead.mode,
        city=lead.city,
        area=lead.area,
        address=lead.address,
        timing=lead.timing,
        preferred_days=list(lead.preferred_days or []),
        classes_per_month=lead.classes_per_month,
        class_duration_hours=lead.class_duration_hours,
        payment_amount=lead.payment_amount,
        tutor_fees=lead.tutor_fees,
        number_of_students=lead.number_of_students,
        student_details=lead.student_details,
        total_fees=total_fees,
        total_tutor_fees=total_tutor_fees,
        notes=lead.notes,
        created_by=lead.created_by,
        reassigned_to=lead.reassigned_to,
        status=lead.status,
        payment_received=lead.payment_received,
        rejection_reason=lead.rejection_reason,
        version=lead.version,
        created_at=lead.created_at,
        updated_at=lead.updated_at,
    )


def lead_owner(lead: ClassLead) -> UUID:
    """Manager currently responsible for the lead."""
    return lead.reassigned_to or lead.created_by


def ensure_manages(lead: ClassLead, actor: CurrentUser) -> None:
    if actor.role == UserRole.ADMIN:
        return
    if actor.role == UserRole.MANAGER and actor.id in (lead.created_by, lead.reassigned_to):
        return
    raise PermissionDenied("Only the lead's manager or an admin can change this lead")


async def transition_lead(
    db: AsyncSession,
    lead: ClassLead,
    target: ClassLeadStatus,
    actor: CurrentUser,
    action: str,
    remarks: Optional[str] = None,
) -> None:
    """Check current -> target against the lead table, apply it and audit. Caller must commit."""
    ensure_transition(ENTITY, LEAD_TRANSITIONS, lead.status, target)
    from_status = lead.status
    lead.status = target.value
    await log_audit(
        db, ENTITY_CLASS_LEAD, lead.id, action,
        from_status=from_status, to_status=target, actor=actor, remarks=remarks,
    )
    logger.info("Lead %s %s -> %s (%s)", lead.id, from_status, target.value, action)


async def find_active_demo(db: AsyncSession, class_lead_id: UUID) -> Optional[DemoHistory]:
    """The lead's SCHEDULED or COMPLETED demo, if any."""
    result = await db.execute(
        select(DemoHistory).where(
            DemoHistory.class_lead_id == class_lead_id,
            DemoHistory.status.in_([s.value for s in ACTIVE_DEMO_STATUSES]),
        )
    )
    return result.scalars().first()


async def _new_lead_code(db: AsyncSession) -> str:
    for _ in range(20):
        code = f"CL-{secrets.token_hex(3).upper()}"
        taken = await db.execute(select(ClassLead.id).where(ClassLead.lead_code == code))
        if taken.scalar_one_or_none() is None:
            return code
    raise ServiceError("Could not allocate a lead code", status.HTTP_500_INTERNAL_SERVER_ERROR)


# ----- CRUD -----
async def create_lead(
    db: AsyncSession,
    actor: CurrentUser,
    payload: ClassLeadCreate,
) -> ClassLeadResponse:
    data = normalize_lead_fields(payload.model_dump(mode="json"))
    lead = ClassLead(
        lead_code=await _new_lead_code(db),
        student_type=data["student_type"],
        student_name=data["student_name"].strip(),
        student_gender=data.get("student_gender"),
        parent_name=data.get("parent_name"),
        parent_email=data.get("parent_email"),
        parent_phone=data.get("parent_phone"),
        grade=data["grade"].strip(),
        board=data["board"].strip(),
        subjects=[s.strip() for s in data["subjects"]],
        mode=data["mode"],
        city=data.get("city"),
        area=data.get("area"),
        address=data.get("address"),
        timing=data.get("timing"),
        preferred_days=data.get("preferred_days") or [],
        classes_per_month=data.get("classes_per_month"),
        class_duration_hours=data.get("class_duration_hours"),
        payment_amount=payload.payment_amount,
        tutor_fees=payload.tutor_fees,
        number_of_students=data["number_of_students"],
        student_details=data.get("student_details"),
        notes=data.get("notes"),
        created_by=actor.id,
        status=ClassLeadStatus.NEW.value,
        payment_received=False,
    )
    db.add(lead)
    await db.flush()
    await log_audit(db, ENTITY_CLASS_LEAD, lead.id, "CREATED", to_status=ClassLeadStatus.NEW, actor=actor)
    await db.commit()
    await db.refresh(lead)
    logger.info("Lead %s created by %s", lead.lead_code, actor.id)
    return lead_to_response(lead)


async def get_lead(db: AsyncSession, lead_id: UUID) -> ClassLeadResponse:
    return lead_to_response(await get_or_404(db, ClassLead, lead_id, ENTITY))


async def list_leads(
    db: AsyncSession,
    actor: CurrentUser,
    status_filter: Optional[ClassLeadStatus] = None,
    page: int = 1,
    limit: int = 20,
) -> List[ClassLeadResponse]:
    """Admins see every lead; managers see leads they created or were reassigned."""
    q = select(ClassLead)
    if actor.role != UserRole.ADMIN:
        q = q.where(or_(ClassLead.created_by == actor.id, ClassLead.reassigned_to == actor.id))
    if status_filter is not None:
        q = q.where(ClassLead.status == status_filter.value)
    q = q.order_by(ClassLead.created_at.desc()).offset((page - 1) * limit).limit(limit)
    result = await db.execute(q)
    return [lead_to_response(lead) for lead in result.scalars().all()]


async def update_lead(
    db: AsyncSession,
    lead_id: UUID,
    actor: CurrentUser,
    payload: ClassLeadUpdate,
) -> ClassLeadResponse:
    """Edit lead details while it is NEW or ANNOUNCED."""
    lead = await load_for_update(db, ClassLead, lead_id, ENTITY)
    ensure_manages(lead, actor)
    if lead.status not in EDITABLE_STATUSES:
        raise ServiceError(
            f"Lead cannot be edited once it is {lead.status}",
            status.HTTP_400_BAD_REQUEST,
        )
    changes = payload.model_dump(mode="json", exclude_unset=True)
    merged = {
        column: getattr(lead, column)
        for column in (
            "student_type", "student_name", "student_gender", "parent_name", "parent_email",
            "parent_phone", "grade", "board", "subjects", "mode", "city", "area", "address",
            "timing", "preferred_days", "classes_per_month", "class_duration_hours",
            "payment_amount", "tutor_fees", "number_of_students", "student_details", "notes",
        )
    }
    merged.update(changes)
    if "student_details" in changes:
        # Count follows the new roster
        merged["number_of_students"] = None
    error = lead_invariant_error(merged)
    if error:
        raise ValidationError(error[1], field=error[0])
    normalized = normalize_lead_fields(merged)
    for column, value in normalized.items():
        if column in ("payment_amount", "tutor_fees"):
            value = getattr(payload, column) if column in changes else getattr(lead, column)
        setattr(lead, column, value)
    await log_audit(db, ENTITY_CLASS_LEAD, lead.id, "UPDATED", actor=actor)
    await commit_or_conflict(db, ENTITY, lead.id)
    await db.refresh(lead)
    return lead_to_response(lead)


async def delete_lead(db: AsyncSession, lead_id: UUID, actor: CurrentUser) -> None:
    """Delete a lead with its announcements, interests and demos. A converted class is kept."""
    lead = await load_for_update(db, ClassLead, lead_id, ENTITY)
    ensure_manages(lead, actor)
    await db.execute(
        update(FinalClass)
        .where(FinalClass.class_lead_id == lead.id)
        .values(class_lead_id=None, version=FinalClass.version + 1)
    )
    await log_audit(db, ENTITY_CLASS_LEAD, lead.id, "DELETED", from_status=lead.status, actor=actor)
    await db.delete(lead)
    await commit_or_conflict(db, ENTITY, lead_id)
    logger.info("Lead %s deleted by %s", lead_id, actor.id)


# ----- Lifecycle -----
async def post_lead(
    db: AsyncSession,
    lead_id: UUID,
    actor: CurrentUser,
    notifier: Optional[Notifier] = None,
) -> PostLeadResponse:
    """Announce a NEW lead, or repost a REJECTED one with a fresh announcement."""
    lead = await load_for_update(db, ClassLead, lead_id, ENTITY)
    ensure_manages(lead, actor)
    reposting = lead.status == ClassLeadStatus.REJECTED.value
    await transition_lead(db, lead, ClassLeadStatus.ANNOUNCED, actor, "REPOSTED" if reposting else "POSTED")
    lead.rejection_reason = None
    announcement = await announcement_service.open_announcement(db, lead.id, actor.id)
    await commit_or_conflict(db, ENTITY, lead.id)
    await db.refresh(lead)
    await db.refresh(announcement)
    await dispatch_notification(notifier, LEAD_ANNOUNCED, [], class_lead_id=lead.id, lead_code=lead.lead_code)
    return PostLeadResponse(
        lead=lead_to_response(lead),
        announcement=await announcement_service.announcement_to_response(db, announcement),
    )


async def select_tutor_for_demo(
    db: AsyncSession,
    lead_id: UUID,
    actor: CurrentUser,
    payload: DemoAssign,
    notifier: Optional[Notifier] = None,
) -> LeadDemoResponse:
    """Schedule a demo with an interested tutor and move the lead to DEMO_SCHEDULED."""
    lead = await load_for_update(db, ClassLead, lead_id, ENTITY)
    ensure_manages(lead, actor)
    active = await find_active_demo(db, lead.id)
    if active is not None:
        raise DemoAlreadyActive(
            f"Lead already has a {active.status} demo",
            {"demo_id": active.id, "demo_status": active.status},
        )
    ensure_transition(ENTITY, LEAD_TRANSITIONS, lead.status, ClassLeadStatus.DEMO_SCHEDULED)
    if not payload.direct_assignment and not await announcement_service.has_interest(db, lead.id, payload.tutor_id):
        raise TutorNotInterested(
            "Tutor has not expressed interest in this lead",
            {"tutor_id": payload.tutor_id},
        )

    demo = DemoHistory(
        class_lead_id=lead.id,
        tutor_id=payload.tutor_id,
        demo_date=payload.demo_date,
        demo_time=payload.demo_time.strip(),
        notes=payload.notes,
        status=DemoStatus.SCHEDULED.value,
        assigned_by=actor.id,
        assigned_at=datetime.utcnow(),
    )
    db.add(demo)
    await announcement_service.close_active_announcement(db, lead.id)
    await transition_lead(db, lead, ClassLeadStatus.DEMO_SCHEDULED, actor, "DEMO_ASSIGNED")
    await db.flush()
    await log_audit(
        db, ENTITY_DEMO, demo.id, "ASSIGNED",
        to_status=DemoStatus.SCHEDULED, actor=actor,
        remarks="direct assignment" if payload.direct_assignment else None,
    )
    await commit_or_conflict(db, ENTITY, lead.id)
    await db.refresh(lead)
    await db.refresh(demo)
    await dispatch_notification(
        notifier, DEMO_ASSIGNED, [demo.tutor_id],
        class_lead_id=lead.id, demo_id=demo.id,
        demo_date=demo.demo_date.isoformat(), demo_time=demo.demo_time,
    )
    return LeadDemoResponse(lead=lead_to_response(lead), demo=DemoResponse.model_validate(demo))


async def mark_payment_received(
    db: AsyncSession,
    lead_id: UUID,
    actor: CurrentUser,
    notifier: Optional[Notifier] = None,
) -> ClassLeadResponse:
    """CONVERTED -> PAYMENT_RECEIVED. Calling it again once received is a no-op."""
    lead = await load_for_update(db, ClassLead, lead_id, ENTITY)
    ensure_manages(lead, actor)
    if lead.payment_received and lead.status == ClassLeadStatus.PAYMENT_RECEIVED.value:
        return lead_to_response(lead)
    await transition_lead(db, lead, ClassLeadStatus.PAYMENT_RECEIVED, actor, "PAYMENT_RECEIVED")
    lead.payment_received = True
    await commit_or_conflict(db, ENTITY, lead.id)
    await db.refresh(lead)
    await dispatch_notification(notifier, PAYMENT_RECEIVED, [lead_owner(lead)], class_lead_id=lead.id)
    return lead_to_response(lead)


async def reassign_manager(
    db: AsyncSession,
    lead_id: UUID,
    actor: CurrentUser,
    manager_id: UUID,
) -> ClassLeadResponse:
    """Hand the lead to another manager. Status is untouched."""
    lead = await load_for_update(db, ClassLead, lead_id, ENTITY)
    ensure_manages(lead, actor)
    previous = lead.reassigned_to
    lead.reassigned_to = manager_id
    await log_audit(
        db, ENTITY_CLASS_LEAD, lead.id, "MANAGER_REASSIGNED",
        actor=actor, remarks=f"{previous or lead.created_by} -> {manager_id}",
    )
    await commit_or_conflict(db, ENTITY, lead.id)
    await db.refresh(lead)
    return lead_to_response(lead)
