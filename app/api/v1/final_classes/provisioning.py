"""Creates the FinalClass for an approved demo, inside the approval transaction."""

import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.core.audit_service import ENTITY_FINAL_CLASS, log_audit
from app.core.config import settings
from app.core.enums import FinalClassStatus
from app.core.exceptions import ProvisioningFailure
from app.core.models import ClassLead, DemoHistory, FinalClass

from .schemas import ClassSchedule

logger = logging.getLogger(__name__)


def _schedule_from_lead(lead: ClassLead, schedule: Optional[ClassSchedule]) -> ClassSchedule:
    if schedule is not None:
        return ClassSchedule(
            days_of_week=schedule.days_of_week,
            time_slot=schedule.time_slot or lead.timing,
        )
    return ClassSchedule(days_of_week=lead.preferred_days or [], time_slot=lead.timing)


def _default_class_name(lead: ClassLead) -> str:
    subjects = ", ".join(lead.subjects or [])
    return f"{lead.student_name} - {subjects} (Grade {lead.grade})"


async def provision_final_class(
    db: AsyncSession,
    lead: ClassLead,
    demo: DemoHistory,
    coordinator_id: UUID,
    actor: CurrentUser,
    parent_id: Optional[UUID] = None,
    schedule: Optional[ClassSchedule] = None,
    class_name: Optional[str] = None,
) -> FinalClass:
    """
    Add the class for the approved demo and flush it. Does not commit: the caller
    commits it together with the demo and lead transitions, or rolls everything back.
    Any failure is raised as ProvisioningFailure.
    """
    existing = (
        await db.execute(select(FinalClass.id).where(FinalClass.class_lead_id == lead.id))
    ).scalar_one_or_none()
    if existing is not None:
        raise ProvisioningFailure("A class already exists for this lead", lead.id)

    plan = _schedule_from_lead(lead, schedule)
    classes_per_month = lead.classes_per_month or settings.default_classes_per_month
    final_class = FinalClass(
        class_lead_id=lead.id,
        demo_id=demo.id,
        class_name=(class_name or "").strip() or _default_class_name(lead),
        tutor_id=demo.tutor_id,
        coordinator_id=coordinator_id,
        parent_id=parent_id,
        student_name=lead.student_name,
        subjects=list(lead.subjects or []),
        grade=lead.grade,
        board=lead.board,
        mode=lead.mode,
        days_of_week=[getattr(d, "value", d) for d in plan.days_of_week],
        time_slot=plan.time_slot,
        classes_per_month=classes_per_month,
        total_sessions=classes_per_month,
        completed_sessions=0,
        start_date=date.today(),
        status=FinalClassStatus.ACTIVE.value,
        converted_by=actor.id,
        converted_at=datetime.utcnow(),
    )
    db.add(final_class)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        raise ProvisioningFailure(f"Class could not be created: {exc}", lead.id) from exc
    await log_audit(
        db, ENTITY_FINAL_CLASS, final_class.id, "PROVISIONED",
        to_status=FinalClassStatus.ACTIVE, actor=actor, remarks=f"demo {demo.id}",
    )
    logger.info("Class %s provisioned for lead %s (coordinator %s)", final_class.id, lead.id, coordinator_id)
    return final_class
