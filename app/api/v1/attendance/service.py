"""Attendance pipeline: submission guards and the coordinator -> parent approval chain."""

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.api.v1.final_classes.service import class_to_response, ensure_can_view
from app.auth.schemas import CurrentUser
from app.core.audit_service import ENTITY_ATTENDANCE, log_audit
from app.core.enums import AttendanceStatus, DayOfWeek, FinalClassStatus, UserRole
from app.core.exceptions import (
    AlreadySubmitted,
    ClassNotActive,
    ConcurrencyConflict,
    CoordinatorApprovalRequired,
    NotAScheduledDay,
    PermissionDenied,
    ValidationError,
)
from app.core.models import Attendance, FinalClass
from app.core.notifications import (
    ATTENDANCE_COORDINATOR_APPROVED,
    ATTENDANCE_PARENT_APPROVED,
    ATTENDANCE_REJECTED,
    ATTENDANCE_SUBMITTED,
    Notifier,
    dispatch_notification,
)
from app.core.transitions import ATTENDANCE_TRANSITIONS, ensure_transition
from app.db.locking import commit_or_conflict, get_or_404, load_for_update

from .schemas import AttendanceResponse, AttendanceSubmit, AttendanceSubmitResponse

logger = logging.getLogger(__name__)

ENTITY = "Attendance"
_WEEKDAYS = list(DayOfWeek)


def _to_response(a: Attendance) -> AttendanceResponse:
    return AttendanceResponse.model_validate(a)


def weekday_name(d: date) -> str:
    return _WEEKDAYS[d.weekday()].value


def is_scheduled_day(days_of_week: Optional[Iterable[str]], session_date: date) -> bool:
    """A class with no configured days meets every day."""
    days = {str(d).strip().upper() for d in (days_of_week or []) if d}
    if not days:
        return True
    return weekday_name(session_date) in days


async def _find_for_date(db: AsyncSession, final_class_id: UUID, session_date: date) -> Optional[Attendance]:
    result = await db.execute(
        select(Attendance).where(
            Attendance.final_class_id == final_class_id,
            Attendance.session_date == session_date,
        )
    )
    return result.scalar_one_or_none()


async def _load_with_class(db: AsyncSession, attendance_id: UUID):
    attendance = await load_for_update(db, Attendance, attendance_id, ENTITY)
    fc = await get_or_404(db, FinalClass, attendance.final_class_id, "FinalClass")
    return attendance, fc


async def _apply_transition(
    db: AsyncSession,
    attendance: Attendance,
    target: AttendanceStatus,
    actor: CurrentUser,
    remarks: Optional[str] = None,
) -> None:
    ensure_transition(ENTITY, ATTENDANCE_TRANSITIONS, attendance.status, target)
    from_status = attendance.status
    attendance.status = target.value
    await log_audit(
        db, ENTITY_ATTENDANCE, attendance.id, target.value,
        from_status=from_status, to_status=target, actor=actor, remarks=remarks,
    )


# ----- Submit -----
async def submit_attendance(
    db: AsyncSession,
    actor: CurrentUser,
    payload: AttendanceSubmit,
    notifier: Optional[Notifier] = None,
) -> AttendanceSubmitResponse:
    """
    Create a PENDING record for a scheduled session and count it on the class.
    Raises NotAScheduledDay off-schedule and AlreadySubmitted (with the existing id)
    when the date already has a record.
    """
    if payload.session_date > date.today():
        raise ValidationError("Cannot submit attendance for a future date", field="session_date")

    fc = await load_for_update(db, FinalClass, payload.final_class_id, "FinalClass")
    if actor.role != UserRole.ADMIN and actor.id != fc.tutor_id:
        raise PermissionDenied("Only the class tutor can submit attendance")
    if fc.status != FinalClassStatus.ACTIVE.value:
        raise ClassNotActive(
            f"Attendance can only be submitted for ACTIVE classes (class is {fc.status})",
            {"final_class_id": fc.id, "class_status": fc.status},
        )
    if not is_scheduled_day(fc.days_of_week, payload.session_date):
        raise NotAScheduledDay(
            f"{payload.session_date} is a {weekday_name(payload.session_date)}, not a scheduled class day",
            {"session_date": payload.session_date.isoformat(), "days_of_week": list(fc.days_of_week or [])},
        )
    existing = await _find_for_date(db, fc.id, payload.session_date)
    if existing is not None:
        raise AlreadySubmitted(existing.id, payload.session_date)

    fc.completed_sessions = (fc.completed_sessions or 0) + 1
    now = datetime.utcnow()
    attendance = Attendance(
        final_class_id=fc.id,
        session_date=payload.session_date,
        session_number=fc.completed_sessions,
        topic_covered=payload.topic_covered,
        notes=payload.notes,
        student_attendance_status=payload.student_attendance_status.value,
        status=AttendanceStatus.PENDING.value,
        submitted_by=actor.id,
        submitted_at=now,
    )
    db.add(attendance)
    try:
        await db.flush()
        await log_audit(
            db, ENTITY_ATTENDANCE, attendance.id, "SUBMITTED",
            to_status=AttendanceStatus.PENDING, actor=actor,
        )
        await db.commit()
    except IntegrityError as exc:
        # Another submission for the same date committed first
        await db.rollback()
        winner = await _find_for_date(db, payload.final_class_id, payload.session_date)
        if winner is None:
            logger.warning("Attendance insert for class %s failed without a same-date record", payload.final_class_id)
            raise ConcurrencyConflict(ENTITY, payload.final_class_id) from exc
        raise AlreadySubmitted(winner.id, payload.session_date)
    except StaleDataError:
        # Lost the session counter race; report the winner when it was the same date
        await db.rollback()
        winner = await _find_for_date(db, payload.final_class_id, payload.session_date)
        if winner is not None:
            raise AlreadySubmitted(winner.id, payload.session_date)
        raise ConcurrencyConflict("FinalClass", payload.final_class_id)

    await db.refresh(attendance)
    await db.refresh(fc)
    logger.info(
        "Attendance %s submitted for class %s on %s (session %s)",
        attendance.id, fc.id, attendance.session_date, attendance.session_number,
    )
    await dispatch_notification(
        notifier, ATTENDANCE_SUBMITTED, [fc.coordinator_id],
        attendance_id=attendance.id, final_class_id=fc.id,
        session_date=attendance.session_date.isoformat(),
    )
    return AttendanceSubmitResponse(attendance=_to_response(attendance), final_class=class_to_response(fc))


# ----- Approvals -----
async def coordinator_approve(
    db: AsyncSession,
    attendance_id: UUID,
    actor: CurrentUser,
    notifier: Optional[Notifier] = None,
) -> AttendanceResponse:
    """PENDING -> COORDINATOR_APPROVED. Approving an already coordinator-approved record is a no-op."""
    attendance, fc = await _load_with_class(db, attendance_id)
    if actor.role != UserRole.ADMIN and actor.id != fc.coordinator_id:
        raise PermissionDenied("Only the class coordinator can approve this attendance")
    if attendance.status == AttendanceStatus.COORDINATOR_APPROVED.value:
        return _to_response(attendance)

    await _apply_transition(db, attendance, AttendanceStatus.COORDINATOR_APPROVED, actor)
    attendance.coordinator_approved_by = actor.id
    attendance.coordinator_approved_at = datetime.utcnow()
    await commit_or_conflict(db, ENTITY, attendance.id)
    await db.refresh(attendance)
    await dispatch_notification(
        notifier, ATTENDANCE_COORDINATOR_APPROVED, [fc.parent_id, fc.tutor_id],
        attendance_id=attendance.id, final_class_id=fc.id,
    )
    return _to_response(attendance)


async def parent_approve(
    db: AsyncSession,
    attendance_id: UUID,
    actor: CurrentUser,
    notifier: Optional[Notifier] = None,
) -> AttendanceResponse:
    """COORDINATOR_APPROVED -> PARENT_APPROVED. The coordinator must approve first."""
    attendance, fc = await _load_with_class(db, attendance_id)
    if actor.role != UserRole.ADMIN and actor.id != fc.parent_id:
        raise PermissionDenied("Only the class parent can approve this attendance")
    if attendance.status == AttendanceStatus.PENDING.value:
        raise CoordinatorApprovalRequired(
            "Coordinator approval is required before parent approval",
            {"attendance_id": attendance.id, "status": attendance.status},
        )

    await _apply_transition(db, attendance, AttendanceStatus.PARENT_APPROVED, actor)
    attendance.parent_approved_by = actor.id
    attendance.parent_approved_at = datetime.utcnow()
    await commit_or_conflict(db, ENTITY, attendance.id)
    await db.refresh(attendance)
    await dispatch_notification(
        notifier, ATTENDANCE_PARENT_APPROVED, [fc.tutor_id, fc.coordinator_id],
        attendance_id=attendance.id, final_class_id=fc.id,
    )
    return _to_response(attendance)


async def reject_attendance(
    db: AsyncSession,
    attendance_id: UUID,
    actor: CurrentUser,
    reason: Optional[str],
    notifier: Optional[Notifier] = None,
) -> AttendanceResponse:
    """PENDING or COORDINATOR_APPROVED -> REJECTED. A reason is mandatory."""
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required", field="reason")

    attendance, fc = await _load_with_class(db, attendance_id)
    if actor.role != UserRole.ADMIN and actor.id not in (fc.coordinator_id, fc.parent_id):
        raise PermissionDenied("Only the class coordinator or parent can reject this attendance")

    await _apply_transition(db, attendance, AttendanceStatus.REJECTED, actor, remarks=reason.strip())
    attendance.rejected_by = actor.id
    attendance.rejected_at = datetime.utcnow()
    attendance.rejection_reason = reason.strip()
    await commit_or_conflict(db, ENTITY, attendance.id)
    await db.refresh(attendance)
    await dispatch_notification(
        notifier, ATTENDANCE_REJECTED, [fc.tutor_id],
        attendance_id=attendance.id, final_class_id=fc.id, reason=attendance.rejection_reason,
    )
    return _to_response(attendance)


# ----- Reads -----
async def get_attendance(db: AsyncSession, attendance_id: UUID, actor: CurrentUser) -> AttendanceResponse:
    attendance = await get_or_404(db, Attendance, attendance_id, ENTITY)
    fc = await get_or_404(db, FinalClass, attendance.final_class_id, "FinalClass")
    ensure_can_view(fc, actor)
    return _to_response(attendance)


async def list_class_attendance(
    db: AsyncSession,
    final_class_id: UUID,
    actor: CurrentUser,
    status_filter: Optional[AttendanceStatus] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> List[AttendanceResponse]:
    """Attendance history of a class ordered by session date."""
    fc = await get_or_404(db, FinalClass, final_class_id, "FinalClass")
    ensure_can_view(fc, actor)
    q = select(Attendance).where(Attendance.final_class_id == final_class_id)
    if status_filter is not None:
        q = q.where(Attendance.status == status_filter.value)
    if from_date is not None:
        q = q.where(Attendance.session_date >= from_date)
    if to_date is not None:
        q = q.where(Attendance.session_date <= to_date)
    result = await db.execute(q.order_by(Attendance.session_date.asc()))
    return [_to_response(a) for a in result.scalars().all()]


async def list_pending_approvals(db: AsyncSession, actor: CurrentUser) -> List[AttendanceResponse]:
    """Records waiting on this actor: PENDING for coordinators, COORDINATOR_APPROVED for parents."""
    q = select(Attendance).join(FinalClass, FinalClass.id == Attendance.final_class_id)
    if actor.role == UserRole.COORDINATOR:
        q = q.where(
            FinalClass.coordinator_id == actor.id,
            Attendance.status == AttendanceStatus.PENDING.value,
        )
    elif actor.role == UserRole.PARENT:
        q = q.where(
            FinalClass.parent_id == actor.id,
            Attendance.status == AttendanceStatus.COORDINATOR_APPROVED.value,
        )
    else:
        q = q.where(
            Attendance.status.in_(
                [AttendanceStatus.PENDING.value, AttendanceStatus.COORDINATOR_APPROVED.value]
            )
        )
    result = await db.execute(q.order_by(Attendance.session_date.asc()))
    return [_to_response(a) for a in result.scalars().all()]
