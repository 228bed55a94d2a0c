"""Legal status transitions per aggregate, as source -> allowed targets."""

from typing import Dict, FrozenSet, Mapping

from app.core.enums import (
    AttendanceStatus,
    ClassLeadStatus,
    DemoStatus,
    FinalClassStatus,
)
from app.core.exceptions import InvalidTransition


LEAD_TRANSITIONS: Dict[ClassLeadStatus, FrozenSet[ClassLeadStatus]] = {
    ClassLeadStatus.NEW: frozenset({ClassLeadStatus.ANNOUNCED}),
    ClassLeadStatus.ANNOUNCED: frozenset({ClassLeadStatus.DEMO_SCHEDULED}),
    ClassLeadStatus.DEMO_SCHEDULED: frozenset({ClassLeadStatus.DEMO_COMPLETED}),
    ClassLeadStatus.DEMO_COMPLETED: frozenset({ClassLeadStatus.CONVERTED, ClassLeadStatus.REJECTED}),
    ClassLeadStatus.CONVERTED: frozenset({ClassLeadStatus.PAYMENT_RECEIVED}),
    ClassLeadStatus.PAYMENT_RECEIVED: frozenset(),
    # Repost
    ClassLeadStatus.REJECTED: frozenset({ClassLeadStatus.ANNOUNCED}),
}

DEMO_TRANSITIONS: Dict[DemoStatus, FrozenSet[DemoStatus]] = {
    DemoStatus.SCHEDULED: frozenset({DemoStatus.COMPLETED, DemoStatus.REASSIGNED}),
    DemoStatus.COMPLETED: frozenset({DemoStatus.APPROVED, DemoStatus.REJECTED}),
    DemoStatus.APPROVED: frozenset(),
    DemoStatus.REJECTED: frozenset(),
    DemoStatus.REASSIGNED: frozenset(),
}

FINAL_CLASS_TRANSITIONS: Dict[FinalClassStatus, FrozenSet[FinalClassStatus]] = {
    FinalClassStatus.ACTIVE: frozenset(
        {FinalClassStatus.PAUSED, FinalClassStatus.COMPLETED, FinalClassStatus.CANCELLED}
    ),
    FinalClassStatus.PAUSED: frozenset(
        {FinalClassStatus.ACTIVE, FinalClassStatus.COMPLETED, FinalClassStatus.CANCELLED}
    ),
    FinalClassStatus.COMPLETED: frozenset(),
    FinalClassStatus.CANCELLED: frozenset(),
}

ATTENDANCE_TRANSITIONS: Dict[AttendanceStatus, FrozenSet[AttendanceStatus]] = {
    AttendanceStatus.PENDING: frozenset({AttendanceStatus.COORDINATOR_APPROVED, AttendanceStatus.REJECTED}),
    AttendanceStatus.COORDINATOR_APPROVED: frozenset({AttendanceStatus.PARENT_APPROVED, AttendanceStatus.REJECTED}),
    AttendanceStatus.PARENT_APPROVED: frozenset(),
    AttendanceStatus.REJECTED: frozenset(),
}

# Demos that still block scheduling another demo for the same lead
ACTIVE_DEMO_STATUSES = (DemoStatus.SCHEDULED, DemoStatus.COMPLETED)


def _value(status) -> str:
    return getattr(status, "value", status)


def can_transition(table: Mapping, current, target) -> bool:
    """True if target is an allowed successor of current in the given table."""
    try:
        current = type(target)(_value(current))
    except ValueError:
        return False
    return target in table.get(current, frozenset())


def ensure_transition(entity: str, table: Mapping, current, target) -> None:
    """Raise InvalidTransition unless current -> target is legal."""
    if not can_transition(table, current, target):
        raise InvalidTransition(entity, _value(current), _value(target))
