"""Field invariants of a class lead, shared by request validation and partial updates."""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from app.core.enums import DayOfWeek, StudentType, TeachingMode

# Modes that need a physical location
LOCATION_MODES = (TeachingMode.OFFLINE.value, TeachingMode.HYBRID.value)
LOCATION_FIELDS = ("city", "area", "address")
SINGLE_FEE_FIELDS = ("payment_amount", "tutor_fees")


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def lead_invariant_error(data: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """Return (field, message) for the first broken invariant, or None."""
    student_type = _value(data.get("student_type"))
    details: List[Dict[str, Any]] = data.get("student_details") or []

    if not data.get("subjects"):
        return "subjects", "At least one subject is required"

    if student_type == StudentType.SINGLE.value:
        if _blank(data.get("student_name")):
            return "student_name", "student_name is required for a single student lead"
        if details:
            return "student_details", "student_details is only allowed for group leads"
        if data.get("number_of_students") not in (None, 1):
            return "number_of_students", "A single student lead has exactly one student"
    elif student_type == StudentType.GROUP.value:
        for field in SINGLE_FEE_FIELDS:
            if data.get(field) is not None:
                return field, f"{field} is not allowed on group leads; set per-student fees"
        if len(details) < 2:
            return "student_details", "A group lead needs at least two students"
        count = data.get("number_of_students")
        if count is not None and count != len(details):
            return "number_of_students", "number_of_students must match student_details"
    else:
        return "student_type", "student_type must be SINGLE or GROUP"

    if _value(data.get("mode")) in LOCATION_MODES:
        for field in LOCATION_FIELDS:
            if _blank(data.get(field)):
                return field, f"{field} is required for {_value(data.get('mode'))} classes"

    for day in data.get("preferred_days") or []:
        if _value(day) not in DayOfWeek.__members__:
            return "preferred_days", f"Unknown weekday: {day}"
    return None


def normalize_lead_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Derive stored fields: student count, group display name, location cleared for online."""
    out = dict(data)
    details = out.get("student_details") or []
    if _value(out.get("student_type")) == StudentType.GROUP.value:
        out["number_of_students"] = len(details)
        if _blank(out.get("student_name")):
            out["student_name"] = ", ".join(d.get("name", "") for d in details)
    else:
        out["number_of_students"] = 1
        out["student_details"] = None
    if _value(out.get("mode")) not in LOCATION_MODES:
        for field in LOCATION_FIELDS:
            out[field] = None
    return out


def lead_totals(
    student_type: str,
    payment_amount: Optional[Decimal],
    tutor_fees: Optional[Decimal],
    student_details: Optional[List[Dict[str, Any]]],
) -> Tuple[Decimal, Decimal]:
    """(total fees, total tutor payout). Group leads sum their students."""
    if student_type == StudentType.GROUP.value:
        details = student_details or []
        return (
            sum((Decimal(str(d.get("fees") or 0)) for d in details), Decimal("0")),
            sum((Decimal(str(d.get("tutor_fees") or 0)) for d in details), Decimal("0")),
        )
    return Decimal(str(payment_amount or 0)), Decimal(str(tutor_fees or 0))
