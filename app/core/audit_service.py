"""
Audit logging for workflow state changes. Call on every transition, inside the same transaction.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.core.models import WorkflowAuditLog

ENTITY_CLASS_LEAD = "CLASS_LEAD"
ENTITY_DEMO = "DEMO"
ENTITY_FINAL_CLASS = "FINAL_CLASS"
ENTITY_ATTENDANCE = "ATTENDANCE"


def _value(status):
    return getattr(status, "value", status)


async def log_audit(
    db: AsyncSession,
    entity_type: str,
    entity_id: UUID,
    action: str,
    *,
    from_status=None,
    to_status=None,
    actor: Optional[CurrentUser] = None,
    remarks: Optional[str] = None,
) -> None:
    """Append one audit log entry. Caller must commit."""
    entry = WorkflowAuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        from_status=_value(from_status),
        to_status=_value(to_status),
        performed_by=actor.id if actor else None,
        performed_by_role=actor.role.value if actor else None,
        remarks=remarks,
        timestamp=datetime.utcnow(),
    )
    db.add(entry)
