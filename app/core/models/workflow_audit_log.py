"""
Audit trail for lead, demo, class and attendance transitions. Every status change is logged.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base


class WorkflowAuditLog(Base):
    __tablename__ = "workflow_audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity_type = Column(String(50), nullable=False)  # CLASS_LEAD, DEMO, FINAL_CLASS, ATTENDANCE
    entity_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=True)
    performed_by = Column(UUID(as_uuid=True), nullable=True)
    performed_by_role = Column(String(50), nullable=True)
    remarks = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
