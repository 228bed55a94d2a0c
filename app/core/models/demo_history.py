"""One demo attempt for a lead. Reassignment closes the row and opens a new one."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import DemoStatus
from app.db.session import Base


class DemoHistory(Base):
    __tablename__ = "demo_histories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_lead_id = Column(
        UUID(as_uuid=True),
        ForeignKey("class_leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tutor_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    demo_date = Column(Date, nullable=False)
    demo_time = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=DemoStatus.SCHEDULED.value, index=True)
    assigned_by = Column(UUID(as_uuid=True), nullable=False)
    assigned_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    # Outcome, filled by complete
    attendance_status = Column(String(10), nullable=True)  # PRESENT, ABSENT
    topic_covered = Column(Text, nullable=True)
    duration = Column(String(50), nullable=True)
    feedback = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    # Resolution, filled by approve / reject / reassign
    resolved_by = Column(UUID(as_uuid=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    class_lead = relationship("ClassLead", back_populates="demos")

    __mapper_args__ = {"version_id_col": version}
