"""Per-session attendance for a final class, approved by coordinator then parent."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import AttendanceStatus
from app.db.session import Base


class Attendance(Base):
    """One row per (final_class_id, session_date)."""

    __tablename__ = "attendances"
    __table_args__ = (
        UniqueConstraint("final_class_id", "session_date", name="uq_attendance_class_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    final_class_id = Column(
        UUID(as_uuid=True),
        ForeignKey("final_classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_date = Column(Date, nullable=False)
    session_number = Column(Integer, nullable=False)
    topic_covered = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    student_attendance_status = Column(String(10), nullable=False)  # PRESENT, ABSENT, LATE
    status = Column(String(30), nullable=False, default=AttendanceStatus.PENDING.value, index=True)
    submitted_by = Column(UUID(as_uuid=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    coordinator_approved_by = Column(UUID(as_uuid=True), nullable=True)
    coordinator_approved_at = Column(DateTime(timezone=True), nullable=True)
    parent_approved_by = Column(UUID(as_uuid=True), nullable=True)
    parent_approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(UUID(as_uuid=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    final_class = relationship("FinalClass", back_populates="attendances")

    __mapper_args__ = {"version_id_col": version}
