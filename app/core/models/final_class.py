"""Recurring class created when a demo is approved. Outlives its lead."""

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import FinalClassStatus
from app.db.session import Base


class FinalClass(Base):
    __tablename__ = "final_classes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Created once per lead; nulled (not cascaded) when the lead is deleted
    class_lead_id = Column(
        UUID(as_uuid=True),
        ForeignKey("class_leads.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    demo_id = Column(UUID(as_uuid=True), nullable=True)
    class_name = Column(String(255), nullable=False)
    tutor_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    coordinator_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    parent_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    student_name = Column(String(255), nullable=False)
    subjects = Column(JSON, nullable=False, default=list)
    grade = Column(String(50), nullable=False)
    board = Column(String(50), nullable=False)
    mode = Column(String(10), nullable=False)
    # Weekday names (MONDAY..SUNDAY); empty means every day
    days_of_week = Column(JSON, nullable=False, default=list)
    time_slot = Column(String(100), nullable=True)
    classes_per_month = Column(Integer, nullable=True)
    total_sessions = Column(Integer, nullable=False, default=0)
    completed_sessions = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=False, default=date.today)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=FinalClassStatus.ACTIVE.value, index=True)
    notes = Column(Text, nullable=True)
    converted_by = Column(UUID(as_uuid=True), nullable=False)
    converted_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    class_lead = relationship("ClassLead", foreign_keys=[class_lead_id])
    attendances = relationship(
        "Attendance",
        back_populates="final_class",
        cascade="all, delete-orphan",
        order_by="Attendance.session_date",
    )

    __mapper_args__ = {"version_id_col": version}
