"""Class lead: one tutoring inquiry for a single student or a fixed group."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import ClassLeadStatus
from app.db.session import Base


class ClassLead(Base):
    __tablename__ = "class_leads"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Human readable code shown to managers and tutors, e.g. CL-3F9A1C
    lead_code = Column(String(20), nullable=False, unique=True, index=True)
    student_type = Column(String(10), nullable=False)  # SINGLE, GROUP
    student_name = Column(String(255), nullable=False)
    student_gender = Column(String(1), nullable=True)  # M, F
    parent_name = Column(String(255), nullable=True)
    parent_email = Column(String(255), nullable=True)
    parent_phone = Column(String(50), nullable=True)
    grade = Column(String(50), nullable=False)
    board = Column(String(50), nullable=False)
    subjects = Column(JSON, nullable=False, default=list)
    mode = Column(String(10), nullable=False)  # ONLINE, OFFLINE, HYBRID
    city = Column(String(100), nullable=True)
    area = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    timing = Column(String(100), nullable=True)
    preferred_days = Column(JSON, nullable=False, default=list)
    classes_per_month = Column(Integer, nullable=True)
    class_duration_hours = Column(Float, nullable=True)
    # SINGLE leads: per-student amounts; GROUP leads: sums of student_details
    payment_amount = Column(Numeric(12, 2), nullable=True)
    tutor_fees = Column(Numeric(12, 2), nullable=True)
    number_of_students = Column(Integer, nullable=True)
    student_details = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), nullable=False, index=True)
    reassigned_to = Column(UUID(as_uuid=True), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=ClassLeadStatus.NEW.value, index=True)
    payment_received = Column(Boolean, nullable=False, default=False)
    rejection_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    announcements = relationship(
        "Announcement",
        back_populates="class_lead",
        cascade="all, delete-orphan",
        order_by="Announcement.posted_at",
    )
    demos = relationship(
        "DemoHistory",
        back_populates="class_lead",
        cascade="all, delete-orphan",
        order_by="DemoHistory.created_at",
    )

    __mapper_args__ = {"version_id_col": version}
