"""Announcement of a lead to the tutor pool, and the interests it collects."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Announcement(Base):
    """One posting of a lead. Reposting a rejected lead creates a new row."""

    __tablename__ = "announcements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_lead_id = Column(
        UUID(as_uuid=True),
        ForeignKey("class_leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    posted_by = Column(UUID(as_uuid=True), nullable=False)
    posted_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    class_lead = relationship("ClassLead", back_populates="announcements")
    interests = relationship(
        "TutorInterest",
        back_populates="announcement",
        cascade="all, delete-orphan",
        order_by="TutorInterest.interested_at",
    )


class TutorInterest(Base):
    """A tutor's expressed interest in an announcement. Append-only."""

    __tablename__ = "tutor_interests"
    __table_args__ = (
        UniqueConstraint("announcement_id", "tutor_id", name="uq_interest_announcement_tutor"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    announcement_id = Column(
        UUID(as_uuid=True),
        ForeignKey("announcements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tutor_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    interested_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    notes = Column(Text, nullable=True)
    match_score = Column(Integer, nullable=False, default=0)  # 0..100

    announcement = relationship("Announcement", back_populates="interests")
