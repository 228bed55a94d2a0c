from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TutorProfileSnapshot(BaseModel):
    """Tutor stats at the time of interest, supplied by the tutor directory."""

    subjects: List[str] = Field(default_factory=list)
    experience_hours: float = Field(0, ge=0)
    approval_ratio: float = Field(0, ge=0, le=1)
    ratings: float = Field(0, ge=0, le=5)


class ExpressInterest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)
    profile: TutorProfileSnapshot = Field(default_factory=TutorProfileSnapshot)


class InterestResponse(BaseModel):
    id: UUID
    announcement_id: UUID
    tutor_id: UUID
    interested_at: datetime
    notes: Optional[str] = None
    match_score: int

    class Config:
        from_attributes = True


class AnnouncementResponse(BaseModel):
    id: UUID
    class_lead_id: UUID
    posted_by: UUID
    posted_at: datetime
    is_active: bool
    closed_at: Optional[datetime] = None
    interest_count: int = 0

    class Config:
        from_attributes = True
