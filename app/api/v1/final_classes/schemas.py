from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import DayOfWeek, FinalClassStatus


class ClassSchedule(BaseModel):
    """Weekly schedule. No days means the class may meet any day."""

    days_of_week: List[DayOfWeek] = Field(default_factory=list)
    time_slot: Optional[str] = Field(None, max_length=100)


class FinalClassResponse(BaseModel):
    id: UUID
    class_lead_id: Optional[UUID] = None
    demo_id: Optional[UUID] = None
    class_name: str
    tutor_id: UUID
    coordinator_id: UUID
    parent_id: Optional[UUID] = None
    student_name: str
    subjects: List[str]
    grade: str
    board: str
    mode: str
    days_of_week: List[str]
    time_slot: Optional[str] = None
    classes_per_month: Optional[int] = None
    total_sessions: int
    completed_sessions: int
    start_date: date
    end_date: Optional[date] = None
    status: FinalClassStatus
    notes: Optional[str] = None
    converted_by: UUID
    converted_at: datetime
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CoordinatorReassign(BaseModel):
    coordinator_id: UUID


class FinalClassStatusUpdate(BaseModel):
    status: FinalClassStatus
    notes: Optional[str] = Field(None, max_length=2000)


class ParentAssign(BaseModel):
    parent_id: UUID
