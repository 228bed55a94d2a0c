from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.api.v1.class_leads.schemas import ClassLeadResponse
from app.api.v1.final_classes.schemas import ClassSchedule, FinalClassResponse
from app.core.enums import DemoAttendanceStatus, DemoStatus


class DemoResponse(BaseModel):
    id: UUID
    class_lead_id: UUID
    tutor_id: UUID
    demo_date: date
    demo_time: str
    notes: Optional[str] = None
    status: DemoStatus
    assigned_by: UUID
    assigned_at: datetime
    attendance_status: Optional[DemoAttendanceStatus] = None
    topic_covered: Optional[str] = None
    duration: Optional[str] = None
    feedback: Optional[str] = None
    completed_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    version: int
    created_at: datetime

    class Config:
        from_attributes = True


class LeadDemoResponse(BaseModel):
    """Post-transition state of the lead, its demo and (after approval) the new class."""

    lead: ClassLeadResponse
    demo: DemoResponse
    final_class: Optional[FinalClassResponse] = None


class DemoComplete(BaseModel):
    """Demo outcome. topic_covered and duration are required when the student attended."""

    attendance_status: DemoAttendanceStatus
    topic_covered: Optional[str] = Field(None, max_length=2000)
    duration: Optional[str] = Field(None, max_length=50)
    feedback: Optional[str] = Field(None, max_length=4000)


class DemoApprove(BaseModel):
    coordinator_id: Optional[UUID] = Field(None, description="Coordinator who will own the class")
    parent_id: Optional[UUID] = Field(None, description="Parent account that approves attendance")
    schedule: Optional[ClassSchedule] = Field(None, description="Defaults to the lead's preferred days and timing")
    class_name: Optional[str] = Field(None, max_length=255)


class DemoReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class DemoReassign(BaseModel):
    tutor_id: UUID
    demo_date: date
    demo_time: str = Field(..., min_length=1, max_length=20)
    notes: Optional[str] = Field(None, max_length=2000)


class DemoReschedule(BaseModel):
    demo_date: Optional[date] = None
    demo_time: Optional[str] = Field(None, min_length=1, max_length=20)
    notes: Optional[str] = Field(None, max_length=2000)
