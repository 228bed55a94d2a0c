from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.api.v1.final_classes.schemas import FinalClassResponse
from app.core.enums import AttendanceStatus, StudentAttendanceStatus


class AttendanceSubmit(BaseModel):
    """Tutor submits one session. session_date must fall on a scheduled weekday."""

    final_class_id: UUID
    session_date: date
    student_attendance_status: StudentAttendanceStatus = StudentAttendanceStatus.PRESENT
    topic_covered: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=4000)


class AttendanceReject(BaseModel):
    reason: str = Field("", max_length=2000, description="Required; blank reasons are refused")


class AttendanceResponse(BaseModel):
    id: UUID
    final_class_id: UUID
    session_date: date
    session_number: int
    topic_covered: Optional[str] = None
    notes: Optional[str] = None
    student_attendance_status: StudentAttendanceStatus
    status: AttendanceStatus
    submitted_by: UUID
    submitted_at: datetime
    coordinator_approved_by: Optional[UUID] = None
    coordinator_approved_at: Optional[datetime] = None
    parent_approved_by: Optional[UUID] = None
    parent_approved_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AttendanceSubmitResponse(BaseModel):
    """The new record and its class with the updated session counter."""

    attendance: AttendanceResponse
    final_class: FinalClassResponse
