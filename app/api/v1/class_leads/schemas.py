from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.api.v1.announcements.schemas import AnnouncementResponse
from app.core.enums import ClassLeadStatus, DayOfWeek, Gender, StudentType, TeachingMode

from .rules import lead_invariant_error


# ----- Group students -----
class GroupStudent(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    gender: Gender
    fees: Decimal = Field(..., ge=0)
    tutor_fees: Decimal = Field(..., ge=0)
    parent_name: Optional[str] = Field(None, max_length=255)
    parent_email: Optional[EmailStr] = None
    parent_phone: Optional[str] = Field(None, max_length=50)
    grade: Optional[str] = Field(None, max_length=50)
    board: Optional[str] = Field(None, max_length=50)
    subjects: Optional[List[str]] = None


# ----- Create / Update -----
class ClassLeadCreate(BaseModel):
    """Single student (student_name + fees) or group (student_details with per-student fees)."""

    student_type: StudentType
    student_name: Optional[str] = Field(None, max_length=255)
    student_gender: Optional[Gender] = None
    parent_name: Optional[str] = Field(None, max_length=255)
    parent_email: Optional[EmailStr] = None
    parent_phone: Optional[str] = Field(None, max_length=50)
    grade: str = Field(..., min_length=1, max_length=50)
    board: str = Field(..., min_length=1, max_length=50)
    subjects: List[str] = Field(..., min_length=1)
    mode: TeachingMode
    city: Optional[str] = Field(None, max_length=100)
    area: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=2000)
    timing: Optional[str] = Field(None, max_length=100, description="Preferred time slot, e.g. 17:00-18:00")
    preferred_days: List[DayOfWeek] = Field(default_factory=list)
    classes_per_month: Optional[int] = Field(None, ge=1, le=62)
    class_duration_hours: Optional[float] = Field(None, gt=0, le=12)
    payment_amount: Optional[Decimal] = Field(None, ge=0)
    tutor_fees: Optional[Decimal] = Field(None, ge=0)
    number_of_students: Optional[int] = Field(None, ge=1)
    student_details: Optional[List[GroupStudent]] = None
    notes: Optional[str] = Field(None, max_length=4000)

    @model_validator(mode="after")
    def validate_lead_shape(self) -> "ClassLeadCreate":
        error = lead_invariant_error(self.model_dump())
        if error:
            raise ValueError(error[1])
        return self


class ClassLeadUpdate(BaseModel):
    """Partial update; the merged lead must still satisfy every lead invariant."""

    student_name: Optional[str] = Field(None, max_length=255)
    student_gender: Optional[Gender] = None
    parent_name: Optional[str] = Field(None, max_length=255)
    parent_email: Optional[EmailStr] = None
    parent_phone: Optional[str] = Field(None, max_length=50)
    grade: Optional[str] = Field(None, min_length=1, max_length=50)
    board: Optional[str] = Field(None, min_length=1, max_length=50)
    subjects: Optional[List[str]] = None
    mode: Optional[TeachingMode] = None
    city: Optional[str] = Field(None, max_length=100)
    area: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=2000)
    timing: Optional[str] = Field(None, max_length=100)
    preferred_days: Optional[List[DayOfWeek]] = None
    classes_per_month: Optional[int] = Field(None, ge=1, le=62)
    class_duration_hours: Optional[float] = Field(None, gt=0, le=12)
    payment_amount: Optional[Decimal] = Field(None, ge=0)
    tutor_fees: Optional[Decimal] = Field(None, ge=0)
    student_details: Optional[List[GroupStudent]] = None
    notes: Optional[str] = Field(None, max_length=4000)


# ----- Response -----
class ClassLeadResponse(BaseModel):
    id: UUID
    lead_code: str
    student_type: StudentType
    student_name: str
    student_gender: Optional[str] = None
    parent_name: Optional[str] = None
    parent_email: Optional[str] = None
    parent_phone: Optional[str] = None
    grade: str
    board: str
    subjects: List[str]
    mode: TeachingMode
    city: Optional[str] = None
    area: Optional[str] = None
    address: Optional[str] = None
    timing: Optional[str] = None
    preferred_days: List[str] = Field(default_factory=list)
    classes_per_month: Optional[int] = None
    class_duration_hours: Optional[float] = None
    payment_amount: Optional[Decimal] = None
    tutor_fees: Optional[Decimal] = None
    number_of_students: Optional[int] = None
    student_details: Optional[List[dict]] = None
    total_fees: Decimal
    total_tutor_fees: Decimal
    notes: Optional[str] = None
    created_by: UUID
    reassigned_to: Optional[UUID] = None
    status: ClassLeadStatus
    payment_received: bool
    rejection_reason: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


# ----- Workflow requests -----
class DemoAssign(BaseModel):
    """Select an interested tutor for a demo. direct_assignment skips the interest check."""

    tutor_id: UUID
    demo_date: date
    demo_time: str = Field(..., min_length=1, max_length=20)
    notes: Optional[str] = Field(None, max_length=2000)
    direct_assignment: bool = False


class ManagerReassign(BaseModel):
    manager_id: UUID


class PostLeadResponse(BaseModel):
    lead: ClassLeadResponse
    announcement: AnnouncementResponse
