from app.core.models.class_lead import ClassLead
from app.core.models.announcement import Announcement, TutorInterest
from app.core.models.demo_history import DemoHistory
from app.core.models.final_class import FinalClass
from app.core.models.attendance import Attendance
from app.core.models.workflow_audit_log import WorkflowAuditLog

__all__ = [
    "ClassLead",
    "Announcement",
    "TutorInterest",
    "DemoHistory",
    "FinalClass",
    "Attendance",
    "WorkflowAuditLog",
]
