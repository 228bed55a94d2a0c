from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    TUTOR = "TUTOR"
    COORDINATOR = "COORDINATOR"
    PARENT = "PARENT"


class StudentType(str, Enum):
    SINGLE = "SINGLE"
    GROUP = "GROUP"


class Gender(str, Enum):
    M = "M"
    F = "F"


class TeachingMode(str, Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    HYBRID = "HYBRID"


class ClassLeadStatus(str, Enum):
    NEW = "NEW"
    ANNOUNCED = "ANNOUNCED"
    DEMO_SCHEDULED = "DEMO_SCHEDULED"
    DEMO_COMPLETED = "DEMO_COMPLETED"
    CONVERTED = "CONVERTED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    REJECTED = "REJECTED"


class DemoStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REASSIGNED = "REASSIGNED"


class DemoAttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"


class FinalClassStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AttendanceStatus(str, Enum):
    PENDING = "PENDING"
    COORDINATOR_APPROVED = "COORDINATOR_APPROVED"
    PARENT_APPROVED = "PARENT_APPROVED"
    REJECTED = "REJECTED"


class StudentAttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"


class DayOfWeek(str, Enum):
    """Weekday names in date.weekday() order (0=Monday .. 6=Sunday)."""

    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"
