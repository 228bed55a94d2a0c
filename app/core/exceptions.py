from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_detail(self) -> Dict[str, Any]:
        """Payload for HTTPException.detail: kind + message + offending field/state."""
        detail: Dict[str, Any] = {"code": self.code, "message": self.message}
        for key, value in self.details.items():
            detail[key] = str(value) if isinstance(value, UUID) else value
        return detail


class NotFound(ServiceError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} not found",
            status.HTTP_404_NOT_FOUND,
            {"entity": entity, "id": entity_id},
        )


class PermissionDenied(ServiceError):
    code = "PERMISSION_DENIED"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class InvalidTransition(ServiceError):
    """Attempted transition is not in the legal successor set of the current state."""

    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, from_status: str, attempted: str) -> None:
        super().__init__(
            f"{entity} cannot move from {from_status} to {attempted}",
            status.HTTP_409_CONFLICT,
            {"entity": entity, "from": from_status, "attempted": attempted},
        )
        self.from_status = from_status
        self.attempted = attempted


class ValidationError(ServiceError):
    """A field required by the transition is missing or malformed."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(
            message,
            status.HTTP_400_BAD_REQUEST,
            {"field": field} if field else None,
        )
        self.field = field


class GuardViolation(ServiceError):
    code = "GUARD_VIOLATION"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class NotAScheduledDay(GuardViolation):
    code = "NOT_A_SCHEDULED_DAY"


class DemoAlreadyActive(GuardViolation):
    code = "DEMO_ALREADY_ACTIVE"


class CoordinatorRequired(GuardViolation):
    code = "COORDINATOR_REQUIRED"


class CoordinatorApprovalRequired(GuardViolation):
    code = "COORDINATOR_APPROVAL_REQUIRED"


class TutorNotInterested(GuardViolation):
    code = "TUTOR_NOT_INTERESTED"


class ClassNotActive(GuardViolation):
    code = "CLASS_NOT_ACTIVE"


class AlreadySubmitted(ServiceError):
    """Attendance already exists for the date; carries the existing record id."""

    code = "ALREADY_SUBMITTED"

    def __init__(self, existing_id: UUID, session_date: Any) -> None:
        super().__init__(
            f"Attendance already submitted for {session_date}",
            status.HTTP_409_CONFLICT,
            {"existing_attendance_id": existing_id, "session_date": str(session_date)},
        )
        self.existing_id = existing_id


class ConcurrencyConflict(ServiceError):
    """Lost the compare-and-swap race; caller should re-read and retry."""

    code = "CONCURRENCY_CONFLICT"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} was modified concurrently, reload and retry",
            status.HTTP_409_CONFLICT,
            {"entity": entity, "id": entity_id},
        )


class ProvisioningFailure(ServiceError):
    code = "PROVISIONING_FAILURE"

    def __init__(self, message: str, class_lead_id: Any) -> None:
        super().__init__(
            message,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"class_lead_id": class_lead_id},
        )
