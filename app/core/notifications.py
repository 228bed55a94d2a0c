"""
Best-effort notifications fired after a transition commits.

Delivery (WhatsApp, email, push) lives outside this service; a Notifier only has
to accept an event name and a payload. Failures are logged and never reach the
caller of the transition.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

logger = logging.getLogger(__name__)


# Event names
LEAD_ANNOUNCED = "LEAD_ANNOUNCED"
TUTOR_INTERESTED = "TUTOR_INTERESTED"
DEMO_ASSIGNED = "DEMO_ASSIGNED"
DEMO_REASSIGNED = "DEMO_REASSIGNED"
DEMO_COMPLETED = "DEMO_COMPLETED"
DEMO_APPROVED = "DEMO_APPROVED"
DEMO_REJECTED = "DEMO_REJECTED"
CLASS_CONVERTED = "CLASS_CONVERTED"
PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
COORDINATOR_REASSIGNED = "COORDINATOR_REASSIGNED"
PARENT_ASSIGNED = "PARENT_ASSIGNED"
ATTENDANCE_SUBMITTED = "ATTENDANCE_SUBMITTED"
ATTENDANCE_COORDINATOR_APPROVED = "ATTENDANCE_COORDINATOR_APPROVED"
ATTENDANCE_PARENT_APPROVED = "ATTENDANCE_PARENT_APPROVED"
ATTENDANCE_REJECTED = "ATTENDANCE_REJECTED"


@dataclass
class Notification:
    """One outbound notification."""
    event: str
    recipients: List[UUID]
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)


class Notifier(ABC):
    """Delivery backend."""

    @abstractmethod
    async def send(self, notification: Notification) -> None:
        ...


class LoggingNotifier(Notifier):
    """Default backend: writes notifications to the application log."""

    async def send(self, notification: Notification) -> None:
        logger.info(
            "notification %s -> %s %s",
            notification.event,
            [str(r) for r in notification.recipients],
            notification.payload,
        )


class RecordingNotifier(Notifier):
    """Keeps notifications in memory. Useful for tests and local inspection."""

    def __init__(self) -> None:
        self.sent: List[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)

    def events(self) -> List[str]:
        return [n.event for n in self.sent]


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    """FastAPI dependency for the configured notifier."""
    return _notifier


async def dispatch_notification(
    notifier: Optional[Notifier],
    event: str,
    recipients: List[Optional[UUID]],
    **payload: Any,
) -> bool:
    """Send after commit. Returns False (and logs) on any delivery failure."""
    if notifier is None:
        return False
    notification = Notification(
        event=event,
        recipients=[r for r in recipients if r is not None],
        payload={k: (str(v) if isinstance(v, UUID) else v) for k, v in payload.items()},
    )
    try:
        await notifier.send(notification)
    except Exception:
        logger.warning("Notification %s could not be delivered", event, exc_info=True)
        return False
    return True
