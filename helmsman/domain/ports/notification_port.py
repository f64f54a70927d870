"""
Notification Port

Architectural Intent:
- Abstract interface for sending structured incident events
- Allows decoupling of notification producers from channels (Slack, PagerDuty)

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Fire-and-forget semantics: send returns bool to indicate success/failure;
  callers record a False or an exception as a degraded outcome
"""

from typing import Protocol, runtime_checkable

from helmsman.domain.value_objects.notification_event import NotificationEvent


@runtime_checkable
class NotificationPort(Protocol):
    """Port for sending events through external notification channels."""

    async def send(self, event: NotificationEvent) -> bool:
        """Send a notification.

        Args:
            event: Title, key/value fields and severity
                   (critical, high, medium, low)

        Returns:
            True if the notification was delivered, False otherwise
        """
        ...
