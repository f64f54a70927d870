"""
Slack Notification Adapter

Architectural Intent:
- Implements NotificationPort for Slack incoming webhooks
- Renders a NotificationEvent as a block message: header, one field per
  event field, then the free-text message
- Uses stdlib urllib (through HTTPClient) for the HTTP layer

Design Decisions:
- Without a webhook URL the adapter runs in stub mode and only logs
- The last history_limit payloads stay in memory for inspection; older
  ones are dropped
- Delivery errors are logged and reported as False, never raised
"""

import logging
import uuid
from typing import Optional

from helmsman.domain.value_objects.notification_event import NotificationEvent
from helmsman.infrastructure.adapters.http_client import HTTPClient

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    "critical": "#FF0000",
    "high": "#FF6600",
    "medium": "#FFDD00",
    "low": "#0099FF",
}

HISTORY_LIMIT = 100


class SlackAdapter:
    """Slack notification adapter."""

    name = "slack"

    def __init__(
        self,
        webhook_url: str = "",
        http: Optional[HTTPClient] = None,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._webhook_url = webhook_url
        self.http = http or HTTPClient()
        self.history_limit = history_limit
        self._messages: dict[str, dict] = {}

    @staticmethod
    def build_payload(event: NotificationEvent) -> dict:
        fields = [
            {"type": "mrkdwn", "text": f"*{name}:*\n{value}"}
            for name, value in event.fields.items()
        ]
        blocks: list[dict] = [
            {"type": "header", "text": {"type": "plain_text", "text": event.title}},
        ]
        if fields:
            blocks.append({"type": "section", "fields": fields})
        if event.message:
            blocks.append(
                {"type": "section", "text": {"type": "mrkdwn", "text": event.message}}
            )
        return {
            "text": event.title.upper(),
            "blocks": blocks,
            "attachments": [{"color": SEVERITY_COLORS.get(event.severity, "#808080")}],
        }

    async def send(self, event: NotificationEvent) -> bool:
        message_id = f"SLACK-{uuid.uuid4().hex[:8].upper()}"
        payload = self.build_payload(event)
        self._messages[message_id] = payload
        while len(self._messages) > self.history_limit:
            del self._messages[next(iter(self._messages))]

        if not self._webhook_url:
            logger.info("Slack send (stub): %s - %s", message_id, event.title)
            return True

        try:
            await self.http.request("POST", self._webhook_url, body=payload)
        except Exception as e:
            logger.warning("Slack notification %s failed: %s", message_id, e)
            return False
        logger.info("Slack notification sent: %s - %s", message_id, event.title)
        return True

    def get_message(self, message_id: str) -> Optional[dict]:
        """Retrieve a sent message by ID (for testing)."""
        return self._messages.get(message_id)

    @property
    def messages(self) -> list[dict]:
        return list(self._messages.values())
