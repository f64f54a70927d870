"""
PagerDuty Notification Adapter

Architectural Intent:
- Implements NotificationPort by opening a PagerDuty incident through the
  REST API (POST /incidents)
- Uses stdlib urllib (through HTTPClient) for the HTTP layer

Design Decisions:
- Severity maps to urgency: critical and high page immediately
- Without an API key the adapter runs in stub mode and only logs
- The last history_limit incidents stay in memory for inspection
"""

import logging
import uuid
from typing import Optional

from helmsman.domain.value_objects.notification_event import NotificationEvent
from helmsman.infrastructure.adapters.http_client import HTTPClient

logger = logging.getLogger(__name__)

PAGERDUTY_API_URL = "https://api.pagerduty.com"
HISTORY_LIMIT = 100

URGENCY = {
    "critical": "high",
    "high": "high",
    "medium": "low",
    "low": "low",
}


class PagerDutyAdapter:
    """PagerDuty incident adapter."""

    name = "pagerduty"

    def __init__(
        self,
        api_key: str = "",
        service_id: str = "",
        api_url: str = PAGERDUTY_API_URL,
        http: Optional[HTTPClient] = None,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._api_key = api_key
        self._service_id = service_id
        self._api_url = api_url.rstrip("/")
        self.http = http or HTTPClient()
        self.history_limit = history_limit
        self._incidents: dict[str, dict] = {}

    def build_payload(self, event: NotificationEvent) -> dict:
        details = "; ".join(f"{k}: {v}" for k, v in event.fields.items())
        if event.message:
            details = f"{details}. {event.message}" if details else event.message
        return {
            "incident": {
                "type": "incident",
                "title": event.title,
                "service": {"id": self._service_id, "type": "service_reference"},
                "urgency": URGENCY.get(event.severity, "low"),
                "body": {"type": "incident_body", "details": details},
            }
        }

    async def send(self, event: NotificationEvent) -> bool:
        incident_id = f"PD-{uuid.uuid4().hex[:8].upper()}"
        payload = self.build_payload(event)
        self._incidents[incident_id] = payload
        while len(self._incidents) > self.history_limit:
            del self._incidents[next(iter(self._incidents))]

        if not self._api_key:
            logger.info("PagerDuty send (stub): %s - %s", incident_id, event.title)
            return True

        try:
            await self.http.request(
                "POST",
                f"{self._api_url}/incidents",
                headers={
                    "Authorization": f"Token token={self._api_key}",
                    "Accept": "application/vnd.pagerduty+json;version=2",
                },
                body=payload,
            )
        except Exception as e:
            logger.warning("PagerDuty incident %s failed: %s", incident_id, e)
            return False
        logger.info(
            "PagerDuty incident opened: %s - %s [urgency=%s]",
            incident_id,
            event.title,
            payload["incident"]["urgency"],
        )
        return True

    def get_incident(self, incident_id: str) -> Optional[dict]:
        """Retrieve an incident by ID (for testing)."""
        return self._incidents.get(incident_id)

    @property
    def incidents(self) -> list[dict]:
        return list(self._incidents.values())
