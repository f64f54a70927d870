from typing import Optional, Protocol, runtime_checkable

from helmsman.domain.value_objects.alert_rule import AlertRule


@runtime_checkable
class MonitoringPort(Protocol):
    """Port for registering durable alert rules with the monitoring stack."""

    async def register_alert_rule(self, rule: AlertRule, cluster: Optional[str] = None) -> None:
        """Create or replace an alert rule, in ``cluster`` when one is given."""
        ...
