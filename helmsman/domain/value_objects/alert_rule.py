from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

_UNSAFE_RE = re.compile(r"[^a-z0-9-]+")


@dataclass(frozen=True)
class AlertRule:
    """
    Value Object for a durable alerting rule registered with the monitoring
    stack. Keyed on failed region, reason and timestamp so that recovery of
    a failed region stays observable after the failover run ends.
    """
    name: str
    expr: str
    for_duration: str = "1m"
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    group: str = "failover"
    interval: str = "30s"

    @staticmethod
    def for_failover(
        failed_region: str, target_region: str, reason: str, at: datetime
    ) -> "AlertRule":
        slug = _UNSAFE_RE.sub("-", failed_region.lower()).strip("-") or "region"
        return AlertRule(
            name=f"failover-{slug}-{at.strftime('%Y%m%d%H%M%S')}",
            expr=f'up{{job="kubernetes-apiservers",cluster="{failed_region}"}} == 0',
            labels={
                "severity": "critical",
                "cluster": failed_region,
                "failover_at": at.isoformat(),
            },
            annotations={
                "summary": f"Cluster {failed_region} is down",
                "description": (
                    f"Failover to {target_region} executed. Reason: {reason}"
                ),
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert": "ClusterFailover",
            "expr": self.expr,
            "for": self.for_duration,
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
        }
