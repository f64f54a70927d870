"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from helmsman.domain.ports.metrics_port import MetricsPort
from helmsman.domain.ports.cluster_control_port import ClusterControlPort
from helmsman.domain.ports.routing_control_port import LoadBalancerPort, ServiceRoutingPort
from helmsman.domain.ports.monitoring_port import MonitoringPort
from helmsman.domain.ports.notification_port import NotificationPort
from helmsman.domain.ports.audit_sink_port import AuditSinkPort
from helmsman.domain.ports.event_bus_port import EventBusPort
from helmsman.domain.ports.telemetry_port import TelemetryPort

__all__ = [
    "MetricsPort",
    "ClusterControlPort",
    "LoadBalancerPort",
    "ServiceRoutingPort",
    "MonitoringPort",
    "NotificationPort",
    "AuditSinkPort",
    "EventBusPort",
    "TelemetryPort",
]
