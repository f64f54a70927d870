"""
Helmsman Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for observability of SLO checks, traffic
  shifts and failovers
"""

from helmsman.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
