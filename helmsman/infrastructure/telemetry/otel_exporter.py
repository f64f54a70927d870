"""
OpenTelemetry Exporter for Helmsman

Architectural Intent:
- Exports SLO verdicts, traffic weights and failover step outcomes as
  gauges to an OTLP-compatible backend
- Recorded values are also kept in a local buffer, so the exporter is
  inspectable with export disabled; the buffer holds the latest
  buffer_limit entries

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
from datetime import datetime, UTC

from helmsman.domain.exceptions import ConfigurationConflict

logger = logging.getLogger(__name__)

BUFFER_LIMIT = 1000


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "helmsman"
    environment: str = "production"
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ConfigurationConflict(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://"
                )


class OTELExporter:
    """OpenTelemetry gauge exporter over OTLP gRPC."""

    def __init__(self, config: OTELConfig, buffer_limit: int = BUFFER_LIMIT):
        self.config = config
        self._initialized = False
        self._metrics_buffer: deque[dict[str, Any]] = deque(maxlen=buffer_limit)
        self._meter: Any = None
        self._provider: Any = None
        self._gauges: dict[str, Any] = {}

    @property
    def enabled(self) -> bool:
        return self._initialized

    @property
    def buffered(self) -> list[dict[str, Any]]:
        return list(self._metrics_buffer)

    async def initialize(self) -> None:
        """Initialize the OpenTelemetry SDK and OTLP metric exporter."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        try:
            from opentelemetry import metrics
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )

            resource = Resource(
                attributes={
                    SERVICE_NAME: self.config.service_name,
                    "environment": self.config.environment,
                }
            )
            metric_reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(
                    endpoint=self.config.endpoint, insecure=self.config.insecure
                )
            )
            self._provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
            metrics.set_meter_provider(self._provider)
            self._meter = metrics.get_meter(__name__)
            self._initialized = True

        except ImportError:
            logger.warning("OpenTelemetry SDK not installed, telemetry disabled")
            self._initialized = False
        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            self._initialized = False

    def _get_gauge(self, name: str, unit: str = "") -> Any:
        """Get or create a gauge for a metric name."""
        if name not in self._gauges and self._meter:
            self._gauges[name] = self._meter.create_gauge(name, unit=unit)
        return self._gauges.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        """Record a metric value."""
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

        if self._initialized:
            gauge = self._get_gauge(name, unit)
            if gauge:
                gauge.set(value, attributes=attributes or {})

    async def export(self) -> None:
        """Flush pending metrics before the process exits."""
        if not self._initialized:
            return

        exported_count = len(self._metrics_buffer)
        try:
            self._provider.force_flush()
        except Exception as e:
            logger.warning("OTEL flush failed: %s", e)
        self._metrics_buffer.clear()

        if exported_count:
            logger.debug("Flushed %d buffered metrics", exported_count)


async def create_exporter(
    endpoint: Optional[str] = None,
    insecure: bool = False,
    service_name: str = "helmsman",
) -> OTELExporter:
    """Factory function to create an initialized OTEL exporter."""
    config = OTELConfig(
        endpoint=endpoint or "",
        service_name=service_name,
        insecure=insecure,
    )
    exporter = OTELExporter(config)
    await exporter.initialize()
    return exporter
