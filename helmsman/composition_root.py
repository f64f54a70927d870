"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the Helmsman application
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module (except CLI)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from HelmsmanConfig
- One SingleFlight guard is shared by both controllers so the single-run
  rule holds for every caller of this container
- Notification channels are only wired when configured
- Telemetry is created uninitialized; the caller awaits initialize()
"""

from dataclasses import dataclass
import logging
from typing import Optional

from helmsman.application.concurrency import SingleFlight
from helmsman.application.retry import RetryPolicy
from helmsman.application.use_cases.check_slo import CheckSLO
from helmsman.application.use_cases.failover import FailoverOrchestrator, FailoverPolicy
from helmsman.application.use_cases.traffic_shift import (
    TrafficShiftController,
    TrafficShiftPolicy,
)
from helmsman.domain.events.event_base import DomainEvent
from helmsman.domain.ports.notification_port import NotificationPort
from helmsman.domain.services.promql import PromQLQueries
from helmsman.domain.services.slo_evaluator import SLOEvaluator
from helmsman.domain.value_objects.thresholds import ThresholdSet
from helmsman.infrastructure.adapters.cloudflare_adapter import CloudflareAdapter
from helmsman.infrastructure.adapters.kubectl_adapter import (
    KubectlClusterAdapter,
    KubectlMonitoringAdapter,
    KubectlRoutingAdapter,
    KubectlRunner,
)
from helmsman.infrastructure.adapters.multi_channel_notifier import MultiChannelNotifier
from helmsman.infrastructure.adapters.pagerduty_adapter import PagerDutyAdapter
from helmsman.infrastructure.adapters.prometheus_adapter import PrometheusAdapter
from helmsman.infrastructure.adapters.http_client import HTTPClient
from helmsman.infrastructure.adapters.slack_adapter import SlackAdapter
from helmsman.infrastructure.config import HelmsmanConfig
from helmsman.infrastructure.event_bus import EventBus
from helmsman.infrastructure.repositories.incident_log import IncidentLogWriter
from helmsman.infrastructure.repositories.sqlite_repository import SQLiteAuditSink
from helmsman.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter

logger = logging.getLogger(__name__)


@dataclass
class HelmsmanContainer:
    """DI container holding all wired dependencies."""

    config: HelmsmanConfig
    event_bus: EventBus
    telemetry: OTELExporter
    locks: SingleFlight
    kubectl: KubectlRunner
    audit_sink: SQLiteAuditSink
    check_slo: CheckSLO
    traffic_shift: TrafficShiftController
    failover: FailoverOrchestrator


def thresholds_from(config: HelmsmanConfig) -> ThresholdSet:
    t = config.thresholds
    return ThresholdSet(
        error_rate_pct=t.error_rate_pct,
        latency_p95_ms=t.latency_p95_ms,
        latency_p99_ms=t.latency_p99_ms,
        availability_pct=t.availability_pct,
        error_budget=t.error_budget,
        fast_burn_multiple=t.fast_burn_multiple,
        slow_burn_multiple=t.slow_burn_multiple,
        monthly_budget_minutes=t.monthly_budget_minutes,
    )


def retry_policy_from(config: HelmsmanConfig) -> RetryPolicy:
    f = config.failover
    return RetryPolicy(
        max_attempts=f.max_attempts,
        base_delay_seconds=f.backoff_base_seconds,
        max_delay_seconds=f.backoff_max_seconds,
        timeout_seconds=f.call_timeout_seconds,
    )


def _notification_channels(config: HelmsmanConfig) -> list[NotificationPort]:
    n = config.notifications
    channels: list[NotificationPort] = []
    if n.slack_webhook_url:
        channels.append(SlackAdapter(n.slack_webhook_url))
    if n.pagerduty_api_key:
        channels.append(PagerDutyAdapter(n.pagerduty_api_key, n.pagerduty_service_id))
    return channels


async def _log_event(event: DomainEvent) -> None:
    logger.info("%s %s", event.event_type, event.to_dict())


def create_container(config: Optional[HelmsmanConfig] = None) -> HelmsmanContainer:
    """Create and wire all dependencies."""
    config = config or HelmsmanConfig()

    event_bus = EventBus()
    event_bus.subscribe(DomainEvent, _log_event)
    telemetry = OTELExporter(
        OTELConfig(endpoint=config.telemetry.endpoint, insecure=config.telemetry.insecure)
    )
    locks = SingleFlight()
    retry = retry_policy_from(config)

    kubectl = KubectlRunner(config.cluster.kubectl, timeout=config.cluster.timeout_seconds)
    cluster = KubectlClusterAdapter(kubectl)
    routing = KubectlRoutingAdapter(kubectl, subsets=config.traffic.subsets)
    monitoring = KubectlMonitoringAdapter(kubectl)

    prometheus = PrometheusAdapter(
        config.prometheus.url, http=HTTPClient(timeout=config.prometheus.timeout_seconds)
    )
    queries = PromQLQueries(
        request_metric=config.prometheus.request_metric,
        duration_metric=config.prometheus.duration_metric,
    )
    load_balancer = CloudflareAdapter(
        config.cloudflare.api_url,
        config.cloudflare.zone_id,
        config.cloudflare.api_token,
    )
    audit_sink = SQLiteAuditSink(
        config.audit.db_path, incident_log=IncidentLogWriter(config.audit.incident_log_dir)
    )

    check_slo = CheckSLO(
        SLOEvaluator(
            prometheus,
            cluster,
            queries=queries,
            read_timeout=config.prometheus.timeout_seconds,
        ),
        cluster,
        thresholds_from(config),
        telemetry=telemetry,
        context_timeout=config.cluster.timeout_seconds,
    )
    traffic_shift = TrafficShiftController(
        routing,
        prometheus,
        policy=TrafficShiftPolicy(
            baseline_version=config.traffic.baseline_version,
            subsets=config.traffic.subsets,
            settle_delay_seconds=config.traffic.settle_delay_seconds,
            tolerance_pct=config.traffic.tolerance_pct,
            verify_window=config.traffic.verify_window,
            read_timeout_seconds=config.prometheus.timeout_seconds,
            retry=retry,
        ),
        event_bus=event_bus,
        telemetry=telemetry,
        locks=locks,
        queries=queries,
    )
    failover = FailoverOrchestrator(
        load_balancer,
        cluster,
        monitoring,
        MultiChannelNotifier(_notification_channels(config)),
        audit_sink,
        policy=FailoverPolicy(
            service=config.failover.service,
            namespace=config.failover.namespace,
            load_balancer_id=config.cloudflare.load_balancer_id,
            region_pools=config.failover.region_pools,
            region_contexts=config.cluster.region_contexts,
            scale_factor=config.failover.scale_factor,
            ready_timeout_seconds=config.failover.ready_timeout_seconds,
            notify_timeout_seconds=config.failover.call_timeout_seconds,
            retry=retry,
        ),
        event_bus=event_bus,
        telemetry=telemetry,
        locks=locks,
    )

    return HelmsmanContainer(
        config=config,
        event_bus=event_bus,
        telemetry=telemetry,
        locks=locks,
        kubectl=kubectl,
        audit_sink=audit_sink,
        check_slo=check_slo,
        traffic_shift=traffic_shift,
        failover=failover,
    )
