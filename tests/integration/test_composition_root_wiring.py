"""Integration tests for composition root wiring.

Verifies that all dependencies are correctly wired and use cases
can be invoked through the container.
"""

from unittest.mock import AsyncMock

import pytest

from conftest import FakeCluster, FakeMetrics, FakeRouting, no_sleep
from helmsman.application.dtos.request_dtos import CheckSLORequest, TrafficShiftRequest
from helmsman.application.use_cases.check_slo import CheckSLO
from helmsman.application.use_cases.failover import FailoverOrchestrator
from helmsman.application.use_cases.traffic_shift import TrafficShiftController
from helmsman.composition_root import create_container, retry_policy_from, thresholds_from
from helmsman.domain.entities.traffic_shift import ShiftState
from helmsman.infrastructure.adapters.cloudflare_adapter import CloudflareAdapter
from helmsman.infrastructure.adapters.kubectl_adapter import (
    KubectlClusterAdapter,
    KubectlRoutingAdapter,
)
from helmsman.infrastructure.adapters.pagerduty_adapter import PagerDutyAdapter
from helmsman.infrastructure.adapters.prometheus_adapter import PrometheusAdapter
from helmsman.infrastructure.adapters.slack_adapter import SlackAdapter
from helmsman.infrastructure.config import (
    FailoverConfig,
    HelmsmanConfig,
    NotificationsConfig,
    ThresholdsConfig,
    TrafficConfig,
)
from helmsman.infrastructure.repositories.sqlite_repository import SQLiteAuditSink


class TestCompositionRootWiring:
    def test_container_types(self):
        container = create_container()
        assert isinstance(container.check_slo, CheckSLO)
        assert isinstance(container.traffic_shift, TrafficShiftController)
        assert isinstance(container.failover, FailoverOrchestrator)
        assert isinstance(container.audit_sink, SQLiteAuditSink)
        assert isinstance(container.traffic_shift.routing, KubectlRoutingAdapter)
        assert isinstance(container.traffic_shift.metrics, PrometheusAdapter)
        assert isinstance(container.failover.load_balancer, CloudflareAdapter)
        assert isinstance(container.failover.cluster, KubectlClusterAdapter)

    def test_shared_instances(self):
        """Use cases share the same guard, bus, telemetry and kubectl runner."""
        container = create_container()
        assert container.traffic_shift.locks is container.locks
        assert container.failover.locks is container.locks
        assert container.traffic_shift.event_bus is container.event_bus
        assert container.failover.telemetry is container.telemetry
        assert container.check_slo.telemetry is container.telemetry
        assert container.failover.audit_sink is container.audit_sink
        assert container.failover.cluster.runner is container.kubectl
        assert container.traffic_shift.routing.runner is container.kubectl

    def test_config_flows_into_policies(self):
        config = HelmsmanConfig(
            traffic=TrafficConfig(tolerance_pct=5.0, subsets=("stable", "canary")),
            failover=FailoverConfig(scale_factor=2.0, max_attempts=5),
            thresholds=ThresholdsConfig(latency_p95_ms=250.0),
        )
        container = create_container(config)
        assert container.traffic_shift.policy.tolerance_pct == 5.0
        assert container.traffic_shift.routing.subsets == ("stable", "canary")
        assert container.failover.policy.scale_factor == 2.0
        assert container.failover.policy.retry.max_attempts == 5
        assert container.check_slo.thresholds.latency_p95_ms == 250.0

    def test_policy_helpers(self):
        config = HelmsmanConfig()
        assert thresholds_from(config).availability_pct == 99.9
        retry = retry_policy_from(config)
        assert retry.max_attempts == 3
        assert retry.timeout_seconds == 30.0

    def test_only_configured_channels_are_wired(self):
        assert create_container().failover.notifier.channels == []
        config = HelmsmanConfig(
            notifications=NotificationsConfig(
                slack_webhook_url="https://hooks.slack.com/services/T/B/X",
                pagerduty_api_key="pd-key",
            )
        )
        channels = create_container(config).failover.notifier.channels
        assert [type(c) for c in channels] == [SlackAdapter, PagerDutyAdapter]

    @pytest.mark.asyncio
    async def test_check_slo_via_container(self):
        """Evaluate through the container with the HTTP layer mocked."""
        container = create_container()
        http = AsyncMock()
        http.request.return_value = {
            "status": "success",
            "data": {"resultType": "vector", "result": [{"value": [0, "0.2"]}]},
        }
        container.check_slo.evaluator.metrics.http = http
        cluster = FakeCluster()
        container.check_slo.evaluator.cluster = cluster
        container.check_slo.cluster = cluster

        report = await container.check_slo.execute(CheckSLORequest(deployment="order-service"))

        # Every query answers 0.2, so availability (0.2%) fails along with burn rate
        assert report.failed_checks == 2
        assert http.request.await_count == 4

    @pytest.mark.asyncio
    async def test_traffic_shift_via_container(self):
        container = create_container()
        routing = FakeRouting(selector="blue")
        container.traffic_shift.routing = routing
        container.traffic_shift.metrics = FakeMetrics({'version="green"': 100.0})
        container.traffic_shift._sleep = no_sleep

        shift = await container.traffic_shift.execute(
            TrafficShiftRequest(service="order-service", new_version="green")
        )

        assert shift.state == ShiftState.COMPLETED
        assert routing.selector == "green"
        weights = [m for m in container.telemetry.buffered if m["name"] == "helmsman.traffic.weight"]
        assert weights[0]["value"] == 100.0
