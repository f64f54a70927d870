"""Global test configuration.

In-memory fakes for every external system Helmsman talks to, so tests never
reach a cluster, a metrics backend or the network.
"""

import copy
from typing import Optional

import pytest

from helmsman.domain.value_objects.alert_rule import AlertRule
from helmsman.domain.value_objects.config_snapshot import ConfigObject
from helmsman.domain.value_objects.metric_sample import MetricSample
from helmsman.domain.value_objects.notification_event import NotificationEvent
from helmsman.domain.value_objects.traffic_split import RoutingMechanism


class FakeMetrics:
    """Answers queries by substring match; unmatched queries have no data."""

    def __init__(self, values: Optional[dict[str, Optional[float]]] = None) -> None:
        self.values = dict(values or {})
        self.queries: list[str] = []

    async def query(self, expression: str, window: str) -> MetricSample:
        self.queries.append(expression)
        for fragment, value in self.values.items():
            if fragment in expression:
                return MetricSample(value=value, window=window)
        return MetricSample.absent(window)


class FakeCluster:
    """switch_context hands out a bound copy that shares the call logs."""

    def __init__(self, ready: int = 3, desired: int = 3) -> None:
        self.replicas = (ready, desired)
        self.context: Optional[str] = None
        self.switched: list[str] = []
        self.scaled_to: list[int] = []
        self.scaled_in: list[Optional[str]] = []
        self.wait_error: Optional[BaseException] = None
        self.objects: list[ConfigObject] = []
        self.fail_replicas = False

    async def get_replicas(self, deployment: str, namespace: str) -> tuple[int, int]:
        if self.fail_replicas:
            raise RuntimeError("apiserver unreachable")
        return self.replicas

    async def set_replicas(self, deployment: str, namespace: str, count: int) -> None:
        self.scaled_to.append(count)
        self.scaled_in.append(self.context)
        self.replicas = (self.replicas[0], count)

    async def wait_ready(self, deployment: str, namespace: str, timeout: float) -> None:
        if self.wait_error is not None:
            raise self.wait_error

    async def switch_context(self, cluster: str) -> "FakeCluster":
        self.switched.append(cluster)
        bound = copy.copy(self)
        bound.context = cluster
        return bound

    async def list_config_objects(self, namespace: str) -> list[ConfigObject]:
        return list(self.objects)


class FakeRouting:
    """Keeps one weighted route and one selector per service in memory."""

    def __init__(
        self,
        selector: Optional[str] = "blue",
        mechanism: RoutingMechanism = RoutingMechanism.MESH_WEIGHTED_ROUTE,
    ) -> None:
        self.mechanism = mechanism
        self.route: Optional[dict[str, int]] = None
        self.selector = selector
        self.route_writes: list[dict[str, int]] = []
        self.selector_writes: list[str] = []
        self.clears = 0
        self.fail_route_writes = 0

    async def detect_mechanism(self, service: str, namespace: str) -> RoutingMechanism:
        return self.mechanism

    async def get_weighted_route(self, service, namespace, mechanism):
        return dict(self.route) if self.route is not None else None

    async def set_weighted_route(self, service, namespace, splits, mechanism):
        if self.fail_route_writes:
            self.fail_route_writes -= 1
            raise RuntimeError("admission webhook denied the request")
        self.route = dict(splits)
        self.route_writes.append(dict(splits))

    async def clear_weighted_route(self, service, namespace, mechanism):
        self.route = None
        self.clears += 1

    async def get_selector(self, service: str, namespace: str) -> Optional[str]:
        return self.selector

    async def set_selector(self, service: str, namespace: str, version: str) -> None:
        self.selector = version
        self.selector_writes.append(version)


class FakeLoadBalancer:
    def __init__(self, pools: list[str]) -> None:
        self.pools = list(pools)
        self.writes: list[tuple[list[str], str]] = []
        self.fail_writes = 0

    async def get_pools(self, load_balancer_id: str) -> list[str]:
        return list(self.pools)

    async def set_pools(self, load_balancer_id: str, pools: list[str], description: str) -> None:
        if self.fail_writes:
            self.fail_writes -= 1
            raise RuntimeError("cloudflare 503")
        self.pools = list(pools)
        self.writes.append((list(pools), description))


class FakeMonitoring:
    def __init__(self) -> None:
        self.rules: list[AlertRule] = []
        self.clusters: list[Optional[str]] = []

    async def register_alert_rule(self, rule: AlertRule, cluster: Optional[str] = None) -> None:
        self.rules.append(rule)
        self.clusters.append(cluster)


class FakeNotifier:
    def __init__(self, delivered: bool = True) -> None:
        self.delivered = delivered
        self.events: list[NotificationEvent] = []

    async def send(self, event: NotificationEvent) -> bool:
        self.events.append(event)
        return self.delivered


class FakeAuditSink:
    def __init__(self) -> None:
        self.records = []

    async def append(self, record) -> None:
        if not record.is_terminal:
            raise ValueError("record is still open")
        self.records.append(record)


class FakeTelemetry:
    def __init__(self) -> None:
        self.metrics: list[tuple[str, float, dict]] = []

    def record_metric(self, name, value, unit="", attributes=None) -> None:
        self.metrics.append((name, value, attributes or {}))

    def named(self, name: str) -> list[tuple[str, float, dict]]:
        return [m for m in self.metrics if m[0] == name]


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def metrics():
    return FakeMetrics()


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def routing():
    return FakeRouting()


@pytest.fixture
def telemetry():
    return FakeTelemetry()
