"""End-to-end failover flow: orchestrator, event bus, SQLite sink and
incident log wired together, with fakes only at the network edge."""

import pytest

from conftest import FakeCluster, FakeLoadBalancer, FakeMonitoring, no_sleep
from helmsman.application.concurrency import SingleFlight
from helmsman.application.dtos.request_dtos import FailoverRequest
from helmsman.application.retry import RetryPolicy
from helmsman.application.use_cases.failover import FailoverOrchestrator, FailoverPolicy
from helmsman.domain.entities.failover_record import (
    FailoverFinishedEvent,
    FailoverStatus,
)
from helmsman.domain.events.event_base import DomainEvent
from helmsman.infrastructure.adapters.multi_channel_notifier import MultiChannelNotifier
from helmsman.infrastructure.adapters.slack_adapter import SlackAdapter
from helmsman.infrastructure.event_bus import EventBus
from helmsman.infrastructure.repositories.incident_log import IncidentLogWriter
from helmsman.infrastructure.repositories.sqlite_repository import SQLiteAuditSink
from helmsman.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


@pytest.fixture
def flow(tmp_path):
    bus = EventBus()
    events = []

    async def collect(event):
        events.append(event)

    bus.subscribe(DomainEvent, collect)
    slack = SlackAdapter()
    sink = SQLiteAuditSink(
        str(tmp_path / "audit.db"), incident_log=IncidentLogWriter(str(tmp_path))
    )
    load_balancer = FakeLoadBalancer(["sg-pool", "jk-pool", "hk-pool"])
    cluster = FakeCluster(ready=4, desired=4)
    telemetry = OTELExporter(OTELConfig())
    orchestrator = FailoverOrchestrator(
        load_balancer,
        cluster,
        FakeMonitoring(),
        MultiChannelNotifier([slack]),
        sink,
        policy=FailoverPolicy(
            load_balancer_id="lb-1",
            region_pools={"singapore": "sg-pool", "jakarta": "jk-pool"},
            region_contexts={"jakarta": "gke-jakarta"},
            retry=RetryPolicy(jitter=False),
        ),
        event_bus=bus,
        telemetry=telemetry,
        locks=SingleFlight(),
        sleep=no_sleep,
    )
    yield {
        "orchestrator": orchestrator,
        "events": events,
        "slack": slack,
        "sink": sink,
        "load_balancer": load_balancer,
        "cluster": cluster,
        "telemetry": telemetry,
        "tmp_path": tmp_path,
    }
    sink.close()


class TestFailoverFlow:
    @pytest.mark.asyncio
    async def test_full_failover(self, flow):
        run = await flow["orchestrator"].execute(
            FailoverRequest("singapore", "jakarta", "apiserver unreachable")
        )

        assert run.status == FailoverStatus.COMPLETED
        assert run.persisted
        assert flow["load_balancer"].pools == ["jk-pool", "hk-pool"]
        assert flow["cluster"].scaled_in == ["gke-jakarta"]
        assert flow["cluster"].scaled_to == [6]

        row = flow["sink"].get_record(run.record.record_id)
        assert row["status"] == "completed"
        assert len(row["actions"]) == 5

        logs = list(flow["tmp_path"].glob("failover-*.log"))
        assert len(logs) == 1
        assert "Failed Cluster: singapore" in logs[0].read_text()

        message = flow["slack"].messages[0]
        assert message["text"] == "CLUSTER FAILOVER EVENT"

        assert isinstance(flow["events"][-1], FailoverFinishedEvent)
        assert flow["events"][-1].status == "completed"

        names = {m["name"] for m in flow["telemetry"].buffered}
        assert names == {"helmsman.failover.step", "helmsman.failover.duration_ms"}

    @pytest.mark.asyncio
    async def test_repeat_failover_is_stable(self, flow):
        request = FailoverRequest("singapore", "jakarta", "apiserver unreachable")
        await flow["orchestrator"].execute(request)
        second = await flow["orchestrator"].execute(request)

        assert second.status == FailoverStatus.COMPLETED
        assert flow["load_balancer"].pools == ["jk-pool", "hk-pool"]
        assert len(flow["load_balancer"].writes) == 1
        assert len(flow["sink"].list_records(failed_region="singapore")) == 2
