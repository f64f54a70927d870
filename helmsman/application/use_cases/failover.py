"""
Failover Use Case

Architectural Intent:
- Moves a service's traffic away from a failed region to a target region
  and leaves an auditable FailoverRecord behind
- Pipeline: reroute global traffic, scale the target, snapshot its
  configuration, register a durable alert rule, notify, persist the record
- One active run per (failed_region, target_region)

Design Decisions:
- Every step yields an ActionOutcome; a failing step never aborts the steps
  after it, so capacity and alerting still happen if the reroute fails
- Reroute is a read-modify-write of the live pool set, retried as a whole,
  so a concurrent edit made by someone else is re-read rather than lost
- The new pool set is (current - failed) + target, which always contains
  the target; the run never leaves both regions out of rotation
- Readiness timeout and notification failure are DEGRADED, not FAILED
- Cancellable only before the reroute is submitted
- Region-scoped steps work on a cluster client bound to the target
  context for that step alone, so runs for other region pairs proceed in
  parallel without retargeting each other
- Target capacity grows to ceil(replicas * scale_factor), by at least
  one replica when the factor is above 1, so a one-replica region still
  gains capacity
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Awaitable, Callable, Optional

from helmsman.application.concurrency import SingleFlight
from helmsman.application.dtos.request_dtos import FailoverRequest
from helmsman.application.retry import RetryPolicy, call_with_retry
from helmsman.domain.entities.failover_record import (
    ActionOutcome,
    FailoverAction,
    FailoverRecord,
    FailoverStatus,
    OutcomeStatus,
)
from helmsman.domain.exceptions import ConfigurationConflict, ExternalCallFailure
from helmsman.domain.ports.audit_sink_port import AuditSinkPort
from helmsman.domain.ports.cluster_control_port import ClusterControlPort
from helmsman.domain.ports.event_bus_port import EventBusPort
from helmsman.domain.ports.monitoring_port import MonitoringPort
from helmsman.domain.ports.notification_port import NotificationPort
from helmsman.domain.ports.routing_control_port import LoadBalancerPort
from helmsman.domain.ports.telemetry_port import TelemetryPort
from helmsman.domain.value_objects.alert_rule import AlertRule
from helmsman.domain.value_objects.config_snapshot import ConfigSnapshot
from helmsman.domain.value_objects.notification_event import NotificationEvent
from helmsman.domain.value_objects.pool_set import PoolSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailoverPolicy:
    service: str = "order-service"
    namespace: str = "production"
    load_balancer_id: str = ""
    region_pools: dict[str, str] = field(default_factory=dict)
    region_contexts: dict[str, str] = field(default_factory=dict)
    scale_factor: float = 1.5
    ready_timeout_seconds: float = 300.0
    notify_timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.scale_factor < 1:
            raise ConfigurationConflict(
                f"scale_factor must be >= 1, got {self.scale_factor}"
            )

    def pool_for(self, region: str) -> str:
        return self.region_pools.get(region, region)

    def context_for(self, region: str) -> str:
        return self.region_contexts.get(region, region)

    def scaled_replicas(self, current: int) -> int:
        """Replica count for the target region after scaling up."""
        count = math.ceil(round(current * self.scale_factor, 6))
        if self.scale_factor > 1:
            count = max(count, current + 1)
        return max(count, current)


@dataclass
class FailoverRun:
    """A sealed FailoverRecord plus the outcome of persisting it."""

    record: FailoverRecord
    audit: Optional[ActionOutcome] = None

    @property
    def persisted(self) -> bool:
        return self.audit is not None and not self.audit.failed

    @property
    def failed_steps(self) -> int:
        audit_failed = 1 if self.audit is not None and self.audit.failed else 0
        return self.record.failed_actions + audit_failed

    @property
    def status(self) -> FailoverStatus:
        return self.record.status

    def to_dict(self) -> dict[str, Any]:
        result = self.record.to_dict()
        result["audit"] = self.audit.to_dict() if self.audit else None
        result["failed_steps"] = self.failed_steps
        return result


@dataclass(frozen=True)
class _StepReport:
    status: OutcomeStatus
    detail: str
    attempts: int = 1
    data: dict[str, Any] = field(default_factory=dict)


class FailoverOrchestrator:
    def __init__(
        self,
        load_balancer: LoadBalancerPort,
        cluster: ClusterControlPort,
        monitoring: MonitoringPort,
        notifier: NotificationPort,
        audit_sink: AuditSinkPort,
        policy: Optional[FailoverPolicy] = None,
        event_bus: Optional[EventBusPort] = None,
        telemetry: Optional[TelemetryPort] = None,
        locks: Optional[SingleFlight] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.load_balancer = load_balancer
        self.cluster = cluster
        self.monitoring = monitoring
        self.notifier = notifier
        self.audit_sink = audit_sink
        self.policy = policy or FailoverPolicy()
        self.event_bus = event_bus
        self.telemetry = telemetry
        self.locks = locks or SingleFlight()
        self._sleep = sleep

    async def execute(
        self, request: FailoverRequest, cancel: Optional[asyncio.Event] = None
    ) -> FailoverRun:
        if not self.policy.load_balancer_id:
            raise ConfigurationConflict("No load balancer configured for failover")

        async with self.locks.hold("failover", request.failed_region, request.target_region):
            record = FailoverRecord(
                failed_region=request.failed_region,
                target_region=request.target_region,
                reason=request.reason,
            )
            log_context = {"record_id": record.record_id, "region": request.failed_region}
            logger.warning(
                "Failover %s started: %s -> %s (%s)",
                record.record_id,
                request.failed_region,
                request.target_region,
                request.reason,
                extra=log_context,
            )

            if cancel is not None and cancel.is_set():
                record.cancel()
                logger.warning(
                    "Failover %s cancelled before reroute", record.record_id, extra=log_context
                )
                await self._publish(record)
                return FailoverRun(record=record)

            steps: list[tuple[FailoverAction, Callable[[FailoverRequest, FailoverRecord], Awaitable[_StepReport]]]] = [
                (FailoverAction.REROUTE, self._reroute),
                (FailoverAction.SCALE_TARGET, self._scale_target),
                (FailoverAction.SYNC_CONFIGURATION, self._sync_configuration),
                (FailoverAction.UPDATE_MONITORING, self._update_monitoring),
                (FailoverAction.NOTIFY, self._notify),
            ]
            for action, step in steps:
                record.append(await self._run_step(action, step, request, record))

            record.finish()
            run = FailoverRun(record=record, audit=await self._persist(record))

            self._record_telemetry(run)
            await self._publish(record)
            logger.warning(
                "Failover %s finished: %s (%d failed step(s))",
                record.record_id,
                record.status.value,
                run.failed_steps,
                extra=log_context,
            )
            return run

    async def _run_step(
        self,
        action: FailoverAction,
        step: Callable[[FailoverRequest, FailoverRecord], Awaitable[_StepReport]],
        request: FailoverRequest,
        record: FailoverRecord,
    ) -> ActionOutcome:
        started = datetime.now(UTC)
        logger.info("Failover %s: %s", record.record_id, action.value)
        try:
            report = await step(request, record)
        except ExternalCallFailure as e:
            logger.error("Failover %s: %s failed: %s", record.record_id, action.value, e)
            report = _StepReport(OutcomeStatus.FAILED, str(e), attempts=e.attempts)
        except Exception as e:
            logger.error(
                "Failover %s: %s failed: %s", record.record_id, action.value, e, exc_info=True
            )
            report = _StepReport(OutcomeStatus.FAILED, str(e))
        return ActionOutcome(
            action=action,
            status=report.status,
            detail=report.detail,
            attempts=report.attempts,
            data=report.data,
            started_at=started,
            completed_at=datetime.now(UTC),
        )

    async def _reroute(self, request: FailoverRequest, record: FailoverRecord) -> _StepReport:
        failed_pool = self.policy.pool_for(request.failed_region)
        target_pool = self.policy.pool_for(request.target_region)
        lb_id = self.policy.load_balancer_id
        description = f"Failover: {request.failed_region} unhealthy - {request.reason}"

        async def read_modify_write() -> tuple[PoolSet, PoolSet]:
            current = PoolSet.of(await self.load_balancer.get_pools(lb_id))
            updated = current.failover(failed_pool, target_pool)
            if updated != current:
                await self.load_balancer.set_pools(lb_id, list(updated), description)
            return current, updated

        (current, updated), attempts = await call_with_retry(
            read_modify_write, self.policy.retry, f"reroute {lb_id}", sleep=self._sleep
        )
        changed = updated != current
        detail = (
            f"pools {current} -> {updated}" if changed else f"pools already {updated}"
        )
        return _StepReport(
            OutcomeStatus.SUCCEEDED,
            detail,
            attempts=attempts,
            data={"previous_pools": list(current), "pools": list(updated), "changed": changed},
        )

    async def _scale_target(
        self, request: FailoverRequest, record: FailoverRecord
    ) -> _StepReport:
        service, namespace = self.policy.service, self.policy.namespace
        cluster = await self._use_region(request.target_region)
        (ready, desired), _ = await self._call(
            lambda: cluster.get_replicas(service, namespace),
            f"read replicas of {service}",
        )
        count = self.policy.scaled_replicas(desired)
        _, attempts = await self._call(
            lambda: cluster.set_replicas(service, namespace, count),
            f"scale {service} to {count}",
        )
        data = {"previous_replicas": desired, "replicas": count, "ready_before": ready}
        try:
            await asyncio.wait_for(
                cluster.wait_ready(service, namespace, self.policy.ready_timeout_seconds),
                timeout=self.policy.ready_timeout_seconds + self.policy.retry.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "%s not ready within %ss after scaling", service, self.policy.ready_timeout_seconds
            )
            return _StepReport(
                OutcomeStatus.DEGRADED,
                f"scaled {desired} -> {count}, not ready within "
                f"{self.policy.ready_timeout_seconds:g}s",
                attempts=attempts,
                data=data,
            )
        return _StepReport(
            OutcomeStatus.SUCCEEDED, f"scaled {desired} -> {count}", attempts=attempts, data=data
        )

    async def _sync_configuration(
        self, request: FailoverRequest, record: FailoverRecord
    ) -> _StepReport:
        cluster = await self._use_region(request.target_region)
        objects, attempts = await self._call(
            lambda: cluster.list_config_objects(self.policy.namespace),
            f"list configuration in {request.target_region}",
        )
        snapshot = ConfigSnapshot.capture(
            request.target_region, self.policy.namespace, self.policy.service, objects
        )
        return _StepReport(
            OutcomeStatus.SUCCEEDED,
            f"{len(snapshot.config_maps)} config map(s), {len(snapshot.secrets)} secret(s)",
            attempts=attempts,
            data=snapshot.to_dict(),
        )

    async def _update_monitoring(
        self, request: FailoverRequest, record: FailoverRecord
    ) -> _StepReport:
        rule = AlertRule.for_failover(
            request.failed_region, request.target_region, request.reason, record.started_at
        )
        context = self.policy.context_for(request.target_region)
        _, attempts = await self._call(
            lambda: self.monitoring.register_alert_rule(rule, cluster=context),
            f"register alert {rule.name} in {context}",
        )
        return _StepReport(
            OutcomeStatus.SUCCEEDED,
            f"alert rule {rule.name}",
            attempts=attempts,
            data={"rule": rule.name},
        )

    async def _notify(self, request: FailoverRequest, record: FailoverRecord) -> _StepReport:
        reroute = record.outcome(FailoverAction.REROUTE)
        if reroute is not None and reroute.failed:
            message = "Traffic reroute FAILED. Manual intervention required."
        else:
            message = "Traffic has been rerouted. Please investigate the root cause."
        event = NotificationEvent(
            title="Cluster Failover Event",
            fields={
                "Failed Cluster": request.failed_region,
                "Target Cluster": request.target_region,
                "Reason": request.reason,
                "Time": record.started_at.isoformat(),
                "Record": record.record_id,
            },
            severity="critical",
            message=message,
        )
        try:
            delivered = await asyncio.wait_for(
                self.notifier.send(event), timeout=self.policy.notify_timeout_seconds
            )
        except asyncio.TimeoutError:
            delivered, error = False, "timed out"
        except Exception as e:
            delivered, error = False, str(e)
        else:
            error = "no channel accepted the notification"
        if not delivered:
            logger.warning("Failover notification not delivered: %s", error)
            return _StepReport(OutcomeStatus.DEGRADED, f"notification not delivered: {error}")
        return _StepReport(OutcomeStatus.SUCCEEDED, "notification sent")

    async def _persist(self, record: FailoverRecord) -> ActionOutcome:
        started = datetime.now(UTC)
        try:
            _, attempts = await self._call(
                lambda: self.audit_sink.append(record), f"persist {record.record_id}"
            )
            status, detail = OutcomeStatus.SUCCEEDED, "record persisted"
        except ExternalCallFailure as e:
            logger.error("Failover record %s was not persisted: %s", record.record_id, e)
            status, detail, attempts = OutcomeStatus.FAILED, str(e), e.attempts
        return ActionOutcome(
            action=FailoverAction.RECORD,
            status=status,
            detail=detail,
            attempts=attempts,
            started_at=started,
            completed_at=datetime.now(UTC),
        )

    async def _use_region(self, region: str) -> ClusterControlPort:
        """Client bound to the region's context; self.cluster is never retargeted."""
        context = self.policy.context_for(region)
        cluster, _ = await self._call(
            lambda: self.cluster.switch_context(context), f"switch to {context}"
        )
        return cluster

    async def _call(self, operation: Callable[[], Awaitable[Any]], description: str) -> tuple[Any, int]:
        return await call_with_retry(operation, self.policy.retry, description, sleep=self._sleep)

    def _record_telemetry(self, run: FailoverRun) -> None:
        if self.telemetry is None:
            return
        record = run.record
        attributes = {
            "failed_region": record.failed_region,
            "target_region": record.target_region,
        }
        for outcome in record.actions + ((run.audit,) if run.audit else ()):
            self.telemetry.record_metric(
                "helmsman.failover.step",
                0.0 if outcome.failed else 1.0,
                attributes={
                    **attributes,
                    "action": outcome.action.value,
                    "status": outcome.status.value,
                },
            )
        if record.finished_at is not None:
            self.telemetry.record_metric(
                "helmsman.failover.duration_ms",
                (record.finished_at - record.started_at).total_seconds() * 1000,
                unit="ms",
                attributes={**attributes, "status": record.status.value},
            )

    async def _publish(self, record: FailoverRecord) -> None:
        events = record.pull_events()
        if self.event_bus is not None and events:
            await self.event_bus.publish(events)
