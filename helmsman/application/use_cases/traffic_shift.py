"""
Traffic Shift Use Case

Architectural Intent:
- Drives one TrafficShift aggregate through its state machine against the
  in-cluster routing authority and the metrics backend
- One active shift per (service, namespace); concurrent requests for the
  same service are rejected, disjoint services run in parallel
- Cancellable between steps: traffic stays at the last configured weight

Design Decisions:
- The requested weight is monotonic for the to-version; lowering it is a
  ConfigurationConflict and the caller must use rollback instead
- Re-issuing a shift that already matches the live routing state performs
  no mutation, so repeating the same request is safe
- Reads degrade (unknown route, unknown selector, absent traffic sample);
  writes go through the retry policy and fail the shift when exhausted
- No automatic rollback after a failed verification
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from helmsman.application.concurrency import SingleFlight
from helmsman.application.dtos.request_dtos import (
    RollbackTrafficRequest,
    TrafficShiftRequest,
)
from helmsman.application.retry import RetryPolicy, call_with_retry
from helmsman.domain.entities.traffic_shift import (
    DeviationReport,
    ShiftState,
    TrafficShift,
)
from helmsman.domain.exceptions import ConfigurationConflict, ExternalCallFailure
from helmsman.domain.ports.event_bus_port import EventBusPort
from helmsman.domain.ports.metrics_port import MetricsPort
from helmsman.domain.ports.routing_control_port import ServiceRoutingPort
from helmsman.domain.ports.telemetry_port import TelemetryPort
from helmsman.domain.services.promql import PromQLQueries
from helmsman.domain.value_objects.metric_sample import MetricSample
from helmsman.domain.value_objects.traffic_split import RoutingMechanism

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TrafficShiftPolicy:
    baseline_version: str = "blue"
    subsets: tuple[str, ...] = ("blue", "green")
    settle_delay_seconds: float = 10.0
    tolerance_pct: float = 10.0
    verify_window: str = "1m"
    read_timeout_seconds: float = 10.0
    fallback_mechanism: RoutingMechanism = RoutingMechanism.INGRESS_CANARY
    retry: RetryPolicy = field(default_factory=RetryPolicy)


class TrafficShiftController:
    def __init__(
        self,
        routing: ServiceRoutingPort,
        metrics: MetricsPort,
        policy: Optional[TrafficShiftPolicy] = None,
        event_bus: Optional[EventBusPort] = None,
        telemetry: Optional[TelemetryPort] = None,
        locks: Optional[SingleFlight] = None,
        queries: Optional[PromQLQueries] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.routing = routing
        self.metrics = metrics
        self.policy = policy or TrafficShiftPolicy()
        self.event_bus = event_bus
        self.telemetry = telemetry
        self.locks = locks or SingleFlight()
        self.queries = queries or PromQLQueries()
        self._sleep = sleep

    async def execute(
        self, request: TrafficShiftRequest, cancel: Optional[asyncio.Event] = None
    ) -> TrafficShift:
        async with self.locks.hold("traffic", request.service, request.namespace):
            shift = TrafficShift.start(
                service=request.service,
                namespace=request.namespace,
                to_version=request.new_version,
                target_weight=request.weight,
                from_version=request.old_version,
            )
            logger.info(
                "Shifting %s/%s: %d%% to %s",
                request.namespace,
                request.service,
                request.weight,
                request.new_version,
            )
            shift = await self._initialize(shift)
            return await self._drive(shift, cancel, published=0, enforce_monotonic=True)

    async def resume(
        self, shift: TrafficShift, cancel: Optional[asyncio.Event] = None
    ) -> TrafficShift:
        """Re-enter a shift that failed while configuring the route."""
        if not shift.can_resume:
            raise ConfigurationConflict(
                f"Shift {shift.shift_id} in state {shift.state.name} cannot be resumed"
            )
        async with self.locks.hold("traffic", shift.service, shift.namespace):
            logger.info("Resuming shift %s for %s", shift.shift_id, shift.service)
            return await self._drive(
                shift.resume(),
                cancel,
                published=len(shift.domain_events),
                enforce_monotonic=True,
            )

    async def rollback(
        self, request: RollbackTrafficRequest, cancel: Optional[asyncio.Event] = None
    ) -> TrafficShift:
        """Return all traffic to the stable version and drop weighted rules."""
        async with self.locks.hold("traffic", request.service, request.namespace):
            mechanism = await self._detect_mechanism(request.service, request.namespace)
            canary = request.canary_version
            if canary is None:
                route = await self._read_route(request.service, request.namespace, mechanism)
                selector = await self._read_selector(request.service, request.namespace)
                canary = self._counterpart(request.stable_version, route, selector)
            logger.warning(
                "Rolling back %s/%s from %s to %s",
                request.namespace,
                request.service,
                canary,
                request.stable_version,
            )
            shift = TrafficShift.start(
                service=request.service,
                namespace=request.namespace,
                to_version=request.stable_version,
                target_weight=100,
                from_version=canary,
            ).resolve(canary, mechanism)
            return await self._drive(shift, cancel, published=0, enforce_monotonic=False)

    async def _initialize(self, shift: TrafficShift) -> TrafficShift:
        mechanism = await self._detect_mechanism(shift.service, shift.namespace)
        from_version = shift.from_version
        if from_version is None:
            route = await self._read_route(shift.service, shift.namespace, mechanism)
            selector = await self._read_selector(shift.service, shift.namespace)
            from_version = self._counterpart(shift.to_version, route, selector)
        shift = shift.resolve(from_version, mechanism)
        logger.info("Resolved %s using %s routing", shift.split, mechanism.value)
        return shift

    async def _drive(
        self,
        shift: TrafficShift,
        cancel: Optional[asyncio.Event],
        published: int,
        enforce_monotonic: bool,
    ) -> TrafficShift:
        try:
            if self._cancelled(cancel):
                shift = shift.cancel()
                return shift
            shift = await self._configure(shift, enforce_monotonic)
            if shift.state == ShiftState.FAILED:
                return shift

            if self._cancelled(cancel):
                shift = shift.cancel()
                return shift
            if shift.route_applied:
                logger.info(
                    "Waiting %ss for traffic to settle", self.policy.settle_delay_seconds
                )
                await self._sleep(self.policy.settle_delay_seconds)

            if self._cancelled(cancel):
                shift = shift.cancel()
                return shift
            shift = await self._verify(shift)
            if shift.state != ShiftState.VERIFIED or shift.target_weight < 100:
                return shift

            if self._cancelled(cancel):
                shift = shift.cancel()
                return shift
            shift = await self._complete(shift)
            return shift
        finally:
            self._log_outcome(shift)
            await self._publish(shift, published)

    async def _configure(self, shift: TrafficShift, enforce_monotonic: bool) -> TrafficShift:
        split = shift.split
        route = await self._read_route(shift.service, shift.namespace, split.mechanism)
        selector = await self._read_selector(shift.service, shift.namespace)
        live_weight = self._live_weight(shift, route, selector)

        if enforce_monotonic and live_weight is not None and live_weight > shift.target_weight:
            raise ConfigurationConflict(
                f"{shift.to_version} already receives {live_weight}% of {shift.service}; "
                f"lowering it to {shift.target_weight}% requires a rollback"
            )

        desired = split.weights()
        if route == desired or (route is None and live_weight == 100 == shift.target_weight):
            logger.info("Routing for %s already matches %s, nothing to apply", shift.service, desired)
            return shift.route_configured(applied=False)

        try:
            await self._write(
                lambda: self.routing.set_weighted_route(
                    shift.service, shift.namespace, desired, split.mechanism
                ),
                f"set weighted route {split}",
            )
        except ExternalCallFailure as e:
            return shift.fail(str(e))
        return shift.route_configured(applied=True)

    async def _verify(self, shift: TrafficShift) -> TrafficShift:
        expression = self.queries.traffic_share(
            shift.service, shift.to_version, self.policy.verify_window
        )
        sample = await self._read(
            self.metrics.query(expression, self.policy.verify_window),
            f"traffic share of {shift.to_version}",
        )
        if sample is None:
            sample = MetricSample.absent(self.policy.verify_window)
        if not sample.present:
            logger.warning(
                "No traffic data for %s/%s, treating observed share as 0",
                shift.service,
                shift.to_version,
            )
        report = DeviationReport(
            expected_weight=shift.target_weight,
            observed_weight=sample.or_default(0.0),
            tolerance=self.policy.tolerance_pct,
            data_present=sample.present,
        )
        if self.telemetry is not None:
            self.telemetry.record_metric(
                "helmsman.traffic.weight",
                report.observed_weight,
                unit="%",
                attributes={
                    "service": shift.service,
                    "version": shift.to_version,
                    "expected": str(shift.target_weight),
                },
            )
        return shift.verify(report)

    async def _complete(self, shift: TrafficShift) -> TrafficShift:
        mechanism = shift.mechanism
        try:
            selector = await self._read_selector(shift.service, shift.namespace)
            if selector != shift.to_version:
                await self._write(
                    lambda: self.routing.set_selector(
                        shift.service, shift.namespace, shift.to_version
                    ),
                    f"point {shift.service} selector at {shift.to_version}",
                )
        except ExternalCallFailure as e:
            return shift.fail(str(e))

        route = await self._read_route(shift.service, shift.namespace, mechanism)
        if route is not None or shift.route_applied:
            try:
                await self._write(
                    lambda: self.routing.clear_weighted_route(
                        shift.service, shift.namespace, mechanism
                    ),
                    f"remove weighted route for {shift.service}",
                )
            except ExternalCallFailure as e:
                # Selector already owns all traffic; a stale weighted route is harmless
                logger.warning("Weighted route for %s left in place: %s", shift.service, e)
        return shift.complete()

    def _live_weight(
        self,
        shift: TrafficShift,
        route: Optional[dict[str, int]],
        selector: Optional[str],
    ) -> Optional[int]:
        """Share the to-version currently receives, when it can be known."""
        if route is not None:
            if set(route) == {shift.from_version, shift.to_version}:
                return route[shift.to_version]
            return None
        if selector == shift.to_version:
            return 100
        if selector == shift.from_version:
            return 0
        return None

    def _counterpart(
        self,
        version: str,
        route: Optional[dict[str, int]],
        selector: Optional[str],
    ) -> str:
        """Pick the version that currently serves traffic alongside ``version``."""
        if route:
            others = [v for v in route if v != version]
            if len(others) == 1:
                return others[0]
        if selector and selector != version:
            return selector
        if self.policy.baseline_version != version:
            return self.policy.baseline_version
        for subset in self.policy.subsets:
            if subset != version:
                return subset
        raise ConfigurationConflict(f"No version to shift traffic away from for {version!r}")

    async def _detect_mechanism(self, service: str, namespace: str) -> RoutingMechanism:
        mechanism = await self._read(
            self.routing.detect_mechanism(service, namespace),
            f"routing mechanism for {service}",
        )
        if mechanism is None:
            logger.warning(
                "Could not detect routing for %s, using %s",
                service,
                self.policy.fallback_mechanism.value,
            )
            return self.policy.fallback_mechanism
        return mechanism

    async def _read_route(
        self, service: str, namespace: str, mechanism: RoutingMechanism
    ) -> Optional[dict[str, int]]:
        return await self._read(
            self.routing.get_weighted_route(service, namespace, mechanism),
            f"weighted route for {service}",
        )

    async def _read_selector(self, service: str, namespace: str) -> Optional[str]:
        return await self._read(
            self.routing.get_selector(service, namespace), f"selector for {service}"
        )

    async def _read(self, call: Awaitable[T], description: str) -> Optional[T]:
        try:
            return await asyncio.wait_for(call, timeout=self.policy.read_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Reading %s timed out", description)
        except Exception as e:
            logger.warning("Reading %s failed: %s", description, e)
        return None

    async def _write(self, operation: Callable[[], Awaitable[None]], description: str) -> None:
        await call_with_retry(operation, self.policy.retry, description, sleep=self._sleep)

    def _cancelled(self, cancel: Optional[asyncio.Event]) -> bool:
        return cancel is not None and cancel.is_set()

    def _log_outcome(self, shift: TrafficShift) -> None:
        context = {"shift_id": shift.shift_id, "service": shift.service}
        if shift.state == ShiftState.FAILED:
            logger.error(
                "Traffic shift %s failed: %s", shift.shift_id, shift.error_message, extra=context
            )
        elif shift.state == ShiftState.CANCELLED:
            logger.warning(
                "Traffic shift %s cancelled, routing left at last configured weight",
                shift.shift_id,
                extra=context,
            )
        else:
            logger.info(
                "Traffic shift %s ended in %s", shift.shift_id, shift.state.name, extra=context
            )

    async def _publish(self, shift: TrafficShift, published: int) -> None:
        if self.event_bus is None:
            return
        events = list(shift.domain_events[published:])
        if events:
            await self.event_bus.publish(events)
