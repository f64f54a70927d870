"""
Traffic Shift Module

Architectural Intent:
- TrafficShift aggregate is the consistency boundary for one weighted
  traffic shift between two versions of a service
- Lifecycle managed through state transitions enforced by domain methods
- All state changes produce new instances to keep every step auditable
- Domain events published for notifications and telemetry

State Machine:
    INITIALIZING -> CONFIGURING_ROUTE -> AWAITING_CONVERGENCE -> VERIFIED
    VERIFIED -> COMPLETED                  (only when target weight is 100)
    any non-terminal -> FAILED | CANCELLED
    FAILED (during CONFIGURING_ROUTE) -> CONFIGURING_ROUTE   (resume)

Domain Events:
- TrafficShiftStartedEvent, RouteConfiguredEvent, TrafficShiftVerifiedEvent,
  TrafficShiftCompletedEvent, TrafficShiftFailedEvent, TrafficShiftCancelledEvent
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, UTC
from enum import Enum, auto
from typing import Any, Optional

from helmsman.domain.events.event_base import DomainEvent
from helmsman.domain.value_objects.traffic_split import RoutingMechanism, TrafficSplit


class ShiftState(Enum):
    INITIALIZING = auto()
    CONFIGURING_ROUTE = auto()
    AWAITING_CONVERGENCE = auto()
    VERIFIED = auto()
    COMPLETED = auto()
    FAILED = auto()
    CANCELLED = auto()


@dataclass(frozen=True)
class TrafficShiftStartedEvent(DomainEvent):
    service: str = ""
    namespace: str = ""
    to_version: str = ""
    target_weight: int = 0


@dataclass(frozen=True)
class RouteConfiguredEvent(DomainEvent):
    split: str = ""
    applied: bool = True


@dataclass(frozen=True)
class TrafficShiftVerifiedEvent(DomainEvent):
    expected_weight: int = 0
    observed_weight: float = 0.0


@dataclass(frozen=True)
class TrafficShiftCompletedEvent(DomainEvent):
    version: str = ""


@dataclass(frozen=True)
class TrafficShiftFailedEvent(DomainEvent):
    state: str = ""
    error_message: str = ""


@dataclass(frozen=True)
class TrafficShiftCancelledEvent(DomainEvent):
    state: str = ""


@dataclass(frozen=True)
class DeviationReport:
    """Observed-vs-requested traffic after the settle delay."""

    expected_weight: int
    observed_weight: float
    tolerance: float
    data_present: bool = True

    @property
    def deviation(self) -> float:
        return abs(self.observed_weight - self.expected_weight)

    @property
    def within_tolerance(self) -> bool:
        return self.deviation < self.tolerance

    def __str__(self) -> str:
        return (
            f"expected {self.expected_weight}%, observed {self.observed_weight:g}% "
            f"(deviation {self.deviation:g}, tolerance {self.tolerance:g})"
        )


_TERMINAL = frozenset({ShiftState.COMPLETED, ShiftState.FAILED, ShiftState.CANCELLED})


@dataclass(frozen=True)
class TrafficShift:
    service: str
    namespace: str
    to_version: str
    target_weight: int
    from_version: Optional[str] = None
    mechanism: Optional[RoutingMechanism] = None
    state: ShiftState = ShiftState.INITIALIZING
    route_applied: bool = False
    deviation: Optional[DeviationReport] = None
    error_message: Optional[str] = None
    failed_during: Optional[ShiftState] = None
    shift_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    domain_events: tuple[DomainEvent, ...] = ()

    @staticmethod
    def start(
        service: str,
        namespace: str,
        to_version: str,
        target_weight: int,
        from_version: Optional[str] = None,
    ) -> "TrafficShift":
        shift = TrafficShift(
            service=service,
            namespace=namespace,
            to_version=to_version,
            target_weight=target_weight,
            from_version=from_version,
        )
        return shift._emit(
            TrafficShiftStartedEvent(
                service=service,
                namespace=namespace,
                to_version=to_version,
                target_weight=target_weight,
            )
        )

    @property
    def split(self) -> Optional[TrafficSplit]:
        if self.from_version is None or self.mechanism is None:
            return None
        return TrafficSplit(
            service=self.service,
            namespace=self.namespace,
            from_version=self.from_version,
            to_version=self.to_version,
            target_weight=self.target_weight,
            mechanism=self.mechanism,
        )

    @property
    def is_terminal(self) -> bool:
        if self.state == ShiftState.VERIFIED:
            return self.target_weight < 100
        return self.state in _TERMINAL

    @property
    def succeeded(self) -> bool:
        return self.state == ShiftState.COMPLETED or (
            self.state == ShiftState.VERIFIED and self.target_weight < 100
        )

    @property
    def can_resume(self) -> bool:
        return (
            self.state == ShiftState.FAILED
            and self.failed_during == ShiftState.CONFIGURING_ROUTE
        )

    def resolve(self, from_version: str, mechanism: RoutingMechanism) -> "TrafficShift":
        self._require(ShiftState.INITIALIZING, "resolve versions")
        resolved = replace(
            self,
            from_version=from_version,
            mechanism=mechanism,
            state=ShiftState.CONFIGURING_ROUTE,
        )
        # Validates the split; raises ConfigurationConflict before any mutation
        _ = resolved.split
        return resolved

    def route_configured(self, applied: bool) -> "TrafficShift":
        self._require(ShiftState.CONFIGURING_ROUTE, "record route configuration")
        return replace(
            self, state=ShiftState.AWAITING_CONVERGENCE, route_applied=applied
        )._emit(RouteConfiguredEvent(split=str(self.split), applied=applied))

    def verify(self, report: DeviationReport) -> "TrafficShift":
        self._require(ShiftState.AWAITING_CONVERGENCE, "verify traffic")
        if not report.within_tolerance:
            return replace(self, deviation=report).fail(
                f"Traffic distribution deviation: {report}"
            )
        return replace(self, state=ShiftState.VERIFIED, deviation=report)._emit(
            TrafficShiftVerifiedEvent(
                expected_weight=report.expected_weight,
                observed_weight=report.observed_weight,
            )
        )

    def complete(self) -> "TrafficShift":
        self._require(ShiftState.VERIFIED, "complete")
        if self.target_weight != 100:
            raise ValueError("Only a shift to 100% can complete")
        return replace(self, state=ShiftState.COMPLETED)._emit(
            TrafficShiftCompletedEvent(version=self.to_version)
        )

    def fail(self, message: str) -> "TrafficShift":
        if self.is_terminal:
            raise ValueError(f"Cannot fail a shift in terminal state {self.state.name}")
        return replace(
            self,
            state=ShiftState.FAILED,
            error_message=message,
            failed_during=self.state,
        )._emit(TrafficShiftFailedEvent(state=self.state.name, error_message=message))

    def cancel(self) -> "TrafficShift":
        if self.is_terminal:
            raise ValueError(f"Cannot cancel a shift in terminal state {self.state.name}")
        return replace(self, state=ShiftState.CANCELLED)._emit(
            TrafficShiftCancelledEvent(state=self.state.name)
        )

    def resume(self) -> "TrafficShift":
        if not self.can_resume:
            raise ValueError("Only a shift that failed while configuring the route can resume")
        return replace(
            self,
            state=ShiftState.CONFIGURING_ROUTE,
            error_message=None,
            failed_during=None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "shift_id": self.shift_id,
            "service": self.service,
            "namespace": self.namespace,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "target_weight": self.target_weight,
            "mechanism": self.mechanism.value if self.mechanism else None,
            "state": self.state.name,
            "route_applied": self.route_applied,
            "observed_weight": self.deviation.observed_weight if self.deviation else None,
            "deviation": self.deviation.deviation if self.deviation else None,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat(),
        }

    def _require(self, state: ShiftState, action: str) -> None:
        if self.state != state:
            raise ValueError(
                f"Shift must be {state.name} to {action}, is {self.state.name}"
            )

    def _emit(self, event: DomainEvent) -> "TrafficShift":
        object.__setattr__(event, "aggregate_id", self.shift_id)
        return replace(self, domain_events=self.domain_events + (event,))
