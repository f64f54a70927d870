"""
Failover Record Module

Architectural Intent:
- FailoverRecord is the audit aggregate of exactly one failover run
- Created when a failover is initiated, appended to as each action finishes
- Sealed once it reaches a terminal status: any further mutation raises
- Never shared between runs; the orchestrator's keyed lock guarantees one
  IN_PROGRESS record per (failed_region, target_region)

Design Decisions:
- Each pipeline step yields an ActionOutcome instead of raising, so the
  terminal status is an aggregation over outcomes rather than a try/except
  around the whole pipeline
- DEGRADED outcomes (notification failure, readiness timeout) are recorded
  but do not make the run PARTIALLY_FAILED

Domain Events:
- FailoverStartedEvent, FailoverActionEvent, FailoverFinishedEvent
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Optional

from helmsman.domain.events.event_base import DomainEvent
from helmsman.domain.exceptions import RecordSealedError


class FailoverStatus(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"
    CANCELLED = "cancelled"


class FailoverAction(Enum):
    REROUTE = "reroute"
    SCALE_TARGET = "scale_target"
    SYNC_CONFIGURATION = "sync_configuration"
    UPDATE_MONITORING = "update_monitoring"
    NOTIFY = "notify"
    RECORD = "record"


class OutcomeStatus(Enum):
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionOutcome:
    action: FailoverAction
    status: OutcomeStatus
    detail: str = ""
    attempts: int = 1
    data: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    @property
    def duration_ms(self) -> float:
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "status": self.status.value,
            "detail": self.detail,
            "attempts": self.attempts,
            "data": self.data,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(frozen=True)
class FailoverStartedEvent(DomainEvent):
    failed_region: str = ""
    target_region: str = ""
    reason: str = ""


@dataclass(frozen=True)
class FailoverActionEvent(DomainEvent):
    action: str = ""
    status: str = ""
    detail: str = ""


@dataclass(frozen=True)
class FailoverFinishedEvent(DomainEvent):
    status: str = ""
    failed_actions: int = 0


class FailoverRecord:
    """Append-only record of one failover run."""

    def __init__(
        self,
        failed_region: str,
        target_region: str,
        reason: str,
        record_id: Optional[str] = None,
        started_at: Optional[datetime] = None,
    ) -> None:
        self._record_id = record_id or f"FO-{uuid.uuid4().hex[:10].upper()}"
        self._failed_region = failed_region
        self._target_region = target_region
        self._reason = reason
        self._started_at = started_at or datetime.now(UTC)
        self._finished_at: Optional[datetime] = None
        self._status = FailoverStatus.IN_PROGRESS
        self._actions: list[ActionOutcome] = []
        self._domain_events: list[DomainEvent] = []
        self._raise(
            FailoverStartedEvent(
                failed_region=failed_region,
                target_region=target_region,
                reason=reason,
            )
        )

    @property
    def record_id(self) -> str:
        return self._record_id

    @property
    def failed_region(self) -> str:
        return self._failed_region

    @property
    def target_region(self) -> str:
        return self._target_region

    @property
    def reason(self) -> str:
        return self._reason

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def finished_at(self) -> Optional[datetime]:
        return self._finished_at

    @property
    def status(self) -> FailoverStatus:
        return self._status

    @property
    def actions(self) -> tuple[ActionOutcome, ...]:
        return tuple(self._actions)

    @property
    def is_terminal(self) -> bool:
        return self._status != FailoverStatus.IN_PROGRESS

    @property
    def failed_actions(self) -> int:
        return sum(1 for a in self._actions if a.failed)

    def outcome(self, action: FailoverAction) -> Optional[ActionOutcome]:
        for a in self._actions:
            if a.action == action:
                return a
        return None

    def append(self, outcome: ActionOutcome) -> None:
        self._check_open()
        self._actions.append(outcome)
        self._raise(
            FailoverActionEvent(
                action=outcome.action.value,
                status=outcome.status.value,
                detail=outcome.detail,
            )
        )

    def finish(self) -> FailoverStatus:
        """Seal the record with a status aggregated from its outcomes."""
        self._check_open()
        self._status = (
            FailoverStatus.PARTIALLY_FAILED
            if self.failed_actions
            else FailoverStatus.COMPLETED
        )
        return self._seal()

    def cancel(self) -> FailoverStatus:
        self._check_open()
        if self._actions:
            raise RecordSealedError(
                "A failover with recorded actions can no longer be cancelled"
            )
        self._status = FailoverStatus.CANCELLED
        return self._seal()

    def pull_events(self) -> list[DomainEvent]:
        events, self._domain_events = self._domain_events, []
        return events

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self._record_id,
            "failed_region": self._failed_region,
            "target_region": self._target_region,
            "reason": self._reason,
            "status": self._status.value,
            "started_at": self._started_at.isoformat(),
            "finished_at": self._finished_at.isoformat() if self._finished_at else None,
            "actions": [a.to_dict() for a in self._actions],
        }

    def _seal(self) -> FailoverStatus:
        self._finished_at = datetime.now(UTC)
        self._raise(
            FailoverFinishedEvent(
                status=self._status.value, failed_actions=self.failed_actions
            )
        )
        return self._status

    def _check_open(self) -> None:
        if self.is_terminal:
            raise RecordSealedError(
                f"Failover record {self._record_id} is {self._status.value}"
            )

    def _raise(self, event: DomainEvent) -> None:
        object.__setattr__(event, "aggregate_id", self._record_id)
        self._domain_events.append(event)

    def __repr__(self) -> str:
        return (
            f"FailoverRecord(record_id={self._record_id}, "
            f"failed_region={self._failed_region}, target_region={self._target_region}, "
            f"status={self._status}, actions={len(self._actions)})"
        )
