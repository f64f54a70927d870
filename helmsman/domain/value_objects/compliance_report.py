"""
Compliance Report Value Objects

Architectural Intent:
- SLOVerdict is one pass/fail outcome for one metric
- ComplianceReport is the ordered, immutable result of one evaluation
- A threshold breach is data (a FAIL verdict), never an exception

Design Decisions:
- Verdicts remember whether their sample was actually present so callers
  that want fail-closed semantics can act on missing data
- overall_status is derived, never stored
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Optional

from helmsman.domain.value_objects.slo_target import SLOTarget


class SLOMetric(Enum):
    ERROR_RATE = "error_rate"
    LATENCY_P95 = "latency_p95"
    LATENCY_P99 = "latency_p99"
    AVAILABILITY = "availability"
    BURN_RATE = "burn_rate"
    POD_HEALTH = "pod_health"


class VerdictStatus(Enum):
    PASS = "pass"
    FAIL = "fail"


@dataclass(frozen=True)
class SLOVerdict:
    metric: SLOMetric
    observed: float
    threshold: float
    status: VerdictStatus
    data_present: bool = True
    detail: str = ""

    @property
    def passed(self) -> bool:
        return self.status == VerdictStatus.PASS

    @staticmethod
    def upper_bound(
        metric: SLOMetric,
        observed: float,
        threshold: float,
        data_present: bool = True,
        detail: str = "",
    ) -> "SLOVerdict":
        """Verdict for a metric that must not exceed its threshold."""
        status = VerdictStatus.FAIL if observed > threshold else VerdictStatus.PASS
        return SLOVerdict(metric, observed, threshold, status, data_present, detail)

    @staticmethod
    def lower_bound(
        metric: SLOMetric,
        observed: float,
        threshold: float,
        data_present: bool = True,
        detail: str = "",
    ) -> "SLOVerdict":
        """Verdict for a metric that must not drop below its threshold."""
        status = VerdictStatus.FAIL if observed < threshold else VerdictStatus.PASS
        return SLOVerdict(metric, observed, threshold, status, data_present, detail)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric.value,
            "observed": self.observed,
            "threshold": self.threshold,
            "status": self.status.value,
            "data_present": self.data_present,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class ComplianceReport:
    """Ordered verdicts for one target over one window."""

    target: SLOTarget
    window: str
    verdicts: tuple[SLOVerdict, ...]
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def overall_status(self) -> VerdictStatus:
        if any(not v.passed for v in self.verdicts):
            return VerdictStatus.FAIL
        return VerdictStatus.PASS

    @property
    def passed(self) -> bool:
        return self.overall_status == VerdictStatus.PASS

    @property
    def failed_checks(self) -> int:
        return sum(1 for v in self.verdicts if not v.passed)

    @property
    def missing_data(self) -> tuple[SLOMetric, ...]:
        return tuple(v.metric for v in self.verdicts if not v.data_present)

    def verdict(self, metric: SLOMetric) -> Optional[SLOVerdict]:
        for v in self.verdicts:
            if v.metric == metric:
                return v
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": str(self.target),
            "window": self.window,
            "overall_status": self.overall_status.value,
            "failed_checks": self.failed_checks,
            "generated_at": self.generated_at.isoformat(),
            "verdicts": [v.to_dict() for v in self.verdicts],
        }
