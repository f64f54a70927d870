"""
Threshold Set Value Object

Architectural Intent:
- Immutable SLO configuration shared by the evaluator and burn-rate analyzer
- Invariants are enforced at construction so evaluators can trust them

Defaults mirror a 99.9% availability service: 0.1% error budget, a fast
burn of 14.4x (1% of the monthly budget in one hour) and a slow burn of
6x (5% of the monthly budget in six hours).
"""

from __future__ import annotations
from dataclasses import dataclass, fields

from helmsman.domain.exceptions import ConfigurationConflict

MONTHLY_BUDGET_MINUTES = 43200.0  # 30 days


@dataclass(frozen=True)
class ThresholdSet:
    error_rate_pct: float = 0.5
    latency_p95_ms: float = 300.0
    latency_p99_ms: float = 1000.0
    availability_pct: float = 99.9
    error_budget: float = 0.001
    fast_burn_multiple: float = 14.4
    slow_burn_multiple: float = 6.0
    monthly_budget_minutes: float = MONTHLY_BUDGET_MINUTES

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ConfigurationConflict(
                    f"{f.name} must be non-negative, got {value}"
                )
        if self.availability_pct > 100:
            raise ConfigurationConflict(
                f"availability_pct must be at most 100, got {self.availability_pct}"
            )
        if not 0 < self.error_budget <= 1:
            raise ConfigurationConflict(
                f"error_budget must be a fraction in (0, 1], got {self.error_budget}"
            )
        if self.fast_burn_multiple <= self.slow_burn_multiple:
            raise ConfigurationConflict(
                "fast_burn_multiple must be greater than slow_burn_multiple "
                f"({self.fast_burn_multiple} <= {self.slow_burn_multiple})"
            )
