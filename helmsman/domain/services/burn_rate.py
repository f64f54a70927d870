"""
Burn Rate Analyzer

Architectural Intent:
- Pure domain service converting an observed success ratio into an SLO
  error-budget burn rate and a severity tier
- Stateless and deterministic: every call recomputes from its inputs

Domain Logic:
- burn_rate = (1 - success_ratio) / error_budget
- CRITICAL above the fast-burn multiple, WARNING above the slow-burn
  multiple, NORMAL otherwise
- minutes_to_exhaustion = monthly budget minutes / burn_rate (inf at 0)
- Multi-window: a tier is only reached when both the short and the long
  window burn above it. The short window makes alerts reset quickly once
  an outage ends; the long window keeps noise from paging.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from helmsman.domain.value_objects.thresholds import ThresholdSet

# Float noise in (1 - ratio) would otherwise leak into reports (0.4999999...)
_PRECISION = 9


class BurnClassification(IntEnum):
    NORMAL = 0
    WARNING = 1
    CRITICAL = 2


@dataclass(frozen=True)
class BurnRateAnalysis:
    success_ratio: float
    burn_rate: float
    classification: BurnClassification
    minutes_to_exhaustion: float

    @property
    def is_critical(self) -> bool:
        return self.classification == BurnClassification.CRITICAL


class BurnRateAnalyzer:
    """Computes and classifies error-budget burn rates."""

    def burn_rate(self, success_ratio: float, budget: float) -> float:
        if budget <= 0:
            raise ValueError(f"error budget must be positive, got {budget}")
        ratio = min(1.0, max(0.0, success_ratio))
        return round((1.0 - ratio) / budget, _PRECISION)

    def classify(self, burn_rate: float, thresholds: ThresholdSet) -> BurnClassification:
        if burn_rate > thresholds.fast_burn_multiple:
            return BurnClassification.CRITICAL
        if burn_rate > thresholds.slow_burn_multiple:
            return BurnClassification.WARNING
        return BurnClassification.NORMAL

    def minutes_to_exhaustion(self, burn_rate: float, thresholds: ThresholdSet) -> float:
        if burn_rate == 0:
            return math.inf
        return round(thresholds.monthly_budget_minutes / burn_rate, _PRECISION)

    def analyze(
        self,
        success_ratio: float,
        thresholds: ThresholdSet,
        budget: Optional[float] = None,
    ) -> BurnRateAnalysis:
        """Analyze one window. ``budget`` overrides thresholds.error_budget."""
        rate = self.burn_rate(
            success_ratio, budget if budget is not None else thresholds.error_budget
        )
        return BurnRateAnalysis(
            success_ratio=success_ratio,
            burn_rate=rate,
            classification=self.classify(rate, thresholds),
            minutes_to_exhaustion=self.minutes_to_exhaustion(rate, thresholds),
        )

    def analyze_windows(
        self,
        short_success_ratio: float,
        long_success_ratio: float,
        thresholds: ThresholdSet,
    ) -> BurnRateAnalysis:
        """Classify with both windows; the less severe window wins.

        The returned burn rate and exhaustion estimate are the long window's.
        """
        short = self.analyze(short_success_ratio, thresholds)
        long = self.analyze(long_success_ratio, thresholds)
        return BurnRateAnalysis(
            success_ratio=long.success_ratio,
            burn_rate=long.burn_rate,
            classification=min(short.classification, long.classification),
            minutes_to_exhaustion=long.minutes_to_exhaustion,
        )
