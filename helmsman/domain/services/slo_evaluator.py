"""
SLO Evaluator Service

Architectural Intent:
- Domain service producing a ComplianceReport for one target over one window
- Pure with respect to its inputs and the external state read at call time:
  no writes, no shared mutable state, safe to call concurrently
- Never raises for metric-read failures; every failed read degrades to a
  defined default and is flagged on its verdict

Absent-Sample Policy (fail open):
- error rate and latency default to 0 (best case low)
- availability defaults to 100 (best case high)
- pod health with unreadable replica counts defaults to 0/0
Callers that need fail-closed semantics inspect ComplianceReport.missing_data.

Report Order:
    pod health, error rate, P95, P99, availability, burn rate
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from helmsman.domain.ports.cluster_control_port import ClusterControlPort
from helmsman.domain.ports.metrics_port import MetricsPort
from helmsman.domain.services.burn_rate import BurnClassification, BurnRateAnalyzer
from helmsman.domain.services.promql import PromQLQueries
from helmsman.domain.value_objects.compliance_report import (
    ComplianceReport,
    SLOMetric,
    SLOVerdict,
    VerdictStatus,
)
from helmsman.domain.value_objects.metric_sample import MetricSample
from helmsman.domain.value_objects.slo_target import SLOTarget
from helmsman.domain.value_objects.thresholds import ThresholdSet

logger = logging.getLogger(__name__)

ERROR_RATE_DEFAULT = 0.0
LATENCY_DEFAULT = 0.0
AVAILABILITY_DEFAULT = 100.0


class SLOEvaluator:
    """Evaluates error rate, latency, availability, burn rate and pod health."""

    def __init__(
        self,
        metrics: MetricsPort,
        cluster: ClusterControlPort,
        queries: Optional[PromQLQueries] = None,
        burn_analyzer: Optional[BurnRateAnalyzer] = None,
        read_timeout: float = 10.0,
    ) -> None:
        self.metrics = metrics
        self.cluster = cluster
        self.queries = queries or PromQLQueries()
        self.burn_analyzer = burn_analyzer or BurnRateAnalyzer()
        self.read_timeout = read_timeout

    async def evaluate(
        self,
        target: SLOTarget,
        window: str,
        thresholds: ThresholdSet,
        cluster: Optional[ClusterControlPort] = None,
    ) -> ComplianceReport:
        """Evaluate ``target``; ``cluster`` overrides the default cluster client."""
        q = self.queries
        replicas, error_rate, p95, p99, availability = await asyncio.gather(
            self._read_replicas(target, cluster or self.cluster),
            self._read(q.error_rate(target, window), window),
            self._read(q.latency_quantile(target, window, 0.95), window),
            self._read(q.latency_quantile(target, window, 0.99), window),
            self._read(q.availability(target, window), window),
        )

        verdicts = (
            self._pod_health_verdict(replicas),
            SLOVerdict.upper_bound(
                SLOMetric.ERROR_RATE,
                error_rate.or_default(ERROR_RATE_DEFAULT),
                thresholds.error_rate_pct,
                data_present=error_rate.present,
            ),
            SLOVerdict.upper_bound(
                SLOMetric.LATENCY_P95,
                p95.or_default(LATENCY_DEFAULT),
                thresholds.latency_p95_ms,
                data_present=p95.present,
            ),
            SLOVerdict.upper_bound(
                SLOMetric.LATENCY_P99,
                p99.or_default(LATENCY_DEFAULT),
                thresholds.latency_p99_ms,
                data_present=p99.present,
            ),
            SLOVerdict.lower_bound(
                SLOMetric.AVAILABILITY,
                availability.or_default(AVAILABILITY_DEFAULT),
                thresholds.availability_pct,
                data_present=availability.present,
            ),
            self._burn_rate_verdict(availability, thresholds),
        )

        report = ComplianceReport(target=target, window=window, verdicts=verdicts)
        logger.info(
            "SLO evaluation for %s over %s: %s (%d failed)",
            target,
            window,
            report.overall_status.value,
            report.failed_checks,
        )
        return report

    def _pod_health_verdict(self, replicas: Optional[tuple[int, int]]) -> SLOVerdict:
        ready, desired = replicas if replicas is not None else (0, 0)
        status = VerdictStatus.FAIL if ready < desired else VerdictStatus.PASS
        return SLOVerdict(
            metric=SLOMetric.POD_HEALTH,
            observed=float(ready),
            threshold=float(desired),
            status=status,
            data_present=replicas is not None,
            detail=f"{ready}/{desired} ready",
        )

    def _burn_rate_verdict(
        self, availability: MetricSample, thresholds: ThresholdSet
    ) -> SLOVerdict:
        success_ratio = availability.or_default(AVAILABILITY_DEFAULT) / 100.0
        analysis = self.burn_analyzer.analyze(success_ratio, thresholds)
        # Only a fast burn fails the check; a slow burn is reported as a warning
        status = VerdictStatus.FAIL if analysis.is_critical else VerdictStatus.PASS
        detail = analysis.classification.name.lower()
        if analysis.classification != BurnClassification.NORMAL:
            detail = (
                f"{detail}: budget exhausted in "
                f"{analysis.minutes_to_exhaustion:.0f} minutes"
            )
        return SLOVerdict(
            metric=SLOMetric.BURN_RATE,
            observed=analysis.burn_rate,
            threshold=thresholds.fast_burn_multiple,
            status=status,
            data_present=availability.present,
            detail=detail,
        )

    async def _read(self, expression: str, window: str) -> MetricSample:
        try:
            return await asyncio.wait_for(
                self.metrics.query(expression, window), timeout=self.read_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Metrics query timed out after %ss: %s", self.read_timeout, expression)
        except Exception as e:
            logger.warning("Metrics query failed (%s): %s", e, expression)
        return MetricSample.absent(window)

    async def _read_replicas(
        self, target: SLOTarget, cluster: ClusterControlPort
    ) -> Optional[tuple[int, int]]:
        try:
            return await asyncio.wait_for(
                cluster.get_replicas(target.deployment, target.namespace),
                timeout=self.read_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Replica read timed out for %s", target)
        except Exception as e:
            logger.warning("Replica read failed for %s: %s", target, e)
        return None
