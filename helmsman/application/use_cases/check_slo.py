"""
Check SLO Use Case

Architectural Intent:
- Evaluates one deployment against the configured ThresholdSet and returns
  a ComplianceReport; never mutates anything outside the metrics it reads
- Optionally evaluates a named cluster through a client bound to it
- execute_all_regions walks every configured region context in turn

Design Decisions:
- Switching context yields a client bound to that cluster for this
  evaluation only; the shared client is never retargeted
- Regions are evaluated in turn so per-region output stays in order
- A context that cannot be selected is reported as a failed pod-health
  verdict for that region rather than silently evaluating the wrong cluster
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from helmsman.application.dtos.request_dtos import CheckSLORequest
from helmsman.domain.ports.cluster_control_port import ClusterControlPort
from helmsman.domain.ports.telemetry_port import TelemetryPort
from helmsman.domain.services.slo_evaluator import SLOEvaluator
from helmsman.domain.value_objects.compliance_report import (
    ComplianceReport,
    SLOMetric,
    SLOVerdict,
    VerdictStatus,
)
from helmsman.domain.value_objects.slo_target import SLOTarget
from helmsman.domain.value_objects.thresholds import ThresholdSet

logger = logging.getLogger(__name__)


class CheckSLO:
    def __init__(
        self,
        evaluator: SLOEvaluator,
        cluster: ClusterControlPort,
        thresholds: ThresholdSet,
        telemetry: Optional[TelemetryPort] = None,
        context_timeout: float = 30.0,
    ):
        self.evaluator = evaluator
        self.cluster = cluster
        self.thresholds = thresholds
        self.telemetry = telemetry
        self.context_timeout = context_timeout

    async def execute(self, request: CheckSLORequest) -> ComplianceReport:
        target = SLOTarget(
            deployment=request.deployment,
            namespace=request.namespace,
            cluster=request.cluster,
        )
        cluster = self.cluster
        if request.cluster:
            try:
                cluster = await asyncio.wait_for(
                    self.cluster.switch_context(request.cluster),
                    timeout=self.context_timeout,
                )
            except Exception as e:
                logger.error("Cannot switch to cluster %s: %s", request.cluster, e)
                return self._unreachable(target, request.window, str(e))

        report = await self.evaluator.evaluate(
            target, request.window, self.thresholds, cluster=cluster
        )
        self._record(report)
        return report

    async def execute_all_regions(
        self, request: CheckSLORequest, region_contexts: dict[str, str]
    ) -> list[ComplianceReport]:
        reports = []
        for region, context in region_contexts.items():
            logger.info("Checking %s in region %s (context %s)", request.deployment, region, context)
            reports.append(
                await self.execute(
                    CheckSLORequest(
                        deployment=request.deployment,
                        namespace=request.namespace,
                        window=request.window,
                        cluster=context,
                    )
                )
            )
        return reports

    def _unreachable(self, target: SLOTarget, window: str, error: str) -> ComplianceReport:
        verdict = SLOVerdict(
            metric=SLOMetric.POD_HEALTH,
            observed=0.0,
            threshold=0.0,
            status=VerdictStatus.FAIL,
            data_present=False,
            detail=f"cluster context unavailable: {error}",
        )
        return ComplianceReport(target=target, window=window, verdicts=(verdict,))

    def _record(self, report: ComplianceReport) -> None:
        if self.telemetry is None:
            return
        attributes = {"target": str(report.target), "window": report.window}
        for verdict in report.verdicts:
            self.telemetry.record_metric(
                "helmsman.slo.observed",
                verdict.observed,
                attributes={
                    **attributes,
                    "metric": verdict.metric.value,
                    "status": verdict.status.value,
                },
            )
            if verdict.metric == SLOMetric.BURN_RATE:
                self.telemetry.record_metric(
                    "helmsman.slo.burn_rate", verdict.observed, attributes=attributes
                )
