"""
PromQL Query Builder

Architectural Intent:
- Keeps every metrics expression in one place so evaluators stay free of
  backend syntax
- Expressions return values already in report units (percent, milliseconds)
"""

from __future__ import annotations
from dataclasses import dataclass

from helmsman.domain.value_objects.slo_target import SLOTarget

_SERVER_ERRORS = 'status=~"5.."'
_NOT_SERVER_ERRORS = 'status!~"5.."'


@dataclass(frozen=True)
class PromQLQueries:
    request_metric: str = "http_requests_total"
    duration_metric: str = "http_request_duration_seconds_bucket"
    job_label: str = "job"

    def _requests(self, target: SLOTarget, window: str, extra: str = "") -> str:
        labels = f'{self.job_label}="{target.deployment}"'
        if extra:
            labels = f"{labels},{extra}"
        return f"sum(rate({self.request_metric}{{{labels}}}[{window}]))"

    def error_rate(self, target: SLOTarget, window: str) -> str:
        """5xx responses as a percentage of all requests."""
        failed = self._requests(target, window, _SERVER_ERRORS)
        return f"({failed} / {self._requests(target, window)}) * 100"

    def availability(self, target: SLOTarget, window: str) -> str:
        """Non-5xx responses as a percentage of all requests."""
        succeeded = self._requests(target, window, _NOT_SERVER_ERRORS)
        return f"({succeeded} / {self._requests(target, window)}) * 100"

    def latency_quantile(self, target: SLOTarget, window: str, quantile: float) -> str:
        """Histogram quantile of request duration, in milliseconds."""
        if not 0 < quantile < 1:
            raise ValueError(f"quantile must be in (0, 1), got {quantile}")
        return (
            f"histogram_quantile({quantile}, sum(rate("
            f'{self.duration_metric}{{{self.job_label}="{target.deployment}"}}'
            f"[{window}])) by (le)) * 1000"
        )

    def traffic_share(self, service: str, version: str, window: str) -> str:
        """Share of a service's requests served by one version, in percent."""
        return (
            f'sum(rate({self.request_metric}{{service="{service}",version="{version}"}}[{window}])) / '
            f'sum(rate({self.request_metric}{{service="{service}"}}[{window}])) * 100'
        )
