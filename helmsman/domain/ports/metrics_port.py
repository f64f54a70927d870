"""
Metrics Port

Architectural Intent:
- Abstract interface to the metrics time-series backend
- Returns exactly one scalar per expression, or an absent sample

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- "No data" is a MetricSample with value None, never an exception and
  never a silent zero; adapters may raise DataUnavailable on transport
  failure and callers degrade it
"""

from typing import Protocol, runtime_checkable

from helmsman.domain.value_objects.metric_sample import MetricSample


@runtime_checkable
class MetricsPort(Protocol):
    """Port for scalar time-series queries over a trailing window."""

    async def query(self, expression: str, window: str) -> MetricSample:
        """Evaluate a single scalar expression over a trailing window."""
        ...
