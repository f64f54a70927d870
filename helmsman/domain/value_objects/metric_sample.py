from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Optional


@dataclass(frozen=True)
class MetricSample:
    """
    Value Object for a single scalar read from the metrics backend.

    ``value`` is None when the backend had no data. That is a distinct state
    from a legitimate zero and is never coerced silently; callers pick a
    default explicitly via ``or_default``.
    """
    value: Optional[float]
    window: str
    queried_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def present(self) -> bool:
        return self.value is not None

    def or_default(self, default: float) -> float:
        return self.value if self.value is not None else default

    @staticmethod
    def absent(window: str) -> "MetricSample":
        return MetricSample(value=None, window=window)
