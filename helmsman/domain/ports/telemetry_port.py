from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class TelemetryPort(Protocol):
    """Gauge-style metric sink; implementations buffer when export is off."""

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None: ...
