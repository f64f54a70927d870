"""
Request DTOs

Architectural Intent:
- Data Transfer Objects for use case boundaries
- Input validation at the application boundary, before any external call
- Decouples the CLI representation from the domain model
"""

import re
from dataclasses import dataclass
from typing import Optional

from helmsman.domain.exceptions import ConfigurationConflict

_WINDOW_RE = re.compile(r"^\d+[smhdw]$")


@dataclass(frozen=True)
class CheckSLORequest:
    deployment: str
    namespace: str = "production"
    window: str = "5m"
    cluster: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.deployment:
            raise ConfigurationConflict("deployment cannot be empty")
        if not _WINDOW_RE.match(self.window):
            raise ConfigurationConflict(
                f"window must look like 5m, 1h or 30s, got {self.window!r}"
            )


@dataclass(frozen=True)
class TrafficShiftRequest:
    service: str
    new_version: str
    namespace: str = "production"
    old_version: Optional[str] = None
    weight: int = 100

    def __post_init__(self) -> None:
        if not self.service:
            raise ConfigurationConflict("service cannot be empty")
        if not self.new_version:
            raise ConfigurationConflict("new_version cannot be empty")
        if isinstance(self.weight, bool) or not isinstance(self.weight, int):
            raise ConfigurationConflict(f"weight must be an integer, got {self.weight!r}")
        if not 0 <= self.weight <= 100:
            raise ConfigurationConflict(f"weight must be 0-100, got {self.weight}")
        if self.old_version is not None and self.old_version == self.new_version:
            raise ConfigurationConflict("old_version and new_version must differ")


@dataclass(frozen=True)
class RollbackTrafficRequest:
    service: str
    stable_version: str
    namespace: str = "production"
    canary_version: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.service:
            raise ConfigurationConflict("service cannot be empty")
        if not self.stable_version:
            raise ConfigurationConflict("stable_version cannot be empty")


@dataclass(frozen=True)
class FailoverRequest:
    failed_region: str
    target_region: str
    reason: str

    def __post_init__(self) -> None:
        if not self.failed_region:
            raise ConfigurationConflict("failed_region cannot be empty")
        if not self.target_region:
            raise ConfigurationConflict("target_region cannot be empty")
        if not self.reason:
            raise ConfigurationConflict("reason cannot be empty")
        if self.failed_region == self.target_region:
            raise ConfigurationConflict(
                f"failed and target region are both {self.failed_region!r}"
            )
