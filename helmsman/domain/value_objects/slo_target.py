"""
SLO Target Value Object

Architectural Intent:
- Identifies the workload an evaluation is about
- Validates Kubernetes object names (RFC 1123 labels) at construction
"""

import re
from dataclasses import dataclass
from typing import Optional

from helmsman.domain.exceptions import ConfigurationConflict

_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9.]{0,251}[a-z0-9])?$")


def is_valid_name(name: str) -> bool:
    return bool(name) and bool(_NAME_RE.match(name))


@dataclass(frozen=True)
class SLOTarget:
    deployment: str
    namespace: str = "production"
    cluster: Optional[str] = None

    def __post_init__(self) -> None:
        if not is_valid_name(self.deployment):
            raise ConfigurationConflict(f"Invalid deployment name: {self.deployment!r}")
        if not is_valid_name(self.namespace):
            raise ConfigurationConflict(f"Invalid namespace: {self.namespace!r}")

    def __str__(self) -> str:
        base = f"{self.namespace}/{self.deployment}"
        return f"{self.cluster}:{base}" if self.cluster else base
