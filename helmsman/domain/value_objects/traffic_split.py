"""
Traffic Split Value Object

Architectural Intent:
- Describes one requested weighted split between two versions of a service
- The two weights always sum to 100; only the new version's weight is stored
- The routing mechanism is a tagged enum resolved once per run

Domain Rules:
- target_weight is an integer percentage in [0, 100]
- from_version and to_version must differ
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum

from helmsman.domain.exceptions import ConfigurationConflict
from helmsman.domain.value_objects.slo_target import is_valid_name


class RoutingMechanism(Enum):
    MESH_WEIGHTED_ROUTE = "mesh"
    INGRESS_CANARY = "ingress"


@dataclass(frozen=True)
class TrafficSplit:
    service: str
    namespace: str
    from_version: str
    to_version: str
    target_weight: int
    mechanism: RoutingMechanism = RoutingMechanism.MESH_WEIGHTED_ROUTE

    def __post_init__(self) -> None:
        if not is_valid_name(self.service):
            raise ConfigurationConflict(f"Invalid service name: {self.service!r}")
        if not is_valid_name(self.namespace):
            raise ConfigurationConflict(f"Invalid namespace: {self.namespace!r}")
        if not self.from_version or not self.to_version:
            raise ConfigurationConflict("Both from_version and to_version are required")
        if self.from_version == self.to_version:
            raise ConfigurationConflict(
                f"from_version and to_version are both {self.to_version!r}"
            )
        if isinstance(self.target_weight, bool) or not isinstance(self.target_weight, int):
            raise ConfigurationConflict(
                f"target_weight must be an integer, got {self.target_weight!r}"
            )
        if not 0 <= self.target_weight <= 100:
            raise ConfigurationConflict(
                f"target_weight must be 0-100, got {self.target_weight}"
            )

    @property
    def from_weight(self) -> int:
        return 100 - self.target_weight

    @property
    def is_full_cutover(self) -> bool:
        return self.target_weight == 100

    def weights(self) -> dict[str, int]:
        """Version -> weight percentage, always summing to 100."""
        return {self.to_version: self.target_weight, self.from_version: self.from_weight}

    def with_mechanism(self, mechanism: RoutingMechanism) -> "TrafficSplit":
        return replace(self, mechanism=mechanism)

    def __str__(self) -> str:
        return (
            f"{self.namespace}/{self.service}: {self.to_version}={self.target_weight}% "
            f"{self.from_version}={self.from_weight}% via {self.mechanism.value}"
        )


def validate_weights(weights: dict[str, int]) -> None:
    """Reject a raw weight map that cannot describe a two-version split."""
    if len(weights) != 2:
        raise ConfigurationConflict(
            f"A split must name exactly two versions, got {sorted(weights)}"
        )
    if any(w < 0 or w > 100 for w in weights.values()):
        raise ConfigurationConflict(f"Weights must be 0-100, got {weights}")
    total = sum(weights.values())
    if total != 100:
        raise ConfigurationConflict(f"Weights must sum to 100, got {total}")
