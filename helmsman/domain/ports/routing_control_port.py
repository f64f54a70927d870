"""
Routing Control Ports

Architectural Intent:
- LoadBalancerPort: global load balancer / DNS pool membership
- ServiceRoutingPort: in-cluster routing for one service (mesh weighted
  routes, ingress canary annotations, service selector)

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Two ports because the global and in-cluster authorities are different
  systems with different failure modes
- set_pools replaces the whole ordered pool list in one call so a reader
  only ever observes the old or the new set
- Weighted-route mutations are declarative (apply desired state) so that
  re-issuing the same weights is a no-op
"""

from typing import Optional, Protocol, runtime_checkable

from helmsman.domain.value_objects.traffic_split import RoutingMechanism


@runtime_checkable
class LoadBalancerPort(Protocol):
    """Port for global load balancer pool membership."""

    async def get_pools(self, load_balancer_id: str) -> list[str]:
        """Read the current ordered pool IDs from the server."""
        ...

    async def set_pools(
        self, load_balancer_id: str, pools: list[str], description: str
    ) -> None:
        """Replace the ordered pool IDs."""
        ...


@runtime_checkable
class ServiceRoutingPort(Protocol):
    """Port for in-cluster traffic routing of one service."""

    async def detect_mechanism(self, service: str, namespace: str) -> RoutingMechanism:
        """Probe which routing system fronts the service (mesh preferred)."""
        ...

    async def get_weighted_route(
        self, service: str, namespace: str, mechanism: RoutingMechanism
    ) -> Optional[dict[str, int]]:
        """Current version -> weight map, or None when no weighted route exists."""
        ...

    async def set_weighted_route(
        self,
        service: str,
        namespace: str,
        splits: dict[str, int],
        mechanism: RoutingMechanism,
    ) -> None:
        """Apply a version -> weight map summing to 100."""
        ...

    async def clear_weighted_route(
        self, service: str, namespace: str, mechanism: RoutingMechanism
    ) -> None:
        """Remove weighted routing rules once a version owns all traffic."""
        ...

    async def get_selector(self, service: str, namespace: str) -> Optional[str]:
        """Version the service selector points at, or None when unset."""
        ...

    async def set_selector(self, service: str, namespace: str, version: str) -> None:
        """Point the service selector at exactly one version."""
        ...
