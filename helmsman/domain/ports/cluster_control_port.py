"""
Cluster Control Port

Architectural Intent:
- Port interface to the cluster control plane of one region at a time
- Covers replica inspection and scaling, readiness waits, context
  switching and read-only configuration listing
- switch_context returns a client bound to the named cluster and leaves
  the receiver untouched, so concurrent callers never share a context

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- wait_ready raises TimeoutError when the deadline passes; other failures
  propagate as exceptions for the caller's retry policy
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from helmsman.domain.value_objects.config_snapshot import ConfigObject


@runtime_checkable
class ClusterControlPort(Protocol):
    """Port for cluster capacity operations."""

    async def get_replicas(self, deployment: str, namespace: str) -> tuple[int, int]:
        """Return (ready, desired) replica counts."""
        ...

    async def set_replicas(self, deployment: str, namespace: str, count: int) -> None:
        """Set the desired replica count."""
        ...

    async def wait_ready(self, deployment: str, namespace: str, timeout: float) -> None:
        """Block until all desired replicas are ready. Raises TimeoutError."""
        ...

    async def switch_context(self, cluster: str) -> ClusterControlPort:
        """Return a client for another cluster. Raises if it does not exist."""
        ...

    async def list_config_objects(self, namespace: str) -> list[ConfigObject]:
        """List ConfigMaps and Secrets (names and keys only) in a namespace."""
        ...
