from typing import Protocol, runtime_checkable

from helmsman.domain.entities.failover_record import FailoverRecord


@runtime_checkable
class AuditSinkPort(Protocol):
    """Append-only sink for terminal failover records, one per run."""

    async def append(self, record: FailoverRecord) -> None:
        """Persist a sealed record. Raises ValueError for open records."""
        ...
