from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class PoolSet:
    """
    Ordered, duplicate-free set of global load balancer pool IDs.

    The failover transform always keeps the target pool, so the result can
    never be missing both the failed and the target region.
    """
    pools: tuple[str, ...]

    def __post_init__(self) -> None:
        seen: list[str] = []
        for pool in self.pools:
            if pool and pool not in seen:
                seen.append(pool)
        object.__setattr__(self, "pools", tuple(seen))

    @staticmethod
    def of(pools: Iterable[str]) -> "PoolSet":
        return PoolSet(tuple(pools))

    def __contains__(self, pool: object) -> bool:
        return pool in self.pools

    def __iter__(self):
        return iter(self.pools)

    def __len__(self) -> int:
        return len(self.pools)

    def __str__(self) -> str:
        return ",".join(self.pools)

    def failover(self, failed_pool: str, target_pool: str) -> "PoolSet":
        """(current - {failed}) + {target}, preserving the current order."""
        remaining = tuple(p for p in self.pools if p != failed_pool)
        if target_pool not in remaining:
            remaining = remaining + (target_pool,)
        return PoolSet(remaining)
