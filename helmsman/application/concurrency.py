"""
Single-Flight Guard

Architectural Intent:
- At most one active run per key, e.g. ("traffic", service, namespace) or
  ("failover", failed_region, target_region)
- Runs on disjoint keys proceed fully in parallel
- Callers can see which keys are held; a second run on a held key is
  rejected immediately rather than queued

Design Decisions:
- asyncio is single-threaded, so the check-and-insert below is atomic as
  long as there is no await between them
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from helmsman.domain.exceptions import RunInProgressError

logger = logging.getLogger(__name__)


class SingleFlight:
    def __init__(self) -> None:
        self._active: set[tuple[str, ...]] = set()

    def is_held(self, *key: str) -> bool:
        return tuple(key) in self._active

    @property
    def active_keys(self) -> frozenset[tuple[str, ...]]:
        return frozenset(self._active)

    @asynccontextmanager
    async def hold(self, *key: str) -> AsyncIterator[None]:
        k = tuple(key)
        if k in self._active:
            raise RunInProgressError(k)
        self._active.add(k)
        logger.debug("Acquired single-flight key %s", "/".join(k))
        try:
            yield
        finally:
            self._active.discard(k)
            logger.debug("Released single-flight key %s", "/".join(k))
