"""
Retry Policy

Architectural Intent:
- Bounded exponential backoff for writes to external control planes
- Every attempt runs under an explicit timeout
- After the attempt ceiling the failure is surfaced as ExternalCallFailure,
  never swallowed

Design Decisions:
- ConfigurationConflict is never retried; it cannot succeed on a re-run
- Cancellation (asyncio.CancelledError) is never caught
- The sleep function is injectable so tests do not wait
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from helmsman.domain.exceptions import ConfigurationConflict, ExternalCallFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationConflict(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.timeout_seconds <= 0:
            raise ConfigurationConflict(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )

    def delay_for(self, attempt: int) -> float:
        """Backoff before attempt ``attempt + 1`` (attempt counts from 1)."""
        delay = self.base_delay_seconds * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay_seconds)
        if self.jitter:
            delay *= 0.5 + random.random() / 2
        return delay


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[T, int]:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Returns:
        (result, attempts used)

    Raises:
        ExternalCallFailure: after ``policy.max_attempts`` failed attempts
        ConfigurationConflict: immediately, without retrying
    """
    last_error: BaseException | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)
            if attempt > 1:
                logger.info("%s succeeded on attempt %d", description, attempt)
            return result, attempt
        except ConfigurationConflict:
            raise
        except asyncio.TimeoutError:
            last_error = TimeoutError(f"timed out after {policy.timeout_seconds}s")
            logger.warning(
                "%s attempt %d/%d timed out", description, attempt, policy.max_attempts
            )
        except Exception as e:
            last_error = e
            logger.warning(
                "%s attempt %d/%d failed: %s",
                description,
                attempt,
                policy.max_attempts,
                e,
            )
        if attempt < policy.max_attempts:
            await sleep(policy.delay_for(attempt))

    logger.error("%s failed after %d attempts", description, policy.max_attempts)
    raise ExternalCallFailure(description, policy.max_attempts, last_error)
