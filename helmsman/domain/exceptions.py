"""
Domain Exceptions

Architectural Intent:
- Single taxonomy for every failure the controller can surface
- Threshold breaches are NOT exceptions; they are FAIL verdicts in a report
- Evaluators only ever see DataUnavailable, which they degrade to defaults
- Orchestrators convert ExternalCallFailure into failed step outcomes

Design Decisions:
- ConfigurationConflict also subclasses ValueError so request DTOs keep the
  plain ValueError contract at the application boundary
"""

from __future__ import annotations
from typing import Optional


class HelmsmanError(Exception):
    """Base class for all Helmsman errors."""


class DataUnavailable(HelmsmanError):
    """A read returned no usable data (timeout, transport error, empty result)."""

    def __init__(self, source: str, detail: str = "") -> None:
        self.source = source
        self.detail = detail
        message = f"No data from {source}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ExternalCallFailure(HelmsmanError):
    """A write to an external control plane failed after all retries."""

    def __init__(
        self,
        operation: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        reason = f": {last_error}" if last_error else ""
        super().__init__(f"{operation} failed after {attempts} attempt(s){reason}")


class ConfigurationConflict(HelmsmanError, ValueError):
    """Request or configuration rejected before any external mutation."""


class RunInProgressError(HelmsmanError):
    """Another run already holds the single-flight key."""

    def __init__(self, key: tuple[str, ...]) -> None:
        self.key = key
        super().__init__(f"A run is already in progress for {'/'.join(key)}")


class RecordSealedError(HelmsmanError):
    """Attempted to mutate a failover record that reached a terminal status."""
