"""
Centralized Logging

Architectural Intent:
- One stderr handler on the "helmsman" logger, human-readable or JSON lines
- Supports configurable log levels via CLI flags (--verbose, --debug)
- Run-scoped fields passed through ``extra`` (failover record id, traffic
  shift id, service, region, kube context) become top-level JSON keys so
  an incident can be followed across log lines

Design Decisions:
- Credentials from configuration (Cloudflare token, Slack webhook URL,
  PagerDuty key) are masked by a handler filter before any formatter
  runs; adapter errors may echo a request URL or header
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Iterable

CONTEXT_FIELDS = ("record_id", "shift_id", "service", "region", "context")
MASK = "***"


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = record.exc_text or self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class SecretRedactor(logging.Filter):
    """Replaces known secret values in a record's rendered message."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        # Longest first so a secret containing another is masked whole
        self.secrets = sorted({s for s in secrets if s}, key=len, reverse=True)

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, MASK)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg, record.args = redacted, None
        if record.exc_info and record.exc_info[1]:
            record.exc_text = self.redact(logging.Formatter().formatException(record.exc_info))
        return True


def resolve_level(name: str, default: int = logging.WARNING) -> int:
    """Map a level name such as "info" to its logging constant."""
    level = logging.getLevelName(name.upper()) if name else default
    return level if isinstance(level, int) else default


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    secrets: Iterable[str] = (),
) -> SecretRedactor:
    """Configure logging for the Helmsman application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, use JSON structured output. Otherwise human-readable.
        secrets: Values to mask in every emitted message.

    Returns:
        The redacting filter installed on the handler.
    """
    root = logging.getLogger("helmsman")
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    redactor = SecretRedactor(secrets)
    handler.addFilter(redactor)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )

    root.addHandler(handler)
    return redactor
