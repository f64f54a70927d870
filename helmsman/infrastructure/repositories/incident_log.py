"""
Incident Log Writer

Architectural Intent:
- Writes a human-readable log file per failover for the on-call engineer:
  what failed, what was done, what to do next
- File name follows failover-YYYYmmdd-HHMMSS.log
"""

from __future__ import annotations
import logging
from pathlib import Path

from helmsman.domain.entities.failover_record import FailoverRecord

logger = logging.getLogger(__name__)

_RULE = "=" * 44


class IncidentLogWriter:
    def __init__(self, directory: str = ".") -> None:
        self.directory = Path(directory)

    def path_for(self, record: FailoverRecord) -> Path:
        return self.directory / f"failover-{record.started_at.strftime('%Y%m%d-%H%M%S')}.log"

    def render(self, record: FailoverRecord) -> str:
        failed = record.failed_region
        lines = [
            _RULE,
            "CLUSTER FAILOVER INCIDENT LOG",
            _RULE,
            "",
            f"Record: {record.record_id}",
            f"Timestamp: {record.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            f"Failed Cluster: {failed}",
            f"Target Cluster: {record.target_region}",
            f"Reason: {record.reason}",
            "",
            "Actions Taken:",
        ]
        for i, action in enumerate(record.actions, 1):
            lines.append(
                f"{i}. {action.action.value} [{action.status.value}] {action.detail}".rstrip()
            )
        if not record.actions:
            lines.append("(none)")
        lines += [
            "",
            f"Status: {record.status.value.upper()}",
            "",
            "Next Steps:",
            f"- [ ] Investigate root cause of {failed} failure",
            "- [ ] Fix identified issues",
            f"- [ ] Validate {failed} health",
            "- [ ] Plan failback procedure",
            "- [ ] Schedule post-mortem meeting",
            "",
            _RULE,
            "",
        ]
        return "\n".join(lines)

    def write(self, record: FailoverRecord) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(record)
        path.write_text(self.render(record))
        logger.info("Incident log written: %s", path)
        return path
