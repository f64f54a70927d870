"""
SQLite Audit Sink

Architectural Intent:
- Implements AuditSinkPort: one row per terminal FailoverRecord
- Append-only; a record ID can be written once
- Optionally writes the human-readable incident log next to the row

Design Decisions:
- Single database file at configurable path (default: helmsman.db)
- Auto-creates tables on first use
- Uses WAL mode for concurrent read/write support
- Thread-safe via sqlite3's check_same_thread=False; writes run in the
  default executor so the event loop is not blocked
- Timestamps stored as ISO 8601 strings, actions as a JSON array
"""

from __future__ import annotations
import asyncio
import json
import logging
import sqlite3
from typing import Optional

from helmsman.domain.entities.failover_record import FailoverRecord
from helmsman.domain.exceptions import ConfigurationConflict
from helmsman.infrastructure.repositories.incident_log import IncidentLogWriter

logger = logging.getLogger(__name__)


class SQLiteAuditSink:
    """Persistent failover audit trail using SQLite."""

    def __init__(
        self,
        db_path: str = "helmsman.db",
        incident_log: Optional[IncidentLogWriter] = None,
    ):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self.incident_log = incident_log

    def connect(self) -> None:
        """Open database connection and create tables."""
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info("SQLite audit sink connected: %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _create_tables(self) -> None:
        assert self._conn is not None
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS failover_records (
                record_id TEXT PRIMARY KEY,
                failed_region TEXT NOT NULL,
                target_region TEXT NOT NULL,
                reason TEXT NOT NULL,
                status TEXT NOT NULL,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                failed_actions INTEGER NOT NULL,
                actions TEXT DEFAULT '[]'
            );

            CREATE INDEX IF NOT EXISTS idx_failover_failed ON failover_records(failed_region);
            CREATE INDEX IF NOT EXISTS idx_failover_started ON failover_records(started_at);
        """)

    async def append(self, record: FailoverRecord) -> None:
        """Persist a sealed record. Raises ValueError for open records."""
        if not record.is_terminal:
            raise ConfigurationConflict(
                f"Failover record {record.record_id} is still {record.status.value}"
            )
        if self._conn is None:
            self.connect()
        await asyncio.get_event_loop().run_in_executor(None, self._insert, record)
        logger.info("Failover record %s persisted", record.record_id)

        if self.incident_log is not None:
            try:
                self.incident_log.write(record)
            except OSError as e:
                logger.warning("Incident log for %s not written: %s", record.record_id, e)

    def _insert(self, record: FailoverRecord) -> None:
        assert self._conn is not None
        data = record.to_dict()
        self._conn.execute(
            """INSERT INTO failover_records
               (record_id, failed_region, target_region, reason, status,
                started_at, finished_at, failed_actions, actions)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (data["record_id"], data["failed_region"], data["target_region"],
             data["reason"], data["status"], data["started_at"], data["finished_at"],
             record.failed_actions, json.dumps(data["actions"])),
        )
        self._conn.commit()

    def get_record(self, record_id: str) -> Optional[dict]:
        """Fetch one persisted record with its actions decoded."""
        if self._conn is None:
            self.connect()
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT * FROM failover_records WHERE record_id = ?", (record_id,)
        ).fetchone()
        return self._row_to_dict(row) if row else None

    def list_records(
        self,
        failed_region: Optional[str] = None,
        limit: int = 50,
    ) -> list[dict]:
        """Get failover history, newest first."""
        if self._conn is None:
            self.connect()
        assert self._conn is not None
        if failed_region:
            rows = self._conn.execute(
                "SELECT * FROM failover_records WHERE failed_region = ? ORDER BY started_at DESC LIMIT ?",
                (failed_region, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM failover_records ORDER BY started_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_dict(r) for r in rows]

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> dict:
        result = dict(row)
        result["actions"] = json.loads(result.get("actions") or "[]")
        return result
