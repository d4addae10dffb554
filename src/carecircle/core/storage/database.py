"""SQLite database for the CareCircle record store and insight log.

Handles connection lifecycle, schema creation and version bookkeeping.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA = """
-- One row per caregiver observation (vital sign, meal, excretion, medication)
CREATE TABLE IF NOT EXISTS health_records (
    id           TEXT PRIMARY KEY,
    group_id     TEXT NOT NULL,
    kind         TEXT NOT NULL,
    -- UTC ISO 8601, microsecond precision: sorts lexicographically
    recorded_at  TEXT NOT NULL,
    payload_enc  TEXT NOT NULL,
    created_at   TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at   TEXT
);

-- Append-only log of derived insights
CREATE TABLE IF NOT EXISTS health_insights (
    id                  TEXT PRIMARY KEY,
    group_id            TEXT NOT NULL,
    kind                TEXT NOT NULL,
    message             TEXT NOT NULL,
    severity            TEXT NOT NULL,
    trigger_value_json  TEXT,
    baseline_value_json TEXT,
    related_record_id   TEXT,
    related_record_kind TEXT,
    timestamp           TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_records_group_time ON health_records(group_id, recorded_at);
CREATE INDEX IF NOT EXISTS idx_records_kind       ON health_records(kind);
CREATE INDEX IF NOT EXISTS idx_insights_group_ts  ON health_insights(group_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_insights_record    ON health_insights(related_record_id);

-- Audit trail: tool calls, deletions, analysis runs (no record content)
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    group_id        TEXT,
    record_id       TEXT,
    record_kind     TEXT,
    insight_count   INTEGER,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_record    ON audit_log(record_id);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class HealthDatabase:
    """SQLite database manager for records, insights and the audit trail.

    ``:memory:`` gives a throwaway database for tests.

    Usage::

        with HealthDatabase("~/.carecircle/care.db") as db:
            db.connection.execute(...)
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and ensure the schema exists.

        Idempotent: a second call is a no-op.
        """
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_file)
        else:
            target = ":memory:"

        try:
            self._conn = sqlite3.connect(target)
        except sqlite3.Error as exc:
            raise DatabaseError(f"Cannot open database {self._db_path}: {exc}") from exc

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Care database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        conn = self.connection
        conn.executescript(_SCHEMA)

        current_version = self.get_schema_version()
        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version (0 for a fresh database)."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Care database closed")

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
