"""Audit logger: PHI-free trail of record writes, deletions and analysis runs.

Every MCP tool call and every insight analysis leaves one row in
``audit_log``. Inputs are stored only as a SHA-256 hash of their canonical
JSON, so a caregiver's notes or readings never end up in the trail.
The insight dispatcher reports each run here, which makes this the place
to look when an expected alert did not appear.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from carecircle.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """SHA-256 of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation' | 'record_delete' | 'analysis_run'
    tool_name: str = ""
    tool_input_hash: str = ""
    group_id: str | None = None
    record_id: str | None = None
    record_kind: str | None = None
    insight_count: int | None = None
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'skipped' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` table.

    Writes commit immediately. A failed audit write is logged and swallowed;
    it never fails the operation being audited.

    Usage::

        audit = AuditLogger(db)
        audit.log_analysis_run(
            group_id="g1", record_id="r1", record_kind="vitalSign",
            insight_count=1, duration_ms=2.4,
        )
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event.

        Returns:
            The generated event id, or ``""`` if the write failed.
        """
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":")) if event.metadata else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, tool_input_hash,
                    group_id, record_id, record_kind, insight_count,
                    duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.group_id,
                    event.record_id,
                    event.record_kind,
                    event.insight_count,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event (action=%s)", event.action)
            return ""

        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        group_id: str | None = None,
        record_id: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log an MCP tool invocation. ``tool_input`` is hashed, never stored."""
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            group_id=group_id,
            record_id=record_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_record_delete(
        self,
        *,
        tool_name: str = "",
        group_id: str | None = None,
        record_id: str | None = None,
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log the deletion of one record or a purge of many."""
        return self.log_event(AuditEvent(
            action="record_delete",
            tool_name=tool_name,
            group_id=group_id,
            record_id=record_id,
            metadata={**(metadata or {}), "records_deleted": count},
        ))

    def log_analysis_run(
        self,
        *,
        group_id: str,
        record_id: str,
        record_kind: str | None = None,
        insight_count: int = 0,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log one insight analysis of a written record.

        Args:
            group_id: Caregiving group of the record.
            record_id: The record that triggered the analysis.
            record_kind: Its kind, when the payload could be parsed.
            insight_count: Number of insights written to the log.
            duration_ms: Wall time of the whole invocation.
            status: 'success', 'skipped' (deletion or malformed input) or
                'failure' (history load, rule or sink error).
            error_type: Exception class name on failure or skip.
            metadata: Extra non-PHI context, e.g. insight kinds.
        """
        return self.log_event(AuditEvent(
            action="analysis_run",
            group_id=group_id,
            record_id=record_id,
            record_kind=record_kind,
            insight_count=insight_count,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        record_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events, newest first."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if record_id:
            conditions.append("record_id = ?")
            params.append(record_id)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, action: str | None = None, since: str | None = None) -> int:
        conditions: list[str] = []
        params: list[Any] = []
        if action:
            conditions.append("action = ?")
            params.append(action)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)
        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        row = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return row[0]
