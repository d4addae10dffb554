"""Care repository: the record store and the insight log.

The repository mediates between storage rows (StoredRecord, StoredInsight)
and the SQLite database, sealing record payloads with PayloadCipher.
Every query is scoped to one caregiving group.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from carecircle.core.storage.database import HealthDatabase
from carecircle.core.storage.encryption import PayloadCipher
from carecircle.core.storage.models import StoredInsight, StoredRecord

logger = logging.getLogger(__name__)

VALID_RECORD_KINDS = frozenset({"vitalSign", "meal", "excretion", "medication"})


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _dump_value(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _load_value(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


class CareRepository:
    """CRUD repository for encrypted health records and derived insights.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        repo = CareRepository(db, PayloadCipher(key))

        record_id = repo.save_record(StoredRecord(
            id="", group_id="g1", kind="vitalSign",
            recorded_at="2026-10-18T01:00:00.000000+00:00",
            payload={"temperature": 37.8},
        ))
        history = repo.get_records_since("g1", "2026-10-11T01:00:00.000000+00:00")
    """

    def __init__(self, database: HealthDatabase, cipher: PayloadCipher) -> None:
        self._db = database
        self._cipher = cipher

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat(timespec="microseconds")

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in VALID_RECORD_KINDS:
            raise RepositoryError(
                f"Invalid record kind: {kind!r}. Valid: {sorted(VALID_RECORD_KINDS)}"
            )

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def save_record(self, record: StoredRecord) -> str:
        """Insert a new record, generating an id when ``record.id`` is empty.

        Returns:
            The record id.
        """
        self._check_kind(record.kind)
        rid = record.id or self._new_id()
        conn = self._db.connection
        try:
            conn.execute(
                """INSERT INTO health_records
                   (id, group_id, kind, recorded_at, payload_enc, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    rid,
                    record.group_id,
                    record.kind,
                    record.recorded_at,
                    self._cipher.seal(record.payload),
                    record.created_at or self._now_iso(),
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise RepositoryError(f"Record {rid} already exists") from exc

        logger.info("Saved %s record %s (group=%s)", record.kind, rid, record.group_id)
        return rid

    def update_record(self, record: StoredRecord) -> bool:
        """Replace the kind, timestamp and payload of an existing record.

        Returns:
            True if the record existed in the group and was updated.
        """
        self._check_kind(record.kind)
        conn = self._db.connection
        cursor = conn.execute(
            """UPDATE health_records
               SET kind = ?, recorded_at = ?, payload_enc = ?, updated_at = ?
               WHERE id = ? AND group_id = ?""",
            (
                record.kind,
                record.recorded_at,
                self._cipher.seal(record.payload),
                self._now_iso(),
                record.id,
                record.group_id,
            ),
        )
        conn.commit()
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Updated %s record %s (group=%s)", record.kind, record.id, record.group_id)
        return updated

    def get_record(self, group_id: str, record_id: str) -> StoredRecord | None:
        row = self._db.connection.execute(
            "SELECT * FROM health_records WHERE id = ? AND group_id = ?",
            (record_id, group_id),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def get_records_since(
        self,
        group_id: str,
        since: str,
        *,
        kind: str | None = None,
    ) -> list[StoredRecord]:
        """Records of a group with ``recorded_at >= since``, oldest first.

        Args:
            group_id: Caregiving group.
            since: UTC ISO 8601 lower bound (inclusive).
            kind: Optional equality filter on the record kind.
        """
        conditions = ["group_id = ?", "recorded_at >= ?"]
        params: list[Any] = [group_id, since]
        if kind:
            self._check_kind(kind)
            conditions.append("kind = ?")
            params.append(kind)

        query = (
            f"SELECT * FROM health_records WHERE {' AND '.join(conditions)} "
            "ORDER BY recorded_at ASC, created_at ASC"
        )
        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count_records(self, group_id: str | None = None) -> int:
        if group_id is None:
            row = self._db.connection.execute("SELECT COUNT(*) FROM health_records").fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM health_records WHERE group_id = ?", (group_id,)
            ).fetchone()
        return row[0]

    def delete_record(self, group_id: str, record_id: str) -> bool:
        """Delete one record. Insights that reference it are kept.

        Returns:
            True if a record was found and deleted.
        """
        conn = self._db.connection
        cursor = conn.execute(
            "DELETE FROM health_records WHERE id = ? AND group_id = ?",
            (record_id, group_id),
        )
        conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted record %s (group=%s)", record_id, group_id)
        return deleted

    def purge_before(self, before_timestamp: str) -> int:
        """Delete all records with ``recorded_at < before_timestamp``.

        Returns:
            Number of records deleted.
        """
        conn = self._db.connection
        cursor = conn.execute(
            "DELETE FROM health_records WHERE recorded_at < ?", (before_timestamp,)
        )
        conn.commit()
        count = cursor.rowcount
        if count:
            logger.info("Purged %d records older than %s", count, before_timestamp)
        return count

    def purge_before_days(self, days: int) -> int:
        """Delete records older than ``days`` days. See :meth:`purge_before`."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        return self.purge_before(cutoff.isoformat(timespec="microseconds"))

    # ------------------------------------------------------------------
    # Insight log (append-only)
    # ------------------------------------------------------------------

    def append_insights(self, group_id: str, insights: list[StoredInsight]) -> list[str]:
        """Append a batch of insights in a single transaction.

        Every row gets the same server timestamp. On failure nothing from the
        batch is written.

        Returns:
            The ids of the written insights, in input order.
        """
        if not insights:
            return []

        conn = self._db.connection
        timestamp = self._now_iso()
        ids: list[str] = []
        try:
            for insight in insights:
                iid = insight.id or self._new_id()
                conn.execute(
                    """INSERT INTO health_insights
                       (id, group_id, kind, message, severity,
                        trigger_value_json, baseline_value_json,
                        related_record_id, related_record_kind, timestamp)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        iid,
                        group_id,
                        insight.kind,
                        insight.message,
                        insight.severity,
                        _dump_value(insight.trigger_value),
                        _dump_value(insight.baseline_value),
                        insight.related_record_id,
                        insight.related_record_kind,
                        timestamp,
                    ),
                )
                ids.append(iid)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise RepositoryError(f"Failed to append insights: {exc}") from exc

        logger.info("Appended %d insights (group=%s)", len(ids), group_id)
        return ids

    def get_insights(
        self,
        group_id: str,
        *,
        severities: list[str] | None = None,
        related_record_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[StoredInsight]:
        """Query a group's insight log, newest first."""
        conditions = ["group_id = ?"]
        params: list[Any] = [group_id]

        if severities:
            placeholders = ",".join("?" for _ in severities)
            conditions.append(f"severity IN ({placeholders})")
            params.extend(severities)
        if related_record_id:
            conditions.append("related_record_id = ?")
            params.append(related_record_id)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        # rowid keeps write order among rows sharing one batch timestamp
        query = (
            f"SELECT * FROM health_insights WHERE {' AND '.join(conditions)} "
            "ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        )
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [
            StoredInsight(
                id=row["id"],
                group_id=row["group_id"],
                kind=row["kind"],
                message=row["message"],
                severity=row["severity"],
                trigger_value=_load_value(row["trigger_value_json"]),
                baseline_value=_load_value(row["baseline_value_json"]),
                related_record_id=row["related_record_id"],
                related_record_kind=row["related_record_kind"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]

    def count_insights(self, group_id: str | None = None) -> int:
        if group_id is None:
            row = self._db.connection.execute("SELECT COUNT(*) FROM health_insights").fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM health_insights WHERE group_id = ?", (group_id,)
            ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_record(self, row: Any) -> StoredRecord:
        return StoredRecord(
            id=row["id"],
            group_id=row["group_id"],
            kind=row["kind"],
            recorded_at=row["recorded_at"],
            payload=self._cipher.open(row["payload_enc"]) or {},
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
