"""Record store backed by the encrypted SQLite care repository."""

from __future__ import annotations

import logging
from datetime import datetime

from carecircle.core.storage.models import StoredInsight, StoredRecord
from carecircle.core.storage.repository import CareRepository
from carecircle.domains.health.domain_logic.insight_models import Insight
from carecircle.domains.health.domain_logic.records import (
    HealthRecord,
    RecordValidationError,
    format_timestamp,
    record_from_dict,
    record_to_dict,
)

logger = logging.getLogger(__name__)


def stored_insight_from(group_id: str, insight: Insight) -> StoredInsight:
    return StoredInsight(
        id="",
        group_id=group_id,
        kind=insight.kind.value,
        message=insight.message,
        severity=insight.severity.value,
        trigger_value=insight.trigger_value,
        baseline_value=insight.baseline_value,
        related_record_id=insight.related_record_id or None,
        related_record_kind=(
            insight.related_record_kind.value if insight.related_record_kind else None
        ),
    )


class RepositoryRecordStore:
    """HistoryLoader and InsightSink over a :class:`CareRepository`.

    Also the write path used by the MCP tools, so that records and their
    history share one serialization.
    """

    def __init__(self, repository: CareRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, group_id: str, record: HealthRecord) -> str:
        """Insert ``record`` and return its new id."""
        return self._repo.save_record(self._to_stored(group_id, record))

    def update(self, group_id: str, record: HealthRecord) -> bool:
        """Replace an existing record (``record.id`` must be set)."""
        return self._repo.update_record(self._to_stored(group_id, record))

    def get(self, group_id: str, record_id: str) -> HealthRecord | None:
        stored = self._repo.get_record(group_id, record_id)
        if stored is None:
            return None
        return record_from_dict(stored.payload, stored.id)

    # ------------------------------------------------------------------
    # HistoryLoader / InsightSink
    # ------------------------------------------------------------------

    async def load_history(self, group_id: str, since: datetime) -> list[HealthRecord]:
        """Decode stored rows; rows that no longer parse are skipped."""
        rows = self._repo.get_records_since(group_id, format_timestamp(since))
        records: list[HealthRecord] = []
        for row in rows:
            try:
                records.append(record_from_dict(row.payload, row.id))
            except RecordValidationError as exc:
                logger.warning("Skipping unreadable record %s in history: %s", row.id, exc)
        return records

    async def append(self, group_id: str, insights: list[Insight]) -> None:
        self._repo.append_insights(
            group_id, [stored_insight_from(group_id, i) for i in insights]
        )

    @staticmethod
    def _to_stored(group_id: str, record: HealthRecord) -> StoredRecord:
        payload = record_to_dict(record)
        return StoredRecord(
            id=record.id,
            group_id=group_id,
            kind=record.kind.value,
            recorded_at=payload["recordedAt"],
            payload=payload,
        )
