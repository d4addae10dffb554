"""In-memory record store. Always available; used by tests and dry runs."""

from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timezone

from carecircle.domains.health.domain_logic.insight_models import Insight
from carecircle.domains.health.domain_logic.records import HealthRecord


class InMemoryRecordStore:
    """Keeps records and appended insights in plain dicts and lists."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, HealthRecord]] = {}
        self._insights: dict[str, list[Insight]] = {}
        self._ids = itertools.count(1)
        self.append_calls = 0

    def add(self, group_id: str, record: HealthRecord) -> HealthRecord:
        """Store ``record`` (assigning an id if it has none) and return it."""
        if not record.id:
            record = replace(record, id=f"rec-{next(self._ids)}")
        self._records.setdefault(group_id, {})[record.id] = record
        return record

    def insights(self, group_id: str) -> list[Insight]:
        return list(self._insights.get(group_id, []))

    async def load_history(self, group_id: str, since: datetime) -> list[HealthRecord]:
        records = [
            r for r in self._records.get(group_id, {}).values() if r.recorded_at >= since
        ]
        return sorted(records, key=lambda r: r.recorded_at)

    async def append(self, group_id: str, insights: list[Insight]) -> None:
        self.append_calls += 1
        now = datetime.now(timezone.utc)
        self._insights.setdefault(group_id, []).extend(
            replace(i, timestamp=now) for i in insights
        )
