"""Record store connectors: where history comes from and insights go to."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from carecircle.domains.health.domain_logic.insight_models import Insight
from carecircle.domains.health.domain_logic.records import HealthRecord


@runtime_checkable
class HistoryLoader(Protocol):
    """Range query over a group's health records.

    Implementations return records of every kind with
    ``recorded_at >= since``, oldest first, each carrying its store id.
    Errors propagate to the caller; nothing is retried.
    """

    async def load_history(self, group_id: str, since: datetime) -> list[HealthRecord]:
        ...


@runtime_checkable
class InsightSink(Protocol):
    """Append-only destination for a group's insights.

    One call per analysis; the implementation stamps each insight with a
    server timestamp and writes the batch together where it can.
    """

    async def append(self, group_id: str, insights: list[Insight]) -> None:
        ...
