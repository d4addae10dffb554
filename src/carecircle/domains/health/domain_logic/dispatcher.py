"""Insight dispatcher: runs the rule modules for every written health record.

One invocation per write event:

1. ignore deletions and payloads without a valid ``recordedAt``;
2. load 7 days of the group's history, anchored at the record's time;
3. drop the record itself from that history and keep its kind only;
4. run the rule module(s) for the kind and concatenate their insights;
5. hand the batch to the insight sink in a single call.

Rule modules never log and never read the clock; this module does both,
and reports every run to the optional audit logger.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

from carecircle.domains.health.connectors import HistoryLoader, InsightSink
from carecircle.domains.health.domain_logic.excretion_rules import analyze_excretion
from carecircle.domains.health.domain_logic.hydration_rules import analyze_hydration
from carecircle.domains.health.domain_logic.insight_models import Insight
from carecircle.domains.health.domain_logic.medication_rules import analyze_medication
from carecircle.domains.health.domain_logic.records import (
    ExcretionRecord,
    HealthRecord,
    MealRecord,
    MedicationRecord,
    RecordKind,
    RecordValidationError,
    VitalSignRecord,
    record_from_dict,
)
from carecircle.domains.health.domain_logic.vital_sign_rules import (
    analyze_blood_pressure,
    analyze_temperature,
)

if TYPE_CHECKING:
    from carecircle.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 7


class AnalysisStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failure"


@dataclass
class RecordWriteEvent:
    """A record was created, updated or deleted in a group.

    ``record_after`` is the record as it now exists: a raw store payload, an
    already parsed record, or ``None`` for a deletion.
    """

    group_id: str
    record_id: str
    record_after: Mapping[str, Any] | HealthRecord | None


@dataclass
class AnalysisOutcome:
    """What one dispatcher invocation did."""

    status: AnalysisStatus
    group_id: str
    record_id: str
    record_kind: RecordKind | None = None
    insights: list[Insight] = field(default_factory=list)
    written: bool = False
    error_type: str | None = None


def _same_kind(
    history: Sequence[HealthRecord], record: HealthRecord
) -> list[HealthRecord]:
    return [
        r for r in history
        if type(r) is type(record) and not (record.id and r.id == record.id)
    ]


def evaluate_record(
    record: HealthRecord,
    history: Sequence[HealthRecord],
    *,
    now: datetime,
    tz: tzinfo,
) -> list[Insight]:
    """Route ``record`` to its rule modules and collect their insights.

    ``history`` may hold every kind and may contain ``record`` itself; both
    are filtered out here. Insights come back in module order and carry the
    record's kind.
    """
    peers = _same_kind(history, record)
    insights: list[Insight] = []

    if isinstance(record, VitalSignRecord):
        if record.blood_pressure is not None:
            insights += analyze_blood_pressure(peers, record)
        if record.temperature is not None:
            insights += analyze_temperature(peers, record)
    elif isinstance(record, MealRecord):
        if record.fluid_amount is not None:
            insights += analyze_hydration(peers, record, tz=tz)
    elif isinstance(record, ExcretionRecord):
        insights += analyze_excretion(peers, record, now=now, tz=tz)
    elif isinstance(record, MedicationRecord):
        insights += analyze_medication(peers, record, now=now, tz=tz)
    else:
        logger.warning("No rule module for %s; skipping analysis", type(record).__name__)
        return []

    return [replace(i, related_record_kind=record.kind) for i in insights]


class InsightDispatcher:
    """Turns record write events into insights.

    Usage::

        store = RepositoryRecordStore(repository)
        dispatcher = InsightDispatcher(store, store, tz=ZoneInfo("Asia/Tokyo"))
        outcome = await dispatcher.handle_write_event(
            RecordWriteEvent(group_id="g1", record_id="r1", record_after=payload)
        )
    """

    def __init__(
        self,
        history_loader: HistoryLoader,
        insight_sink: InsightSink,
        *,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            history_loader: Source of the 7-day history.
            insight_sink: Destination of produced insights.
            tz: Timezone that defines calendar days and hours for the rules.
            clock: Returns the current time; the default is UTC wall time.
            audit_logger: Optional audit trail; receives one event per run.
        """
        self._history = history_loader
        self._sink = insight_sink
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._audit = audit_logger

    async def handle_write_event(
        self,
        event: RecordWriteEvent,
        *,
        reference_time: datetime | None = None,
    ) -> AnalysisOutcome:
        """Analyze the record carried by a write event.

        Deletions and malformed payloads end the invocation without insights.
        """
        start = time.monotonic()

        if event.record_after is None:
            logger.info("Record %s deleted; no analysis needed", event.record_id)
            outcome = AnalysisOutcome(
                status=AnalysisStatus.SKIPPED,
                group_id=event.group_id,
                record_id=event.record_id,
            )
            self._report(outcome, start, reason="deleted")
            return outcome

        try:
            record = self._coerce(event)
        except RecordValidationError as exc:
            logger.warning("Record %s skipped: %s", event.record_id, exc)
            outcome = AnalysisOutcome(
                status=AnalysisStatus.SKIPPED,
                group_id=event.group_id,
                record_id=event.record_id,
                error_type=type(exc).__name__,
            )
            self._report(outcome, start, reason="invalid_record")
            return outcome

        return await self._run(event.group_id, record, reference_time, start)

    async def analyze(
        self,
        group_id: str,
        record: HealthRecord,
        *,
        reference_time: datetime | None = None,
    ) -> AnalysisOutcome:
        """Analyze an already parsed record (``record.id`` should be set)."""
        return await self._run(group_id, record, reference_time, time.monotonic())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce(event: RecordWriteEvent) -> HealthRecord:
        payload = event.record_after
        if isinstance(payload, Mapping):
            return record_from_dict(payload, event.record_id)

        if not isinstance(getattr(payload, "recorded_at", None), datetime):
            raise RecordValidationError("recordedAt is missing or not a timestamp")
        if not payload.id:
            payload = replace(payload, id=event.record_id)
        return payload

    async def _run(
        self,
        group_id: str,
        record: HealthRecord,
        reference_time: datetime | None,
        start: float,
    ) -> AnalysisOutcome:
        now = reference_time or self._clock()
        outcome = AnalysisOutcome(
            status=AnalysisStatus.SUCCESS,
            group_id=group_id,
            record_id=record.id,
            record_kind=getattr(record, "kind", None),
        )
        logger.info(
            "Analyzing %s record %s for group %s (recorded at %s)",
            outcome.record_kind.value if outcome.record_kind else "unknown",
            record.id,
            group_id,
            record.recorded_at.isoformat(),
        )

        try:
            since = record.recorded_at - timedelta(days=LOOKBACK_DAYS)
            history = await self._history.load_history(group_id, since)
            outcome.insights = evaluate_record(record, history, now=now, tz=self._tz)
        except Exception as exc:
            logger.exception("Analysis of record %s failed; no insights written", record.id)
            outcome.status = AnalysisStatus.FAILED
            outcome.error_type = type(exc).__name__
            outcome.insights = []
            self._report(outcome, start)
            return outcome

        if not outcome.insights:
            logger.info("No insights for record %s", record.id)
            self._report(outcome, start)
            return outcome

        try:
            await self._sink.append(group_id, outcome.insights)
        except Exception as exc:
            logger.exception(
                "Failed to write %d insights for record %s", len(outcome.insights), record.id
            )
            outcome.status = AnalysisStatus.FAILED
            outcome.error_type = type(exc).__name__
        else:
            outcome.written = True
            logger.info("Wrote %d insights for record %s", len(outcome.insights), record.id)

        self._report(outcome, start)
        return outcome

    def _report(self, outcome: AnalysisOutcome, start: float, reason: str | None = None) -> None:
        if self._audit is None:
            return
        metadata: dict[str, Any] = {
            "insight_kinds": [i.kind.value for i in outcome.insights],
        }
        if reason:
            metadata["reason"] = reason
        self._audit.log_analysis_run(
            group_id=outcome.group_id,
            record_id=outcome.record_id,
            record_kind=outcome.record_kind.value if outcome.record_kind else None,
            insight_count=len(outcome.insights) if outcome.written else 0,
            duration_ms=(time.monotonic() - start) * 1000,
            status=outcome.status.value,
            error_type=outcome.error_type,
            metadata=metadata,
        )
