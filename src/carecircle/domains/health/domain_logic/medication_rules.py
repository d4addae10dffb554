"""Medication adherence rules."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Sequence

from carecircle.domains.health.domain_logic.insight_models import (
    Insight,
    InsightKind,
    Severity,
)
from carecircle.domains.health.domain_logic.local_time import at_local_time, is_same_day
from carecircle.domains.health.domain_logic.records import MedicationRecord

SUMMARY_CHECK_HOUR = 18


def _is_missed(record: MedicationRecord, now: datetime) -> bool:
    return (
        not record.is_taken
        and record.scheduled_time is not None
        and record.scheduled_time < now
    )


def count_missed_on_day(
    history: Sequence[MedicationRecord],
    latest: MedicationRecord,
    *,
    now: datetime,
    tz: tzinfo,
) -> int:
    """Past-due, untaken doses scheduled on ``latest``'s calendar day."""
    records = [r for r in history if r.id != latest.id or not latest.id]
    records.append(latest)
    return sum(
        1
        for r in records
        if r.scheduled_time is not None
        and is_same_day(r.scheduled_time, latest.recorded_at, tz)
        and _is_missed(r, now)
    )


def analyze_medication(
    history: Sequence[MedicationRecord],
    latest: MedicationRecord,
    *,
    now: datetime,
    tz: tzinfo,
) -> list[Insight]:
    """Missed dose on this record, plus an evening summary of the whole day."""
    insights: list[Insight] = []

    if _is_missed(latest, now) and is_same_day(latest.scheduled_time, latest.recorded_at, tz):
        scheduled = latest.scheduled_time.astimezone(tz).strftime("%H:%M")
        insights.append(Insight(
            kind=InsightKind.MEDICATION_MISSED,
            message=f"【注意】{scheduled} の {latest.medication_name} の服薬が確認されていません。",
            severity=Severity.HIGH,
            trigger_value=latest.medication_name,
            baseline_value=scheduled,
            related_record_id=latest.id,
        ))

    missed = count_missed_on_day(history, latest, now=now, tz=tz)
    if missed > 0 and now >= at_local_time(latest.recorded_at, SUMMARY_CHECK_HOUR, tz):
        insights.append(Insight(
            kind=InsightKind.MEDICATION_MISSED_SUMMARY,
            message=f"【要確認】本日、{missed}件の服薬が確認されていません。服薬状況をご確認ください。",
            severity=Severity.HIGH,
            trigger_value=missed,
            related_record_id=latest.id,
        ))

    return insights
