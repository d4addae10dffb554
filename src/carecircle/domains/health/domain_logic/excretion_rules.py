"""Excretion rules: constipation, diarrhea, urination frequency, red flags.

The rules look at the whole day of the new record, so the new record is
merged back into the history before counting. "Today" is the new record's
local calendar day; ``now`` is the evaluation time and only drives the
evening urination check.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Sequence

from carecircle.domains.health.domain_logic.insight_models import (
    Insight,
    InsightKind,
    Severity,
)
from carecircle.domains.health.domain_logic.local_time import (
    is_same_day,
    local_hour,
    whole_days_between,
)
from carecircle.domains.health.domain_logic.records import (
    ExcretionPain,
    ExcretionRecord,
    StoolShape,
    UrineColor,
)

CONSTIPATION_DAYS = 3
DIARRHEA_WATERY_COUNT = 2
LOW_URINATION_CHECK_HOUR = 17
LOW_URINATION_MIN_COUNT = 2
NIGHT_START_HOUR = 21
NIGHT_URINATION_COUNT = 3


def _with_latest(
    history: Sequence[ExcretionRecord], latest: ExcretionRecord
) -> list[ExcretionRecord]:
    records = [r for r in history if r.id != latest.id or not latest.id]
    records.append(latest)
    records.sort(key=lambda r: r.recorded_at)
    return records


def _constipation_insights(
    records: list[ExcretionRecord], latest: ExcretionRecord, tz: tzinfo
) -> list[Insight]:
    insights: list[Insight] = []
    stool_records = [r for r in records if r.has_stool and r.stool_shape is not None]
    if not stool_records:
        return insights

    last_stool = stool_records[-1]
    if (
        is_same_day(last_stool.recorded_at, latest.recorded_at, tz)
        and last_stool.stool_shape is StoolShape.HARD
    ):
        insights.append(Insight(
            kind=InsightKind.CONSTIPATION_RISK,
            message="【注意】便が硬いようです。水分補給を促してください。",
            severity=Severity.MEDIUM,
            trigger_value=last_stool.stool_shape.value,
            related_record_id=last_stool.id,
        ))

    days_since = whole_days_between(last_stool.recorded_at, latest.recorded_at)
    if days_since < CONSTIPATION_DAYS:
        return insights

    if len(stool_records) >= 2:
        if not latest.has_stool:
            insights.append(Insight(
                kind=InsightKind.CONSTIPATION_RISK,
                message=(
                    f"【要経過観察】{days_since}日間排便がありません。便秘に注意してください。"
                ),
                severity=Severity.HIGH,
                trigger_value=days_since,
                related_record_id=latest.id,
            ))
    else:
        insights.append(Insight(
            kind=InsightKind.CONSTIPATION_RISK,
            message=(
                f"【要経過観察】最初の排便記録から{days_since}日が経過しています。"
            ),
            severity=Severity.HIGH,
            trigger_value=days_since,
            related_record_id=latest.id,
        ))
    return insights


def analyze_excretion(
    history: Sequence[ExcretionRecord],
    latest: ExcretionRecord,
    *,
    now: datetime,
    tz: tzinfo,
) -> list[Insight]:
    """Derive every excretion insight for the new record's day.

    Several insights may be returned for one record.
    """
    records = _with_latest(history, latest)
    today = [r for r in records if is_same_day(r.recorded_at, latest.recorded_at, tz)]

    insights = _constipation_insights(records, latest, tz)

    watery_today = [
        r for r in today if r.has_stool and r.stool_shape is StoolShape.WATERY
    ]
    if len(watery_today) >= DIARRHEA_WATERY_COUNT:
        insights.append(Insight(
            kind=InsightKind.DIARRHEA_ALERT,
            message="【緊急】本日、水様便が複数回記録されています。脱水症状に注意してください。",
            severity=Severity.CRITICAL,
            trigger_value=len(watery_today),
            related_record_id=latest.id,
        ))

    urine_today = [r for r in today if r.has_urine]
    if (
        local_hour(now, tz) >= LOW_URINATION_CHECK_HOUR
        and len(urine_today) < LOW_URINATION_MIN_COUNT
    ):
        insights.append(Insight(
            kind=InsightKind.LOW_URINATION_FREQUENCY,
            message=f"【注意】本日の排尿記録が少ないようです。(現在までに{len(urine_today)}回)",
            severity=Severity.MEDIUM,
            trigger_value=len(urine_today),
            related_record_id=latest.id,
        ))

    night_urine = [r for r in urine_today if local_hour(r.recorded_at, tz) >= NIGHT_START_HOUR]
    if len(night_urine) >= NIGHT_URINATION_COUNT:
        insights.append(Insight(
            kind=InsightKind.FREQUENT_NIGHT_URINATION,
            message=f"【注意】本日、夜間の排尿回数が多いようです。(夜間: {len(night_urine)}回)",
            severity=Severity.MEDIUM,
            trigger_value=len(night_urine),
            related_record_id=latest.id,
        ))

    if latest.has_urine and latest.urine_color is UrineColor.RED:
        insights.append(Insight(
            kind=InsightKind.BLOOD_IN_URINE_ALERT,
            message=(
                "【緊急】尿に血液が混じっている可能性があります(尿の色: 赤)。"
                "医療機関の受診を検討してください。"
            ),
            severity=Severity.CRITICAL,
            trigger_value=latest.urine_color.value,
            related_record_id=latest.id,
        ))

    if latest.has_stool and latest.pain is ExcretionPain.PRESENT:
        insights.append(Insight(
            kind=InsightKind.EXCRETION_PAIN_ALERT,
            message="【注意】排便時に痛みがあったようです。原因を確認してください。",
            severity=Severity.MEDIUM,
            trigger_value=latest.pain.value,
            related_record_id=latest.id,
        ))

    return insights
