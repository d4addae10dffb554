"""Vital-sign rules: blood pressure trend and body temperature.

Both functions take the prior vital-sign records of the group (oldest
first, never containing the new record itself) and the new record, and
return the insights they derive. They are pure: no clock, no I/O, no
logging.
"""

from __future__ import annotations

import statistics
from typing import Sequence

from carecircle.domains.health.domain_logic.insight_models import (
    Insight,
    InsightKind,
    Severity,
)
from carecircle.domains.health.domain_logic.records import VitalSignRecord

# Blood pressure (mmHg)
MIN_SYSTOLIC_HISTORY = 3
TREND_RELATIVE_INCREASE = 0.05
TREND_ABSOLUTE_INCREASE = 10
HIGH_SYSTOLIC = 140
HIGH_DIASTOLIC = 90

# Temperature (Celsius)
FEVER_THRESHOLD = 37.5
HYPOTHERMIA_THRESHOLD = 35.0
SPIKE_DELTA = 1.0
MIN_TEMPERATURE_HISTORY = 2


def analyze_blood_pressure(
    history: Sequence[VitalSignRecord],
    latest: VitalSignRecord,
) -> list[Insight]:
    """Detect a rising systolic trend and readings above the hypertension line.

    Nothing is reported until the history holds at least
    ``MIN_SYSTOLIC_HISTORY`` systolic readings.
    """
    insights: list[Insight] = []
    if latest.blood_pressure is None:
        return insights

    past_systolic = [
        r.blood_pressure.systolic for r in history if r.blood_pressure is not None
    ]
    if len(past_systolic) < MIN_SYSTOLIC_HISTORY:
        return insights

    systolic = latest.blood_pressure.systolic
    diastolic = latest.blood_pressure.diastolic
    average = statistics.mean(past_systolic)

    rising = systolic > average and (
        systolic / average - 1 > TREND_RELATIVE_INCREASE
        or systolic - average > TREND_ABSOLUTE_INCREASE
    )
    if rising and systolic >= HIGH_SYSTOLIC:
        insights.append(Insight(
            kind=InsightKind.BLOOD_PRESSURE_TREND,
            message=(
                "【要経過観察】収縮期血圧が上昇傾向にあり、高血圧の兆候がみられます。"
                f"(最新: {systolic}mmHg, 過去平均: {average:.1f}mmHg)"
            ),
            severity=Severity.HIGH,
            trigger_value=systolic,
            baseline_value=round(average, 1),
            related_record_id=latest.id,
        ))

    if systolic >= HIGH_SYSTOLIC or diastolic >= HIGH_DIASTOLIC:
        insights.append(Insight(
            kind=InsightKind.HIGH_BLOOD_PRESSURE,
            message=(
                "【注意】血圧が高血圧の基準値を超えています。"
                f"(収縮期: {systolic}mmHg, 拡張期: {diastolic}mmHg)"
            ),
            severity=Severity.MEDIUM,
            trigger_value=systolic,
            related_record_id=latest.id,
        ))

    return insights


def analyze_temperature(
    history: Sequence[VitalSignRecord],
    latest: VitalSignRecord,
) -> list[Insight]:
    """Fever, hypothermia and sudden rises against the recent average."""
    insights: list[Insight] = []
    temperature = latest.temperature
    if temperature is None:
        return insights

    if temperature >= FEVER_THRESHOLD:
        insights.append(Insight(
            kind=InsightKind.FEVER_ALERT,
            message=f"【緊急】発熱の可能性があります。体温を確認してください。(最新: {temperature}℃)",
            severity=Severity.CRITICAL,
            trigger_value=temperature,
            related_record_id=latest.id,
        ))

    # Checked independently of the fever branch.
    if temperature <= HYPOTHERMIA_THRESHOLD:
        insights.append(Insight(
            kind=InsightKind.HYPOTHERMIA_ALERT,
            message=f"【緊急】低体温の可能性があります。体温を確認してください。(最新: {temperature}℃)",
            severity=Severity.CRITICAL,
            trigger_value=temperature,
            related_record_id=latest.id,
        ))

    past_temperatures = [
        r.temperature for r in history if r.temperature is not None and r.id != latest.id
    ]
    if len(past_temperatures) >= MIN_TEMPERATURE_HISTORY:
        average = statistics.mean(past_temperatures)
        if temperature > average + SPIKE_DELTA:
            insights.append(Insight(
                kind=InsightKind.TEMPERATURE_SPIKE,
                message=(
                    "【注意】体温が急に上がっています。"
                    f"(最新: {temperature}℃, 過去平均: {average:.1f}℃)"
                ),
                severity=Severity.HIGH,
                trigger_value=temperature,
                baseline_value=round(average, 1),
                related_record_id=latest.id,
            ))

    return insights
