"""Hydration rules over meal records with a fluid amount."""

from __future__ import annotations

from datetime import tzinfo
from typing import Sequence

from carecircle.domains.health.domain_logic.insight_models import (
    Insight,
    InsightKind,
    Severity,
)
from carecircle.domains.health.domain_logic.local_time import is_same_day
from carecircle.domains.health.domain_logic.records import MealRecord

DAILY_FLUID_GOAL_ML = 1500
LOW_SINGLE_INTAKE_ML = 200


def total_fluid_intake_on_day(
    history: Sequence[MealRecord],
    latest: MealRecord,
    tz: tzinfo,
) -> float:
    """Sum of fluid (ml) on ``latest``'s calendar day, ``latest`` included."""
    total = latest.fluid_amount or 0
    for record in history:
        if record.id == latest.id:
            continue
        if is_same_day(record.recorded_at, latest.recorded_at, tz):
            total += record.fluid_amount or 0
    return total


def analyze_hydration(
    history: Sequence[MealRecord],
    latest: MealRecord,
    *,
    tz: tzinfo,
) -> list[Insight]:
    """Flag a small single intake and a day total under half the goal.

    A zero intake is treated as "nothing recorded" and never raises either
    insight.
    """
    insights: list[Insight] = []
    amount = latest.fluid_amount

    if amount is not None and 0 < amount < LOW_SINGLE_INTAKE_ML:
        insights.append(Insight(
            kind=InsightKind.LOW_SINGLE_FLUID_INTAKE,
            message=f"【注意】一回の水分摂取量が少ないようです。(今回: {amount:g}ml)",
            severity=Severity.MEDIUM,
            trigger_value=amount,
            related_record_id=latest.id,
        ))

    total = total_fluid_intake_on_day(history, latest, tz)
    if 0 < total < DAILY_FLUID_GOAL_ML / 2:
        insights.append(Insight(
            kind=InsightKind.DEHYDRATION_RISK,
            message=(
                "【要経過観察】本日の水分摂取量が目標の半分に届いていません。"
                f"(現在: {total:g}ml / 目標: {DAILY_FLUID_GOAL_ML}ml)"
            ),
            severity=Severity.HIGH,
            trigger_value=total,
            baseline_value=DAILY_FLUID_GOAL_ML,
            related_record_id=latest.id,
        ))

    return insights
