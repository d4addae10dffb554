"""Tests for the hydration rules."""

from __future__ import annotations

from datetime import datetime

import pytest

from carecircle.domains.health.domain_logic.hydration_rules import (
    analyze_hydration,
    total_fluid_intake_on_day,
)
from carecircle.domains.health.domain_logic.insight_models import InsightKind, Severity
from carecircle.domains.health.domain_logic.records import MealRecord


def _meal(tz, day: int, hour: int, amount: float | None, rid: str) -> MealRecord:
    return MealRecord(
        recorded_at=datetime(2026, 10, day, hour, tzinfo=tz),
        id=rid,
        fluid_amount=amount,
    )


class TestTotalFluidIntake:
    def test_sums_same_local_day_only(self, tz):
        history = [
            _meal(tz, 17, 20, 900, "yesterday"),
            _meal(tz, 18, 0, 300, "midnight"),
            _meal(tz, 18, 8, 200, "breakfast"),
        ]
        latest = _meal(tz, 18, 12, 150, "lunch")
        assert total_fluid_intake_on_day(history, latest, tz) == 650

    def test_latest_counted_once(self, tz):
        latest = _meal(tz, 18, 12, 150, "lunch")
        assert total_fluid_intake_on_day([latest], latest, tz) == 150

    def test_missing_amounts_count_as_zero(self, tz):
        history = [_meal(tz, 18, 8, None, "m1")]
        assert total_fluid_intake_on_day(history, _meal(tz, 18, 12, 400, "m2"), tz) == 400


class TestAnalyzeHydration:
    def test_small_first_intake_gives_two_insights_in_order(self, tz):
        insights = analyze_hydration([], _meal(tz, 18, 9, 100, "m1"), tz=tz)

        assert [i.kind for i in insights] == [
            InsightKind.LOW_SINGLE_FLUID_INTAKE,
            InsightKind.DEHYDRATION_RISK,
        ]
        low, dehydration = insights
        assert low.severity is Severity.MEDIUM
        assert low.trigger_value == 100
        assert dehydration.severity is Severity.HIGH
        assert dehydration.trigger_value == 100
        assert dehydration.baseline_value == 1500

    @pytest.mark.parametrize("total,fires", [(749, True), (750, False), (1600, False)])
    def test_daily_goal_boundary(self, tz, total, fires):
        history = [_meal(tz, 18, 8, total - 300, "m1")]
        insights = analyze_hydration(history, _meal(tz, 18, 12, 300, "m2"), tz=tz)
        assert (InsightKind.DEHYDRATION_RISK in [i.kind for i in insights]) is fires

    def test_zero_total_is_silent(self, tz):
        assert analyze_hydration([], _meal(tz, 18, 12, 0, "m1"), tz=tz) == []

    @pytest.mark.parametrize("amount,fires", [(199, True), (200, False), (0, False)])
    def test_single_intake_boundary(self, tz, amount, fires):
        history = [_meal(tz, 18, 8, 1000, "m1")]
        insights = analyze_hydration(history, _meal(tz, 18, 12, amount, "m2"), tz=tz)
        assert (InsightKind.LOW_SINGLE_FLUID_INTAKE in [i.kind for i in insights]) is fires

    def test_previous_day_does_not_help(self, tz):
        history = [_meal(tz, 17, 22, 1400, "late")]
        insights = analyze_hydration(history, _meal(tz, 18, 7, 300, "early"), tz=tz)
        assert [i.kind for i in insights] == [InsightKind.DEHYDRATION_RISK]
