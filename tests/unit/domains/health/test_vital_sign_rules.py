"""Tests for the blood pressure and temperature rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from carecircle.domains.health.domain_logic.insight_models import InsightKind, Severity
from carecircle.domains.health.domain_logic.records import BloodPressure, VitalSignRecord
from carecircle.domains.health.domain_logic.vital_sign_rules import (
    analyze_blood_pressure,
    analyze_temperature,
)

_BASE = datetime(2026, 10, 18, 0, 0, tzinfo=timezone.utc)


def _vital(
    idx: int,
    *,
    temperature: float | None = None,
    bp: tuple[int, int] | None = None,
) -> VitalSignRecord:
    return VitalSignRecord(
        recorded_at=_BASE + timedelta(hours=idx),
        id=f"v{idx}",
        temperature=temperature,
        blood_pressure=BloodPressure(*bp) if bp else None,
    )


def _kinds(insights) -> list[InsightKind]:
    return [i.kind for i in insights]


# ---------------------------------------------------------------------------
# Blood pressure
# ---------------------------------------------------------------------------

class TestBloodPressure:
    def test_no_reading_no_insights(self):
        history = [_vital(i, bp=(120, 80)) for i in range(3)]
        assert analyze_blood_pressure(history, _vital(9, temperature=36.5)) == []

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_requires_three_prior_systolic_readings(self, count):
        history = [_vital(i, bp=(110, 70)) for i in range(count)]
        assert analyze_blood_pressure(history, _vital(9, bp=(200, 120))) == []

    def test_history_without_bp_does_not_count(self):
        history = [_vital(0, bp=(110, 70)), _vital(1, temperature=36.4),
                   _vital(2, bp=(112, 72)), _vital(3, temperature=36.6)]
        assert analyze_blood_pressure(history, _vital(9, bp=(200, 120))) == []

    def test_rising_and_high_produces_both(self):
        history = [_vital(i, bp=(120, 80)) for i in range(3)]
        insights = analyze_blood_pressure(history, _vital(9, bp=(160, 95)))

        assert _kinds(insights) == [
            InsightKind.BLOOD_PRESSURE_TREND,
            InsightKind.HIGH_BLOOD_PRESSURE,
        ]
        trend, high = insights
        assert trend.severity is Severity.HIGH
        assert trend.trigger_value == 160
        assert trend.baseline_value == 120.0
        assert trend.related_record_id == "v9"
        assert high.severity is Severity.MEDIUM
        assert high.trigger_value == 160
        assert high.baseline_value is None

    def test_high_without_trend(self):
        # Average is already 150: 152 is neither 5% nor 10 mmHg above it.
        history = [_vital(i, bp=(150, 85)) for i in range(3)]
        insights = analyze_blood_pressure(history, _vital(9, bp=(152, 85)))
        assert _kinds(insights) == [InsightKind.HIGH_BLOOD_PRESSURE]

    def test_diastolic_alone_is_high(self):
        history = [_vital(i, bp=(120, 80)) for i in range(3)]
        insights = analyze_blood_pressure(history, _vital(9, bp=(125, 90)))
        assert _kinds(insights) == [InsightKind.HIGH_BLOOD_PRESSURE]

    def test_rising_below_threshold_is_quiet(self):
        history = [_vital(i, bp=(110, 70)) for i in range(3)]
        assert analyze_blood_pressure(history, _vital(9, bp=(135, 85))) == []

    def test_trend_baseline_is_rounded_average(self):
        history = [_vital(0, bp=(120, 80)), _vital(1, bp=(121, 80)), _vital(2, bp=(121, 80))]
        trend = analyze_blood_pressure(history, _vital(9, bp=(150, 80)))[0]
        assert trend.kind is InsightKind.BLOOD_PRESSURE_TREND
        assert trend.baseline_value == 120.7

    def test_deterministic(self):
        history = [_vital(i, bp=(120, 80)) for i in range(3)]
        latest = _vital(9, bp=(160, 95))
        assert analyze_blood_pressure(history, latest) == analyze_blood_pressure(history, latest)


# ---------------------------------------------------------------------------
# Temperature
# ---------------------------------------------------------------------------

class TestTemperature:
    @pytest.mark.parametrize("value,fires", [(37.5, True), (37.49, False), (38.0, True)])
    def test_fever_boundary(self, value, fires):
        insights = analyze_temperature([], _vital(9, temperature=value))
        assert (InsightKind.FEVER_ALERT in _kinds(insights)) is fires

    @pytest.mark.parametrize("value,fires", [(35.0, True), (35.01, False), (34.2, True)])
    def test_hypothermia_boundary(self, value, fires):
        insights = analyze_temperature([], _vital(9, temperature=value))
        assert (InsightKind.HYPOTHERMIA_ALERT in _kinds(insights)) is fires

    def test_fever_is_critical_without_history(self):
        insights = analyze_temperature([], _vital(9, temperature=38.0))
        assert len(insights) == 1
        assert insights[0].kind is InsightKind.FEVER_ALERT
        assert insights[0].severity is Severity.CRITICAL
        assert insights[0].trigger_value == 38.0

    def test_spike_against_recent_average(self):
        history = [_vital(0, temperature=36.0), _vital(1, temperature=36.2)]
        insights = analyze_temperature(history, _vital(9, temperature=37.4))

        assert _kinds(insights) == [InsightKind.TEMPERATURE_SPIKE]
        assert insights[0].severity is Severity.HIGH
        assert insights[0].baseline_value == 36.1

    def test_spike_needs_two_prior_readings(self):
        history = [_vital(0, temperature=36.0)]
        assert analyze_temperature(history, _vital(9, temperature=37.4)) == []

    def test_rise_of_exactly_one_degree_is_not_a_spike(self):
        history = [_vital(0, temperature=36.0), _vital(1, temperature=36.0)]
        assert analyze_temperature(history, _vital(9, temperature=37.0)) == []

    def test_fever_and_spike_together(self):
        history = [_vital(0, temperature=36.0), _vital(1, temperature=36.0)]
        insights = analyze_temperature(history, _vital(9, temperature=38.5))
        assert _kinds(insights) == [InsightKind.FEVER_ALERT, InsightKind.TEMPERATURE_SPIKE]

    def test_history_copy_of_latest_is_ignored(self):
        latest = _vital(9, temperature=37.4)
        history = [_vital(0, temperature=36.0), latest]
        assert analyze_temperature(history, latest) == []

    def test_no_temperature_no_insights(self):
        assert analyze_temperature([], _vital(9, bp=(120, 80))) == []
