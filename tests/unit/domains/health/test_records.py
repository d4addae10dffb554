"""Tests for record parsing, serialization and the insight model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from carecircle.domains.health.domain_logic.insight_models import (
    Insight,
    InsightKind,
    Severity,
)
from carecircle.domains.health.domain_logic.records import (
    BloodPressure,
    DishAmount,
    ExcretionPain,
    ExcretionRecord,
    ExcretionType,
    FluidType,
    InvalidRecordError,
    MealRecord,
    MealTime,
    MedicationRecord,
    RecordKind,
    StoolShape,
    UnknownRecordKindError,
    VitalSignRecord,
    parse_timestamp,
    record_from_dict,
    record_to_dict,
)


class TestParseTimestamp:
    def test_z_suffix(self):
        parsed = parse_timestamp("2026-10-18T01:30:00Z")
        assert parsed == datetime(2026, 10, 18, 1, 30, tzinfo=timezone.utc)

    def test_offset_is_kept(self):
        parsed = parse_timestamp("2026-10-18T10:30:00+09:00")
        assert parsed.utcoffset() == timedelta(hours=9)

    def test_naive_is_utc(self):
        parsed = parse_timestamp(datetime(2026, 10, 18, 1, 30))
        assert parsed.tzinfo is timezone.utc

    def test_seconds_dict(self):
        parsed = parse_timestamp({"seconds": 1_760_000_000, "nanoseconds": 500_000_000})
        assert parsed.timestamp() == pytest.approx(1_760_000_000.5)

    @pytest.mark.parametrize("value", [
        None, "", "yesterday", 12345, {"seconds": 1e20}, {"seconds": "soon"},
    ])
    def test_invalid(self, value):
        with pytest.raises(InvalidRecordError):
            parse_timestamp(value)


class TestRecordFromDict:
    def test_vital_sign(self):
        record = record_from_dict({
            "type": "vitalSign",
            "recordedAt": "2026-10-18T01:00:00Z",
            "recordedBy": "hanako",
            "temperature": 37.8,
            "bloodPressure": {"systolic": 142, "diastolic": 88},
        }, "r1")
        assert isinstance(record, VitalSignRecord)
        assert record.kind is RecordKind.VITAL_SIGN
        assert record.id == "r1"
        assert record.recorded_by == "hanako"
        assert record.temperature == 37.8
        assert record.blood_pressure == BloodPressure(142, 88)
        assert record.spo2 is None

    def test_half_entered_blood_pressure_is_rejected(self):
        with pytest.raises(InvalidRecordError, match="both systolic and diastolic"):
            record_from_dict({
                "type": "vitalSign",
                "recordedAt": "2026-10-18T01:00:00Z",
                "bloodPressure": {"systolic": 142, "diastolic": None},
            })

    def test_empty_blood_pressure_is_absent(self):
        record = record_from_dict({
            "type": "vitalSign",
            "recordedAt": "2026-10-18T01:00:00Z",
            "bloodPressure": {"systolic": None, "diastolic": None},
        })
        assert record.blood_pressure is None

    @pytest.mark.parametrize("field,value", [
        ("excretionType", 5),
        ("excretionType", {"尿": True}),
        ("excretionType", ["便", 7]),
    ])
    def test_malformed_list_field(self, field, value):
        with pytest.raises(InvalidRecordError, match=field):
            record_from_dict({
                "type": "excretion",
                "recordedAt": "2026-10-18T01:00:00Z",
                field: value,
            })

    def test_blank_list_entries_are_ignored(self):
        record = record_from_dict({
            "type": "excretion",
            "recordedAt": "2026-10-18T01:00:00Z",
            "excretionType": ["便", ""],
        })
        assert record.excretion_types == frozenset({ExcretionType.STOOL})
        assert record_to_dict(record)["excretionType"] == ["便"]

    def test_naive_times_use_given_zone(self):
        tokyo = timezone(timedelta(hours=9))
        record = record_from_dict({
            "type": "medication",
            "recordedAt": "2026-10-18T10:00:00",
            "medicationName": "アムロジピン",
            "scheduledTime": "2026-10-18T09:00:00",
        }, naive_tz=tokyo)
        assert record.recorded_at == datetime(2026, 10, 18, 1, tzinfo=timezone.utc)
        assert record.scheduled_time == datetime(2026, 10, 18, 0, tzinfo=timezone.utc)

    def test_meal(self):
        record = record_from_dict({
            "type": "meal",
            "recordedAt": "2026-10-18T01:00:00Z",
            "mealTime": ["朝食"],
            "stapleFoodAmount": "8割",
            "fluidType": ["お茶", "水"],
            "fluidAmount": "150",
        })
        assert isinstance(record, MealRecord)
        assert record.meal_times == frozenset({MealTime.BREAKFAST})
        assert record.staple_food_amount is DishAmount.EIGHTY_PERCENT
        assert record.fluid_types == frozenset({FluidType.TEA, FluidType.WATER})
        assert record.fluid_amount == 150.0

    def test_excretion(self):
        record = record_from_dict({
            "type": "excretion",
            "recordedAt": "2026-10-18T01:00:00Z",
            "excretionType": ["便"],
            "stoolShape": "水様",
            "pain": "あり",
        })
        assert isinstance(record, ExcretionRecord)
        assert record.has_stool and not record.has_urine
        assert record.stool_shape is StoolShape.WATERY
        assert record.pain is ExcretionPain.PRESENT

    def test_medication(self):
        record = record_from_dict({
            "type": "medication",
            "recordedAt": "2026-10-18T01:00:00Z",
            "medicationName": "アムロジピン",
            "isTaken": False,
            "scheduledTime": "2026-10-18T00:00:00Z",
        })
        assert isinstance(record, MedicationRecord)
        assert record.is_taken is False
        assert record.scheduled_time == datetime(2026, 10, 18, tzinfo=timezone.utc)

    def test_unknown_type(self):
        with pytest.raises(UnknownRecordKindError):
            record_from_dict({"type": "sleep", "recordedAt": "2026-10-18T01:00:00Z"})

    def test_missing_recorded_at(self):
        with pytest.raises(InvalidRecordError, match="recordedAt"):
            record_from_dict({"type": "meal", "fluidAmount": 100})

    def test_unknown_vocabulary_value(self):
        with pytest.raises(InvalidRecordError, match="stoolShape"):
            record_from_dict({
                "type": "excretion",
                "recordedAt": "2026-10-18T01:00:00Z",
                "excretionType": ["便"],
                "stoolShape": "rocky",
            })

    def test_non_numeric_fluid(self):
        with pytest.raises(InvalidRecordError):
            record_from_dict({
                "type": "meal",
                "recordedAt": "2026-10-18T01:00:00Z",
                "fluidAmount": "a glass",
            })


class TestRecordToDict:
    def test_store_shape(self):
        record = ExcretionRecord(
            recorded_at=datetime(2026, 10, 18, 10, tzinfo=timezone(timedelta(hours=9))),
            id="r1",
            excretion_types=frozenset({ExcretionType.URINE, ExcretionType.STOOL}),
            stool_shape=StoolShape.HARD,
        )
        payload = record_to_dict(record)

        assert payload["type"] == "excretion"
        assert payload["recordedAt"] == "2026-10-18T01:00:00.000000+00:00"
        assert payload["excretionType"] == sorted(["尿", "便"])
        assert payload["stoolShape"] == "硬い"
        assert "id" not in payload

    def test_parses_back(self):
        record = MedicationRecord(
            recorded_at=datetime(2026, 10, 18, 1, tzinfo=timezone.utc),
            medication_name="メトホルミン",
            id="r9",
            is_taken=True,
            scheduled_time=datetime(2026, 10, 18, 0, 30, tzinfo=timezone.utc),
        )
        assert record_from_dict(record_to_dict(record), "r9") == record


class TestSeverity:
    def test_ordering(self):
        assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL
        assert max(Severity) is Severity.CRITICAL
        assert sorted([Severity.CRITICAL, Severity.LOW]) == [Severity.LOW, Severity.CRITICAL]

    def test_values_are_stored_strings(self):
        assert Severity.HIGH == "high"


def test_insight_to_dict():
    insight = Insight(
        kind=InsightKind.FEVER_ALERT,
        message="発熱",
        severity=Severity.CRITICAL,
        related_record_id="r1",
        trigger_value=38.0,
        related_record_kind=RecordKind.VITAL_SIGN,
        timestamp=datetime(2026, 10, 18, 1, tzinfo=timezone.utc),
    )
    assert insight.to_dict() == {
        "type": "fever_alert",
        "message": "発熱",
        "severity": "critical",
        "triggerValue": 38.0,
        "baselineValue": None,
        "relatedRecordId": "r1",
        "relatedRecordType": "vitalSign",
        "timestamp": "2026-10-18T01:00:00.000000+00:00",
    }
