"""Insight (alert) models produced by the health rule modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from carecircle.domains.health.domain_logic.records import RecordKind, format_timestamp

# Scalar carried by an insight for display (a reading, a count, a label).
InsightValue = int | float | str | bool


class InsightKind(str, Enum):
    BLOOD_PRESSURE_TREND = "blood_pressure_trend"
    HIGH_BLOOD_PRESSURE = "high_blood_pressure"
    FEVER_ALERT = "fever_alert"
    HYPOTHERMIA_ALERT = "hypothermia_alert"
    TEMPERATURE_SPIKE = "temperature_spike"
    LOW_SINGLE_FLUID_INTAKE = "low_single_fluid_intake"
    DEHYDRATION_RISK = "dehydration_risk"
    CONSTIPATION_RISK = "constipation_risk"
    DIARRHEA_ALERT = "diarrhea_alert"
    LOW_URINATION_FREQUENCY = "low_urination_frequency"
    FREQUENT_NIGHT_URINATION = "frequent_night_urination"
    BLOOD_IN_URINE_ALERT = "blood_in_urine_alert"
    EXCRETION_PAIN_ALERT = "excretion_pain_alert"
    MEDICATION_MISSED = "medication_missed"
    MEDICATION_MISSED_SUMMARY = "medication_missed_summary"
    GENERAL_ALERT = "general_alert"


_SEVERITY_ORDER = ("low", "medium", "high", "critical")


class Severity(str, Enum):
    """Insight severity, ordered ``LOW < MEDIUM < HIGH < CRITICAL``."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self.value)

    # str's lexical comparison would put "critical" below "low".
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


@dataclass(frozen=True)
class Insight:
    """A derived alert about one health record.

    ``related_record_kind`` is stamped by the dispatcher and ``timestamp`` by
    the insight sink at write time; rule modules leave both unset.
    """

    kind: InsightKind
    message: str
    severity: Severity
    related_record_id: str
    trigger_value: InsightValue | None = None
    baseline_value: InsightValue | None = None
    related_record_kind: RecordKind | None = None
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "message": self.message,
            "severity": self.severity.value,
            "triggerValue": self.trigger_value,
            "baselineValue": self.baseline_value,
            "relatedRecordId": self.related_record_id,
            "relatedRecordType": (
                self.related_record_kind.value if self.related_record_kind else None
            ),
            "timestamp": format_timestamp(self.timestamp) if self.timestamp else None,
        }
