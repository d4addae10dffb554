"""Health record models for the caregiving circle.

Four observation kinds (vital sign, meal, excretion, medication) share one
tagged union, ``HealthRecord``, discriminated by ``kind``. Records arrive
from the store as camelCase dicts (the shape the caregiver app writes) and
are parsed with :func:`record_from_dict`.

Vocabulary enums keep the values the caregivers actually store, so
``StoolShape.WATERY == "水様"``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, ClassVar, Mapping


class RecordValidationError(ValueError):
    """Raised when a stored payload cannot be turned into a HealthRecord."""


class InvalidRecordError(RecordValidationError):
    """Raised for a payload with missing or malformed fields."""


class UnknownRecordKindError(RecordValidationError):
    """Raised when the ``type`` discriminator is not a known record kind."""


# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

class RecordKind(str, Enum):
    VITAL_SIGN = "vitalSign"
    MEAL = "meal"
    EXCRETION = "excretion"
    MEDICATION = "medication"


class MealTime(str, Enum):
    BREAKFAST = "朝食"
    LUNCH = "昼食"
    DINNER = "夕食"
    SNACK = "間食"


class DishAmount(str, Enum):
    ALL = "完食"
    EIGHTY_PERCENT = "8割"
    HALF = "5割"
    THIRTY_PERCENT = "3割"
    NONE = "なし"


class FluidType(str, Enum):
    WATER = "水"
    TEA = "お茶"
    JUICE = "ジュース"
    MILK = "牛乳"
    SOUP = "スープ"
    OTHER = "その他"


class ExcretionType(str, Enum):
    URINE = "尿"
    STOOL = "便"
    VOMIT = "嘔吐"


class ExcretionAmount(str, Enum):
    SMALL = "少量"
    NORMAL = "普通"
    LARGE = "多量"


class StoolShape(str, Enum):
    NORMAL = "普通"
    HARD = "硬い"
    SOFT = "軟らかい"
    WATERY = "水様"
    MUDDY = "泥状"
    OTHER = "その他"


class StoolColor(str, Enum):
    OCHRE = "黄土色"
    BROWN = "茶色"
    BLACK = "黒"
    WHITE = "白"
    RED = "赤"
    OTHER = "その他"


class UrineColor(str, Enum):
    PALE_YELLOW = "薄黄"
    YELLOW = "黄"
    DARK_YELLOW = "濃黄"
    RED = "赤"
    OTHER = "その他"


class ExcretionPain(str, Enum):
    NONE = "なし"
    PRESENT = "あり"


# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------

@dataclass
class BloodPressure:
    systolic: int
    diastolic: int


@dataclass
class VitalSignRecord:
    """Temperature, blood pressure and SpO2 measured at one point in time."""

    recorded_at: datetime
    recorded_by: str = ""
    id: str = ""
    temperature: float | None = None  # Celsius
    blood_pressure: BloodPressure | None = None
    spo2: float | None = None
    notes: str = ""

    kind: ClassVar[RecordKind] = RecordKind.VITAL_SIGN


@dataclass
class MealRecord:
    """A meal and/or fluid intake entry."""

    recorded_at: datetime
    recorded_by: str = ""
    id: str = ""
    meal_times: frozenset[MealTime] = frozenset()
    staple_food_amount: DishAmount | None = None
    main_dish_amount: DishAmount | None = None
    side_dish_amount: DishAmount | None = None
    fluid_types: frozenset[FluidType] = frozenset()
    fluid_amount: float | None = None  # ml
    notes: str = ""

    kind: ClassVar[RecordKind] = RecordKind.MEAL


@dataclass
class ExcretionRecord:
    """Urine / stool / vomit observation."""

    recorded_at: datetime
    recorded_by: str = ""
    id: str = ""
    excretion_types: frozenset[ExcretionType] = frozenset()
    urine_color: UrineColor | None = None
    urine_notes: str | None = None
    stool_shape: StoolShape | None = None
    stool_color: StoolColor | None = None
    stool_notes: str | None = None
    stool_count: int | None = None
    stool_amount: ExcretionAmount | None = None
    overall_notes: str | None = None
    pain: ExcretionPain | None = None

    kind: ClassVar[RecordKind] = RecordKind.EXCRETION

    @property
    def has_stool(self) -> bool:
        return ExcretionType.STOOL in self.excretion_types

    @property
    def has_urine(self) -> bool:
        return ExcretionType.URINE in self.excretion_types


@dataclass
class MedicationRecord:
    """Whether a scheduled dose was taken."""

    recorded_at: datetime
    medication_name: str = ""
    recorded_by: str = ""
    id: str = ""
    dose: str | None = None
    is_taken: bool = False
    scheduled_time: datetime | None = None
    notes: str = ""

    kind: ClassVar[RecordKind] = RecordKind.MEDICATION


HealthRecord = VitalSignRecord | MealRecord | ExcretionRecord | MedicationRecord


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_timestamp(
    value: Any, field_name: str = "recordedAt", naive_tz: tzinfo = timezone.utc
) -> datetime:
    """Parse a stored timestamp into an aware datetime.

    Accepts ``datetime`` objects, ISO 8601 strings (``Z`` suffix allowed) and
    ``{"seconds": ..., "nanoseconds": ...}`` dicts. Naive values are read in
    ``naive_tz`` (UTC unless the caller knows the caregiver's zone).

    Raises:
        InvalidRecordError: If the value is missing or unparseable.
    """
    if value is None or value == "":
        raise InvalidRecordError(f"{field_name} is missing")

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidRecordError(f"{field_name} is not ISO 8601: {value!r}") from exc
    elif isinstance(value, Mapping) and "seconds" in value:
        try:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise InvalidRecordError(f"{field_name} has invalid seconds: {value!r}") from exc
    else:
        raise InvalidRecordError(f"{field_name} has unsupported type {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=naive_tz)
    return parsed


def format_timestamp(value: datetime) -> str:
    """UTC ISO 8601 with fixed microsecond precision (sorts lexicographically)."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _enum_or_none(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise InvalidRecordError(f"{field_name} has unknown value {value!r}") from exc


def _enum_set(enum_cls: type[Enum], values: Any, field_name: str) -> frozenset:
    if values is None or values == "":
        return frozenset()
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise InvalidRecordError(f"{field_name} must be a list, got {type(values).__name__}")
    members = set()
    for v in values:
        if v is None or v == "":
            continue
        if not isinstance(v, str):
            raise InvalidRecordError(f"{field_name} has non-text entry {v!r}")
        members.add(_enum_or_none(enum_cls, v, field_name))
    return frozenset(members)


def _number_or_none(value: Any, field_name: str, cast: type = float) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidRecordError(f"{field_name} must be numeric, got bool")
    try:
        return cast(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidRecordError(f"{field_name} must be numeric: {value!r}") from exc


def _parse_blood_pressure(value: Any) -> BloodPressure | None:
    if not value:
        return None
    if not isinstance(value, Mapping):
        raise InvalidRecordError("bloodPressure must be an object")
    systolic = _number_or_none(value.get("systolic"), "bloodPressure.systolic", int)
    diastolic = _number_or_none(value.get("diastolic"), "bloodPressure.diastolic", int)
    if systolic is None and diastolic is None:
        return None
    if systolic is None or diastolic is None:
        raise InvalidRecordError("bloodPressure needs both systolic and diastolic")
    return BloodPressure(systolic=systolic, diastolic=diastolic)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def record_kind_of(data: Mapping[str, Any]) -> RecordKind:
    """Return the kind discriminator of a raw payload.

    Raises:
        UnknownRecordKindError: If ``type`` is missing or not recognised.
    """
    raw = data.get("type")
    try:
        return RecordKind(raw)
    except ValueError as exc:
        raise UnknownRecordKindError(f"Unknown record type: {raw!r}") from exc


def record_from_dict(
    data: Mapping[str, Any],
    record_id: str = "",
    *,
    naive_tz: tzinfo = timezone.utc,
) -> HealthRecord:
    """Parse a stored camelCase payload into a typed record.

    Args:
        data: Raw record dict as written by the caregiver app.
        record_id: Store-assigned id; overrides any ``id`` key in ``data``.
        naive_tz: Zone for timestamps written without an offset.

    Raises:
        UnknownRecordKindError: If ``type`` is not one of the four kinds.
        InvalidRecordError: If ``recordedAt`` or another field is malformed.
    """
    kind = record_kind_of(data)
    recorded_at = parse_timestamp(data.get("recordedAt"), naive_tz=naive_tz)
    common = {
        "id": record_id or str(data.get("id") or ""),
        "recorded_by": str(data.get("recordedBy") or ""),
        "recorded_at": recorded_at,
    }

    if kind is RecordKind.VITAL_SIGN:
        return VitalSignRecord(
            **common,
            temperature=_number_or_none(data.get("temperature"), "temperature"),
            blood_pressure=_parse_blood_pressure(data.get("bloodPressure")),
            spo2=_number_or_none(data.get("spo2"), "spo2"),
            notes=data.get("notes") or "",
        )

    if kind is RecordKind.MEAL:
        return MealRecord(
            **common,
            meal_times=_enum_set(MealTime, data.get("mealTime"), "mealTime"),
            staple_food_amount=_enum_or_none(DishAmount, data.get("stapleFoodAmount"), "stapleFoodAmount"),
            main_dish_amount=_enum_or_none(DishAmount, data.get("mainDishAmount"), "mainDishAmount"),
            side_dish_amount=_enum_or_none(DishAmount, data.get("sideDishAmount"), "sideDishAmount"),
            fluid_types=_enum_set(FluidType, data.get("fluidType"), "fluidType"),
            fluid_amount=_number_or_none(data.get("fluidAmount"), "fluidAmount"),
            notes=data.get("notes") or "",
        )

    if kind is RecordKind.EXCRETION:
        return ExcretionRecord(
            **common,
            excretion_types=_enum_set(ExcretionType, data.get("excretionType"), "excretionType"),
            urine_color=_enum_or_none(UrineColor, data.get("urineColor"), "urineColor"),
            urine_notes=data.get("urineNotes"),
            stool_shape=_enum_or_none(StoolShape, data.get("stoolShape"), "stoolShape"),
            stool_color=_enum_or_none(StoolColor, data.get("stoolColor"), "stoolColor"),
            stool_notes=data.get("stoolNotes"),
            stool_count=_number_or_none(data.get("stoolCount"), "stoolCount", int),
            stool_amount=_enum_or_none(ExcretionAmount, data.get("stoolAmount"), "stoolAmount"),
            overall_notes=data.get("overallNotes"),
            pain=_enum_or_none(ExcretionPain, data.get("pain"), "pain"),
        )

    # RecordKind.MEDICATION
    scheduled = data.get("scheduledTime")
    return MedicationRecord(
        **common,
        medication_name=str(data.get("medicationName") or ""),
        dose=data.get("dose"),
        is_taken=bool(data.get("isTaken", False)),
        scheduled_time=parse_timestamp(scheduled, "scheduledTime", naive_tz) if scheduled else None,
        notes=data.get("notes") or "",
    )


def _enum_list(values: frozenset) -> list[str]:
    return sorted(v.value for v in values)


def _enum_value(value: Enum | None) -> str | None:
    return value.value if value is not None else None


def record_to_dict(record: HealthRecord) -> dict[str, Any]:
    """Serialize a record back to the camelCase store shape (without ``id``)."""
    base: dict[str, Any] = {
        "type": record.kind.value,
        "recordedBy": record.recorded_by,
        "recordedAt": format_timestamp(record.recorded_at),
    }

    if isinstance(record, VitalSignRecord):
        bp = record.blood_pressure
        base.update({
            "temperature": record.temperature,
            "bloodPressure": (
                {"systolic": bp.systolic, "diastolic": bp.diastolic} if bp else None
            ),
            "spo2": record.spo2,
            "notes": record.notes,
        })
    elif isinstance(record, MealRecord):
        base.update({
            "mealTime": _enum_list(record.meal_times),
            "stapleFoodAmount": _enum_value(record.staple_food_amount),
            "mainDishAmount": _enum_value(record.main_dish_amount),
            "sideDishAmount": _enum_value(record.side_dish_amount),
            "fluidType": _enum_list(record.fluid_types),
            "fluidAmount": record.fluid_amount,
            "notes": record.notes,
        })
    elif isinstance(record, ExcretionRecord):
        base.update({
            "excretionType": _enum_list(record.excretion_types),
            "urineColor": _enum_value(record.urine_color),
            "urineNotes": record.urine_notes,
            "stoolShape": _enum_value(record.stool_shape),
            "stoolColor": _enum_value(record.stool_color),
            "stoolNotes": record.stool_notes,
            "stoolCount": record.stool_count,
            "stoolAmount": _enum_value(record.stool_amount),
            "overallNotes": record.overall_notes,
            "pain": _enum_value(record.pain),
        })
    elif isinstance(record, MedicationRecord):
        base.update({
            "medicationName": record.medication_name,
            "dose": record.dose,
            "isTaken": record.is_taken,
            "scheduledTime": (
                format_timestamp(record.scheduled_time) if record.scheduled_time else None
            ),
            "notes": record.notes,
        })
    else:
        raise UnknownRecordKindError(f"Cannot serialize {type(record).__name__}")

    return base
