"""MCP tools for recording caregiving observations.

Each tool writes one record to the encrypted record store and then runs
the insight dispatcher on it. Passing ``record_id`` updates an existing
record instead of creating one; updates are analyzed the same way.
The analysis outcome is reported back but never fails the write.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING, Any, Callable

from fastmcp import Context, FastMCP

from carecircle.core.storage.repository import RepositoryError
from carecircle.domains.health.domain_logic.dispatcher import (
    InsightDispatcher,
    RecordWriteEvent,
)
from carecircle.domains.health.domain_logic.records import (
    RecordValidationError,
    format_timestamp,
    record_from_dict,
)

if TYPE_CHECKING:
    from carecircle.core.audit.logger import AuditLogger
    from carecircle.domains.health.connectors.repository_store import RepositoryRecordStore

logger = logging.getLogger(__name__)


def _drop_empty(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None and v != "" and v != []}


def register_health_record_tools(
    mcp: FastMCP,
    store: RepositoryRecordStore,
    dispatcher: InsightDispatcher,
    audit_logger: AuditLogger | None = None,
    clock: Callable[[], datetime] | None = None,
    tz: tzinfo = timezone.utc,
) -> None:
    """Register the record_* tools on the MCP server.

    Timestamps sent without an offset are read in ``tz``, the care timezone.
    """
    now = clock or (lambda: datetime.now(timezone.utc))

    async def _write(
        tool_name: str,
        group_id: str,
        payload: dict[str, Any],
        record_id: str,
    ) -> str:
        start_time = time.monotonic()
        if not payload.get("recordedAt"):
            payload["recordedAt"] = format_timestamp(now())

        try:
            record = record_from_dict(payload, record_id, naive_tz=tz)
        except RecordValidationError as exc:
            if audit_logger is not None:
                audit_logger.log_tool_call(
                    tool_name, payload, group_id=group_id, record_id=record_id or None,
                    status="failure", error_type=type(exc).__name__,
                )
            return json.dumps({"status": "error", "message": str(exc)}, ensure_ascii=False)

        try:
            if record_id:
                if not store.update(group_id, record):
                    return json.dumps({
                        "status": "not_found",
                        "record_id": record_id,
                        "message": "No record found with that ID in this group.",
                    })
                status = "updated"
            else:
                record = replace(record, id=store.save(group_id, record))
                status = "saved"
        except RepositoryError as exc:
            logger.error("%s failed to store record: %s", tool_name, exc)
            if audit_logger is not None:
                audit_logger.log_tool_call(
                    tool_name, payload, group_id=group_id, record_id=record_id or None,
                    status="failure", error_type=type(exc).__name__,
                )
            return json.dumps({"status": "error", "message": str(exc)})

        outcome = await dispatcher.handle_write_event(
            RecordWriteEvent(group_id=group_id, record_id=record.id, record_after=record)
        )
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name,
                payload,
                group_id=group_id,
                record_id=record.id,
                duration_ms=elapsed_ms,
                metadata={"analysis_status": outcome.status.value},
            )

        return json.dumps({
            "status": status,
            "record_id": record.id,
            "record_type": record.kind.value,
            "analysis": {
                "status": outcome.status.value,
                "insights": [i.to_dict() for i in outcome.insights],
            },
            "duration_ms": round(elapsed_ms, 1),
        }, ensure_ascii=False)

    @mcp.tool
    async def record_vital_sign(
        ctx: Context,
        group_id: str,
        temperature: float | None = None,
        systolic: int | None = None,
        diastolic: int | None = None,
        spo2: float | None = None,
        notes: str = "",
        recorded_by: str = "",
        recorded_at: str = "",
        record_id: str = "",
    ) -> str:
        """Record vital signs (temperature, blood pressure, SpO2) and check them.

        Args:
            group_id: Caregiving group the record belongs to.
            temperature: Body temperature in Celsius.
            systolic: Systolic blood pressure (top number).
            diastolic: Diastolic blood pressure (bottom number).
            spo2: Blood oxygen saturation percentage.
            notes: Free-text notes.
            recorded_by: Caregiver who took the reading.
            recorded_at: Time of the reading (ISO 8601, care timezone if no offset). Defaults to now.
            record_id: Update this existing record instead of creating one.
        """
        blood_pressure = None
        if systolic is not None or diastolic is not None:
            blood_pressure = {"systolic": systolic, "diastolic": diastolic}
        payload = _drop_empty({
            "type": "vitalSign",
            "recordedBy": recorded_by,
            "recordedAt": recorded_at,
            "temperature": temperature,
            "bloodPressure": blood_pressure,
            "spo2": spo2,
            "notes": notes,
        })
        return await _write("record_vital_sign", group_id, payload, record_id)

    @mcp.tool
    async def record_meal(
        ctx: Context,
        group_id: str,
        meal_time: list[str] | None = None,
        staple_food_amount: str = "",
        main_dish_amount: str = "",
        side_dish_amount: str = "",
        fluid_type: list[str] | None = None,
        fluid_amount: float | None = None,
        notes: str = "",
        recorded_by: str = "",
        recorded_at: str = "",
        record_id: str = "",
    ) -> str:
        """Record a meal and/or fluid intake and check hydration.

        Args:
            group_id: Caregiving group the record belongs to.
            meal_time: Meals covered, e.g. ['朝食'] or ['昼食', '間食'].
            staple_food_amount: Portion eaten ('完食', '8割', '5割', '3割', 'なし').
            main_dish_amount: Portion eaten of the main dish.
            side_dish_amount: Portion eaten of the side dish.
            fluid_type: Drinks, e.g. ['水', 'お茶'].
            fluid_amount: Fluid intake in ml.
            notes: Free-text notes.
            recorded_by: Caregiver who recorded the meal.
            recorded_at: Time of the meal (ISO 8601, care timezone if no offset). Defaults to now.
            record_id: Update this existing record instead of creating one.
        """
        payload = _drop_empty({
            "type": "meal",
            "recordedBy": recorded_by,
            "recordedAt": recorded_at,
            "mealTime": meal_time or [],
            "stapleFoodAmount": staple_food_amount,
            "mainDishAmount": main_dish_amount,
            "sideDishAmount": side_dish_amount,
            "fluidType": fluid_type or [],
            "fluidAmount": fluid_amount,
            "notes": notes,
        })
        return await _write("record_meal", group_id, payload, record_id)

    @mcp.tool
    async def record_excretion(
        ctx: Context,
        group_id: str,
        excretion_type: list[str],
        urine_color: str = "",
        urine_notes: str = "",
        stool_shape: str = "",
        stool_color: str = "",
        stool_notes: str = "",
        stool_count: int | None = None,
        stool_amount: str = "",
        overall_notes: str = "",
        pain: str = "",
        recorded_by: str = "",
        recorded_at: str = "",
        record_id: str = "",
    ) -> str:
        """Record urination, bowel movement or vomiting and check for risks.

        Args:
            group_id: Caregiving group the record belongs to.
            excretion_type: Any of '尿' (urine), '便' (stool), '嘔吐' (vomit).
            urine_color: e.g. '薄黄', '濃黄', '赤'.
            urine_notes: Notes on the urine.
            stool_shape: e.g. '普通', '硬い', '水様'.
            stool_color: e.g. '茶色', '黒'.
            stool_notes: Notes on the stool.
            stool_count: Number of bowel movements covered by this record.
            stool_amount: '少量', '普通' or '多量'.
            overall_notes: General notes.
            pain: 'なし' or 'あり'.
            recorded_by: Caregiver who recorded the observation.
            recorded_at: Time of the observation (ISO 8601, care timezone if no offset). Defaults to now.
            record_id: Update this existing record instead of creating one.
        """
        payload = _drop_empty({
            "type": "excretion",
            "recordedBy": recorded_by,
            "recordedAt": recorded_at,
            "excretionType": excretion_type,
            "urineColor": urine_color,
            "urineNotes": urine_notes,
            "stoolShape": stool_shape,
            "stoolColor": stool_color,
            "stoolNotes": stool_notes,
            "stoolCount": stool_count,
            "stoolAmount": stool_amount,
            "overallNotes": overall_notes,
            "pain": pain,
        })
        return await _write("record_excretion", group_id, payload, record_id)

    @mcp.tool
    async def record_medication(
        ctx: Context,
        group_id: str,
        medication_name: str,
        is_taken: bool,
        dose: str = "",
        scheduled_time: str = "",
        notes: str = "",
        recorded_by: str = "",
        recorded_at: str = "",
        record_id: str = "",
    ) -> str:
        """Record whether a scheduled dose was taken and check for missed doses.

        Args:
            group_id: Caregiving group the record belongs to.
            medication_name: Name of the medication.
            is_taken: True if the dose was taken.
            dose: Dose description, e.g. '1錠'.
            scheduled_time: When the dose was due (ISO 8601, care timezone if no offset).
            notes: Free-text notes.
            recorded_by: Caregiver who recorded the dose.
            recorded_at: Time of the entry (ISO 8601, care timezone if no offset). Defaults to now.
            record_id: Update this existing record instead of creating one.
        """
        payload = _drop_empty({
            "type": "medication",
            "recordedBy": recorded_by,
            "recordedAt": recorded_at,
            "medicationName": medication_name,
            "dose": dose,
            "isTaken": is_taken,
            "scheduledTime": scheduled_time,
            "notes": notes,
        })
        return await _write("record_medication", group_id, payload, record_id)
