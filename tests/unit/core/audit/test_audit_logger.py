"""Tests for the AuditLogger and related utilities."""

from __future__ import annotations

import json

from carecircle.core.audit.logger import AuditEvent, _hash_input


# ---------------------------------------------------------------------------
# _hash_input
# ---------------------------------------------------------------------------

class TestHashInput:
    def test_sha256_hex(self):
        assert len(_hash_input({"temperature": 38.0})) == 64

    def test_key_order_does_not_matter(self):
        assert _hash_input({"z": 1, "a": 2}) == _hash_input({"a": 2, "z": 1})

    def test_non_serializable_returns_empty(self):
        assert _hash_input(object()) == ""


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

class TestLogEvent:
    def test_returns_uuid(self, audit_logger):
        eid = audit_logger.log_event(AuditEvent(action="tool_invocation", tool_name="t"))
        assert len(eid) == 36

    def test_tool_call_stores_hash_not_input(self, audit_logger):
        audit_logger.log_tool_call(
            "record_vital_sign",
            {"group_id": "g1", "notes": "ふらつきあり"},
            group_id="g1",
            record_id="r1",
            duration_ms=3.2,
        )
        event = audit_logger.get_events()[0]

        assert event["action"] == "tool_invocation"
        assert event["tool_name"] == "record_vital_sign"
        assert len(event["tool_input_hash"]) == 64
        assert "ふらつき" not in json.dumps(event, ensure_ascii=False)
        assert event["record_id"] == "r1"

    def test_metadata_json(self, audit_logger):
        audit_logger.log_tool_call("t", metadata={"analysis_status": "skipped"})
        meta = json.loads(audit_logger.get_events()[0]["metadata_json"])
        assert meta == {"analysis_status": "skipped"}

    def test_record_delete(self, audit_logger):
        audit_logger.log_record_delete(
            tool_name="delete_health_record", group_id="g1", record_id="r1", count=1,
        )
        event = audit_logger.get_events(action="record_delete")[0]
        assert event["record_id"] == "r1"
        assert json.loads(event["metadata_json"])["records_deleted"] == 1

    def test_analysis_run(self, audit_logger):
        audit_logger.log_analysis_run(
            group_id="g1",
            record_id="r1",
            record_kind="excretion",
            insight_count=2,
            duration_ms=1.5,
            metadata={"insight_kinds": ["diarrhea_alert", "excretion_pain_alert"]},
        )
        event = audit_logger.get_events(action="analysis_run")[0]
        assert event["record_kind"] == "excretion"
        assert event["insight_count"] == 2
        assert event["status"] == "success"

    def test_failed_write_is_swallowed(self, audit_logger, health_db):
        health_db.close()
        assert audit_logger.log_tool_call("t") == ""


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestQueries:
    def test_filters(self, audit_logger):
        audit_logger.log_tool_call("record_meal", record_id="r1")
        audit_logger.log_analysis_run(group_id="g1", record_id="r1", status="failure",
                                      error_type="ConnectionError")
        audit_logger.log_analysis_run(group_id="g1", record_id="r2")

        assert len(audit_logger.get_events(record_id="r1")) == 2
        assert audit_logger.count_events() == 3
        assert audit_logger.count_events(action="analysis_run") == 2
        assert audit_logger.count_events(since="2999-01-01") == 0

    def test_newest_first_and_limit(self, audit_logger):
        for i in range(5):
            audit_logger.log_tool_call(f"tool_{i}")
        events = audit_logger.get_events(limit=2)
        assert [e["tool_name"] for e in events] == ["tool_4", "tool_3"]
