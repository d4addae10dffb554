"""MCP tool for reading a group's insight log."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carecircle.domains.health.domain_logic.insight_models import Severity

if TYPE_CHECKING:
    from carecircle.core.audit.logger import AuditLogger
    from carecircle.core.storage.repository import CareRepository

logger = logging.getLogger(__name__)


def register_insight_tools(
    mcp: FastMCP,
    repository: CareRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register insight log tools on the MCP server."""

    @mcp.tool
    async def list_health_insights(
        ctx: Context,
        group_id: str,
        min_severity: str = "low",
        record_id: str = "",
        since: str = "",
        limit: int = 50,
    ) -> str:
        """List a group's health insights (alerts), newest first.

        Args:
            group_id: Caregiving group.
            min_severity: Lowest severity to include: 'low', 'medium', 'high' or 'critical'.
            record_id: Only insights about this record.
            since: Only insights written at or after this UTC ISO 8601 time.
            limit: Maximum number of insights to return (1-500).
        """
        try:
            floor = Severity(min_severity.lower())
        except ValueError:
            return json.dumps({
                "status": "error",
                "message": f"Unknown severity {min_severity!r}. "
                           f"Valid: {[s.value for s in Severity]}",
            })
        limit = max(1, min(limit, 500))

        start_time = time.monotonic()
        rows = repository.get_insights(
            group_id,
            severities=[s.value for s in Severity if s >= floor],
            related_record_id=record_id or None,
            since=since or None,
            limit=limit,
        )
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_tool_call(
                "list_health_insights",
                {"group_id": group_id, "min_severity": floor.value},
                group_id=group_id,
                duration_ms=elapsed_ms,
                metadata={"returned": len(rows)},
            )

        return json.dumps({
            "status": "ok",
            "group_id": group_id,
            "count": len(rows),
            "insights": [
                {
                    "id": row.id,
                    "type": row.kind,
                    "message": row.message,
                    "severity": row.severity,
                    "triggerValue": row.trigger_value,
                    "baselineValue": row.baseline_value,
                    "relatedRecordId": row.related_record_id,
                    "relatedRecordType": row.related_record_kind,
                    "timestamp": row.timestamp,
                }
                for row in rows
            ],
        }, ensure_ascii=False)
