"""MCP tool for viewing the audit trail.

The trail is PHI-free: it shows which tools ran and how each insight
analysis ended, which is where to look when an expected alert is missing.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from carecircle.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 7,
        record_id: str = "",
    ) -> str:
        """View recent tool calls and insight analysis runs.

        Args:
            days: Number of days to look back (default: 7).
            record_id: Only events about this record.
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        events = audit_logger.get_events(
            record_id=record_id or None, since=since, limit=20
        )
        display_events = [
            {
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "tool_name": event.get("tool_name"),
                "record_id": event.get("record_id"),
                "record_type": event.get("record_kind"),
                "insight_count": event.get("insight_count"),
                "status": event.get("status"),
                "error_type": event.get("error_type"),
                "duration_ms": event.get("duration_ms"),
            }
            for event in events
        ]

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": audit_logger.count_events(since=since),
            "analysis_runs": audit_logger.count_events(action="analysis_run", since=since),
            "recent_failed_analyses": sum(
                1 for e in events
                if e.get("action") == "analysis_run" and e.get("status") == "failure"
            ),
            "recent_events": display_events,
        }, indent=2)
