"""MCP tools for health record deletion and retention.

Deleting a record does not trigger analysis, and the insights already
written about it stay in the append-only insight log. All deletions are
audit-logged.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from carecircle.domains.health.domain_logic.dispatcher import (
    InsightDispatcher,
    RecordWriteEvent,
)

if TYPE_CHECKING:
    from carecircle.core.audit.logger import AuditLogger
    from carecircle.core.storage.repository import CareRepository

logger = logging.getLogger(__name__)


def register_data_management_tools(
    mcp: FastMCP,
    repository: CareRepository,
    dispatcher: InsightDispatcher,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register data management tools on the MCP server."""

    @mcp.tool
    async def delete_health_record(
        ctx: Context,
        group_id: str,
        record_id: str,
    ) -> str:
        """Permanently delete one health record.

        Args:
            group_id: Caregiving group the record belongs to.
            record_id: The id of the record to delete.
        """
        start_time = time.monotonic()
        deleted = repository.delete_record(group_id, record_id)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if not deleted:
            return json.dumps({
                "status": "not_found",
                "record_id": record_id,
                "message": "No record found with that ID in this group.",
            })

        # Deletion events reach the dispatcher like any other write.
        await dispatcher.handle_write_event(
            RecordWriteEvent(group_id=group_id, record_id=record_id, record_after=None)
        )
        if audit_logger is not None:
            audit_logger.log_record_delete(
                tool_name="delete_health_record",
                group_id=group_id,
                record_id=record_id,
                count=1,
            )
        logger.info("Deleted health record %s (group=%s)", record_id, group_id)
        return json.dumps({
            "status": "deleted",
            "record_id": record_id,
            "duration_ms": round(elapsed_ms, 1),
        })

    @mcp.tool
    async def purge_old_records(
        ctx: Context,
        older_than_days: int = 365,
    ) -> str:
        """Delete all health records older than a number of days.

        Args:
            older_than_days: Delete records older than this many days (default: 365).
        """
        if older_than_days < 1:
            return json.dumps({
                "status": "error",
                "message": "older_than_days must be at least 1.",
            })

        start_time = time.monotonic()
        count = repository.purge_before_days(older_than_days)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None and count > 0:
            audit_logger.log_record_delete(
                tool_name="purge_old_records",
                count=count,
                metadata={"older_than_days": older_than_days},
            )

        return json.dumps({
            "status": "purged",
            "records_deleted": count,
            "older_than_days": older_than_days,
            "duration_ms": round(elapsed_ms, 1),
        })
