"""CareCircle MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run ...app.py:mcp`)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from fastmcp import FastMCP

from carecircle.core.audit.logger import AuditLogger
from carecircle.core.config.settings import get_settings
from carecircle.core.storage.database import DatabaseError, HealthDatabase
from carecircle.core.storage.encryption import EncryptionError, PayloadCipher
from carecircle.core.storage.repository import CareRepository

logger = logging.getLogger(__name__)

SERVER_NAME = "CareCircle"
SERVER_VERSION = "0.1.0"


def create_app(
    *,
    repository_override: CareRepository | None = None,
    audit_logger_override: AuditLogger | None = None,
    clock_override: Callable[[], datetime] | None = None,
) -> FastMCP:
    """Create and configure the CareCircle MCP server.

    1. Creates the FastMCP server instance
    2. Initializes the encrypted record store and the audit trail
    3. Builds the insight dispatcher over the record store
    4. Registers the record, insight, data management and audit tools

    Without storage (no ENCRYPTION_KEY and no override) only health_check
    is available.
    """
    settings = get_settings()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "CareCircle caregiving health log. Record vital signs, meals, "
            "excretion and medication for a cared-for person; every write is "
            "checked against the last 7 days and alerts are added to the "
            "group's insight log."
        ),
    )

    # --- Initialize encrypted storage ---
    repository: CareRepository | None = None
    audit_logger: AuditLogger | None = audit_logger_override
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            cipher = PayloadCipher(settings.encryption_key)
            care_db = HealthDatabase(settings.db_path)
            care_db.initialize()
            repository = CareRepository(care_db, cipher)
            if audit_logger is None:
                audit_logger = AuditLogger(care_db)
            logger.info(
                "Care record store initialized: %s (schema v%d)",
                settings.db_path,
                care_db.get_schema_version(),
            )
        except (EncryptionError, DatabaseError) as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence; record tools are disabled")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured; running without persistence. "
            "Set ENCRYPTION_KEY to enable the record tools."
        )

    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "care_timezone": settings.care_timezone,
            "storage_enabled": repository is not None,
        }
        if repository is not None:
            status["records_stored"] = repository.count_records()
            status["insights_stored"] = repository.count_insights()
        return status

    if repository is None:
        return server

    # --- Insight engine and tools (require storage) ---
    from carecircle.domains.health.connectors.repository_store import RepositoryRecordStore
    from carecircle.domains.health.domain_logic.dispatcher import InsightDispatcher
    from carecircle.domains.health.tools.data_management_tools import (
        register_data_management_tools,
    )
    from carecircle.domains.health.tools.health_record_tools import (
        register_health_record_tools,
    )
    from carecircle.domains.health.tools.insight_tools import register_insight_tools

    store = RepositoryRecordStore(repository)
    dispatcher = InsightDispatcher(
        store,
        store,
        tz=settings.tzinfo,
        clock=clock_override,
        audit_logger=audit_logger,
    )

    register_health_record_tools(
        server, store, dispatcher, audit_logger, clock_override, tz=settings.tzinfo,
    )
    register_insight_tools(server, repository, audit_logger)
    register_data_management_tools(server, repository, dispatcher, audit_logger)
    logger.info("Health record tools registered (timezone %s)", settings.care_timezone)

    if audit_logger is not None:
        from carecircle.domains.health.tools.audit_tools import register_audit_tools

        register_audit_tools(server, audit_logger)

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
