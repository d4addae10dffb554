"""CareCircle server entry point: ``python -m carecircle.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from carecircle.core.config.settings import get_settings
from carecircle.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the CareCircle MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.carecircle_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger = logging.getLogger(__name__)
    if not settings.carecircle_allow_insecure_bind and not _is_loopback_host(
        settings.carecircle_host
    ):
        raise RuntimeError(
            "Refusing to bind CareCircle to a non-loopback host without an auth layer. "
            "Set CARECIRCLE_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting CareCircle server on %s:%d",
        settings.carecircle_host,
        settings.carecircle_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.carecircle_host,
        port=settings.carecircle_port,
    )


if __name__ == "__main__":
    run()
