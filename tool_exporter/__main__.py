# tool_exporter/__main__.py
"""
Entry point for the tool-exporter MCP server.

CRITICAL: Server imports configure_logging() first to prevent stdout pollution.

FastMCP doesn't have built-in lifecycle hooks, so lifecycle initialization
happens here before the stdio transport starts.
"""

import asyncio
import logging

from tool_exporter.server import initialize_lifecycle, mcp, shutdown_lifecycle

logger = logging.getLogger(__name__)


async def main() -> None:
    """Initialize lifecycle (DB + runner + signals), then run the MCP server."""
    await initialize_lifecycle()

    logger.info("Starting MCP server on stdio transport")
    try:
        await mcp.run_stdio_async()
    finally:
        await shutdown_lifecycle()


if __name__ == "__main__":
    asyncio.run(main())
