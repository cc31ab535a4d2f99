# tool_exporter/server.py
"""
FastMCP server instance with tool registration.

CRITICAL: configure_logging() is called first to prevent stdout pollution.
All logging goes to stderr as JSON.
"""

# Configure logging FIRST before any other imports
from tool_exporter.logging_config import configure_logging

configure_logging()

import logging

from fastmcp import FastMCP

from tool_exporter.background.lifecycle import ServiceLifecycle
from tool_exporter.background.runner import ExportJobRunner
from tool_exporter.config.loader import load_config
from tool_exporter.config.schema import ToolExporterConfig
from tool_exporter.models.store import JobStore
from tool_exporter.tools.cancel_export import cancel_export as _cancel_export
from tool_exporter.tools.check_status import check_export_status as _check_export_status
from tool_exporter.tools.list_exports import list_exports as _list_exports
from tool_exporter.tools.preflight_export import preflight_export as _preflight_export
from tool_exporter.tools.start_export import start_export as _start_export

logger = logging.getLogger(__name__)

mcp = FastMCP("tool-exporter")

_config = load_config()
configure_logging(_config.logging.level, json_format=True)
logger.info(f"Loaded configuration: exports_dir={_config.export.exports_dir}")

# Lifecycle manager (initialized by __main__.py)
_lifecycle: ServiceLifecycle | None = None


def _require_lifecycle() -> ServiceLifecycle:
    if _lifecycle is None:
        raise RuntimeError("Server lifecycle not initialized. Call initialize_lifecycle() first.")
    return _lifecycle


async def get_store() -> JobStore:
    return _require_lifecycle().store


async def get_runner() -> ExportJobRunner:
    return _require_lifecycle().runner


async def initialize_lifecycle(config: ToolExporterConfig | None = None) -> ServiceLifecycle:
    """
    Initialize the service lifecycle (DB + crash recovery + pending jobs + signals).

    Must be called before any tool calls. Called by __main__.py on startup.
    """
    global _lifecycle

    actual_config = config or _config
    logger.info(f"Initializing lifecycle with db_path={actual_config.storage.db_path}")

    _lifecycle = ServiceLifecycle(actual_config)
    await _lifecycle.startup(register_signals=True)

    logger.info("Lifecycle initialized: SQLite + runner + signals ready")
    return _lifecycle


async def shutdown_lifecycle() -> None:
    global _lifecycle
    if _lifecycle is not None:
        await _lifecycle.shutdown()
        _lifecycle = None


@mcp.tool()
async def start_export(tool_id: str) -> dict:
    """Start exporting a tool (form, workflow, or theme) as a standalone deployable package. Returns a job_id to poll."""
    runner = await get_runner()
    return await _start_export(tool_id, runner=runner)


@mcp.tool()
async def check_export_status(job_id: str) -> dict:
    """Check the status of an export job. Returns status, step progress, and the package path or error."""
    store = await get_store()
    return await _check_export_status(job_id, store=store)


@mcp.tool()
async def cancel_export(job_id: str) -> dict:
    """Cancel a pending or running export job. Partial output is removed."""
    runner = await get_runner()
    return await _cancel_export(job_id, runner=runner)


@mcp.tool()
async def list_exports(tool_id: str | None = None, status: str | None = None, limit: int = 50) -> dict:
    """List export jobs, newest first. Optionally filter by tool_id or status."""
    store = await get_store()
    return await _list_exports(store=store, tool_id=tool_id, status=status, limit=limit)


@mcp.tool()
async def preflight_export(tool_id: str) -> dict:
    """Check whether a tool can be exported, without starting a job."""
    runner = await get_runner()
    return await _preflight_export(tool_id, runner=runner)


logger.info("MCP server initialized with 5 tools")
