# tool_exporter/tools/start_export.py
"""
start_export tool implementation.

Validates the tool, creates a pending job, and dispatches it.
"""

import logging

from fastmcp.exceptions import ToolError

from tool_exporter.background.runner import ExportJobRunner
from tool_exporter.errors import PreflightFailed
from tool_exporter.models.responses import StartExportResponse
from tool_exporter.validation.sanitize import sanitize_tool_id

logger = logging.getLogger(__name__)


async def start_export(tool_id: str, runner: ExportJobRunner) -> dict:
    """
    Start an export job for a tool.

    Returns immediately with the pending job; the export runs in the background.

    Args:
        tool_id: Tool to export
        runner: Export job runner

    Returns:
        StartExportResponse as dict

    Raises:
        ToolError: If tool_id is invalid or the tool fails preflight
    """
    try:
        cleaned_id = sanitize_tool_id(tool_id)
    except ValueError as e:
        raise ToolError(f"Invalid tool ID: {e}")

    try:
        job, result = await runner.submit(cleaned_id)
    except PreflightFailed as e:
        raise ToolError(e.message)
    except RuntimeError as e:
        raise ToolError(str(e))

    logger.info(f"Started export {job.job_id} for tool {cleaned_id}")

    response = StartExportResponse(
        job_id=job.job_id,
        tool_id=job.tool_id,
        tool_type=job.tool_type.value,
        status=job.status.value,
        steps_total=job.steps_total,
        warnings=[issue.message for issue in result.warnings],
    )
    return response.model_dump()
