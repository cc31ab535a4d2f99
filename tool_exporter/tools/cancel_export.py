# tool_exporter/tools/cancel_export.py
"""
cancel_export tool implementation.

Cancels a pending or in-progress export and rolls back its working directory.
"""

import logging

from fastmcp.exceptions import ToolError

from tool_exporter.background.runner import ExportJobRunner
from tool_exporter.errors import InvalidTransition, JobNotFound
from tool_exporter.models.responses import CancelExportResponse
from tool_exporter.validation.sanitize import sanitize_job_id

logger = logging.getLogger(__name__)


async def cancel_export(job_id: str, runner: ExportJobRunner) -> dict:
    """
    Cancel an export job.

    Args:
        job_id: Job identifier from start_export
        runner: Export job runner

    Returns:
        CancelExportResponse as dict

    Raises:
        ToolError: If job_id is invalid, unknown, or the job is already terminal
    """
    try:
        sanitized_id = sanitize_job_id(job_id)
    except ValueError as e:
        raise ToolError(f"Invalid job ID: {e}")

    try:
        job = await runner.cancel(sanitized_id)
    except JobNotFound as e:
        raise ToolError(f"{e.message}. Use list_exports to see available jobs.")
    except InvalidTransition as e:
        raise ToolError(e.message)

    return CancelExportResponse(
        job_id=job.job_id,
        steps_completed=job.steps_completed,
    ).model_dump()
