# tool_exporter/tools/check_status.py
"""
check_export_status tool implementation.

Retrieves job status and progress information.
"""

import logging

from fastmcp.exceptions import ToolError

from tool_exporter.models.responses import ExportStatusResponse
from tool_exporter.models.store import JobStore
from tool_exporter.validation.sanitize import sanitize_job_id

logger = logging.getLogger(__name__)


async def check_export_status(job_id: str, store: JobStore) -> dict:
    """
    Check the status of an export job.

    Args:
        job_id: Job identifier from start_export
        store: Job storage instance

    Returns:
        ExportStatusResponse as dict

    Raises:
        ToolError: If job_id is invalid or not found
    """
    try:
        sanitized_id = sanitize_job_id(job_id)
    except ValueError as e:
        raise ToolError(f"Invalid job ID: {e}")

    job = await store.get(sanitized_id)
    if job is None:
        raise ToolError(
            f"Export job '{sanitized_id}' not found. Use list_exports to see available jobs."
        )

    return ExportStatusResponse.from_job(job).model_dump()
