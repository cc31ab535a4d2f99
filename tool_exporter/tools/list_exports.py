# tool_exporter/tools/list_exports.py
"""
list_exports tool implementation.

Lists export history, newest first.
"""

import logging

from fastmcp.exceptions import ToolError

from tool_exporter.models.jobs import ExportJob, JobStatus
from tool_exporter.models.responses import ExportSummary, ListExportsResponse
from tool_exporter.models.store import JobStore
from tool_exporter.validation.sanitize import sanitize_tool_id

logger = logging.getLogger(__name__)


def summarize_job(job: ExportJob) -> ExportSummary:
    return ExportSummary(
        job_id=job.job_id,
        tool_id=job.tool_id,
        tool_type=job.tool_type.value,
        status=job.status.value,
        progress=job.progress_percentage,
        created_at=job.created_at.isoformat(),
        package_path=job.package_path,
        error_message=job.error_message,
    )


async def list_exports(
    store: JobStore,
    tool_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
) -> dict:
    """
    List export jobs.

    Args:
        store: Job storage instance
        tool_id: Only jobs for this tool
        status: Only jobs in this status
        limit: Maximum number of jobs (1-500)

    Returns:
        ListExportsResponse as dict

    Raises:
        ToolError: If a filter value is invalid
    """
    if tool_id is not None:
        try:
            tool_id = sanitize_tool_id(tool_id)
        except ValueError as e:
            raise ToolError(f"Invalid tool ID: {e}")

    status_filter = None
    if status is not None:
        try:
            status_filter = JobStatus(status)
        except ValueError:
            valid = ", ".join(s.value for s in JobStatus)
            raise ToolError(f"Invalid status '{status}'. Valid values: {valid}")

    if not 1 <= limit <= 500:
        raise ToolError("limit must be between 1 and 500")

    jobs = await store.list_jobs(tool_id=tool_id, status=status_filter, limit=limit)
    summaries = [summarize_job(job) for job in jobs]

    logger.info(f"Listed {len(summaries)} export jobs")
    return ListExportsResponse(exports=summaries, total=len(summaries)).model_dump()
