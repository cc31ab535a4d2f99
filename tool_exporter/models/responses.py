# tool_exporter/models/responses.py
"""
Pydantic response models for HTTP, MCP, and CLI outputs.

All surfaces return structured responses using these models for consistency.
"""

from pydantic import BaseModel, Field

from tool_exporter.models.jobs import ExportJob


def _iso(value) -> str | None:
    return value.isoformat() if value else None


class StartExportResponse(BaseModel):
    """Response from start_export / POST /tools/{tool_id}/export."""

    job_id: str = Field(description="Unique job identifier for polling")
    tool_id: str = Field(description="Tool being exported")
    tool_type: str = Field(description="Export strategy (forms/workflows/themes)")
    status: str = Field(description="Job status (always 'pending' for new jobs)")
    steps_total: int = Field(description="Number of export steps")
    warnings: list[str] = Field(
        default_factory=list, description="Non-blocking preflight warnings"
    )
    next_steps: str = Field(
        default="Poll check_export_status with job_id to monitor progress",
        description="Instructions for monitoring job progress",
    )


class ExportStatusResponse(BaseModel):
    """Response from check_export_status / GET /exports/{job_id}."""

    job_id: str = Field(description="Job identifier")
    tool_id: str = Field(description="Tool being exported")
    tool_type: str = Field(description="Export strategy")
    status: str = Field(
        description="Current status (pending/in_progress/completed/failed/cancelled)"
    )
    steps_completed: int = Field(ge=0, description="Steps that fully succeeded")
    steps_total: int = Field(ge=1, description="Number of export steps")
    progress: int = Field(ge=0, le=100, description="Completion percentage")
    current_step_name: str | None = Field(
        default=None, description="Label of the step in progress"
    )
    package_path: str | None = Field(
        default=None, description="Archive location (completed jobs only)"
    )
    package_size_bytes: int | None = Field(default=None, description="Archive size")
    package_checksum: str | None = Field(
        default=None, description="SHA-256 of the archive"
    )
    package_expires_at: str | None = Field(
        default=None, description="When the archive stops being downloadable"
    )
    error_message: str | None = Field(
        default=None, description="Failure cause (failed jobs only)"
    )
    download_count: int = Field(default=0, description="Number of downloads served")
    created_at: str = Field(description="Creation timestamp (ISO format)")
    updated_at: str = Field(description="Last status change (ISO format)")
    started_at: str | None = Field(default=None)
    completed_at: str | None = Field(default=None)
    failed_at: str | None = Field(default=None)
    cancelled_at: str | None = Field(default=None)

    @classmethod
    def from_job(cls, job: ExportJob) -> "ExportStatusResponse":
        return cls(
            job_id=job.job_id,
            tool_id=job.tool_id,
            tool_type=job.tool_type.value,
            status=job.status.value,
            steps_completed=job.steps_completed,
            steps_total=job.steps_total,
            progress=job.progress_percentage,
            current_step_name=job.current_step_name,
            package_path=job.package_path,
            package_size_bytes=job.package_size_bytes,
            package_checksum=job.package_checksum,
            package_expires_at=_iso(job.package_expires_at),
            error_message=job.error_message,
            download_count=job.download_count,
            created_at=job.created_at.isoformat(),
            updated_at=job.updated_at.isoformat(),
            started_at=_iso(job.started_at),
            completed_at=_iso(job.completed_at),
            failed_at=_iso(job.failed_at),
            cancelled_at=_iso(job.cancelled_at),
        )


class ExportSummary(BaseModel):
    """Summary information for a single export (used in list_exports)."""

    job_id: str = Field(description="Job identifier")
    tool_id: str = Field(description="Tool that was exported")
    tool_type: str = Field(description="Export strategy")
    status: str = Field(description="Current status")
    progress: int = Field(ge=0, le=100, description="Completion percentage")
    created_at: str = Field(description="Creation timestamp (ISO format)")
    package_path: str | None = Field(default=None)
    error_message: str | None = Field(default=None)


class ListExportsResponse(BaseModel):
    """Response from list_exports / GET /exports."""

    exports: list[ExportSummary] = Field(
        default_factory=list, description="Export history, newest first"
    )
    total: int = Field(description="Number of exports returned")


class CancelExportResponse(BaseModel):
    """Response from cancel_export / POST /exports/{job_id}/cancel."""

    job_id: str = Field(description="Job identifier")
    status: str = Field(default="cancelled", description="Status after cancellation")
    steps_completed: int = Field(description="Steps finished before cancellation")
    message: str = Field(
        default="Export cancelled. Working directory removed.",
        description="Human-readable confirmation message",
    )


class PreflightIssueResponse(BaseModel):
    code: str
    message: str


class PreflightResponse(BaseModel):
    """Response from preflight_export / GET /tools/{tool_id}/export/preflight."""

    tool_id: str = Field(description="Tool that was checked")
    tool_type: str | None = Field(default=None, description="Detected tool type")
    exportable: bool = Field(description="True when no blocking errors were found")
    errors: list[PreflightIssueResponse] = Field(default_factory=list)
    warnings: list[PreflightIssueResponse] = Field(default_factory=list)
    reasons: list[str] = Field(
        default_factory=list, description="Human-readable blocking reasons"
    )
