# tool_exporter/models/__init__.py
"""
Data models for tool-exporter.

Provides internal job tracking, the job store interface, and Pydantic
response models.
"""

from tool_exporter.models.jobs import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ExportJob,
    InMemoryJobStore,
    JobStatus,
    ToolType,
    generate_job_id,
)
from tool_exporter.models.responses import (
    CancelExportResponse,
    ExportStatusResponse,
    ExportSummary,
    ListExportsResponse,
    PreflightResponse,
    StartExportResponse,
)
from tool_exporter.models.store import JobStore

__all__ = [
    # Response models
    "StartExportResponse",
    "ExportStatusResponse",
    "ExportSummary",
    "ListExportsResponse",
    "CancelExportResponse",
    "PreflightResponse",
    # Job tracking
    "ToolType",
    "JobStatus",
    "ExportJob",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "JobStore",
    "InMemoryJobStore",
    "generate_job_id",
]
