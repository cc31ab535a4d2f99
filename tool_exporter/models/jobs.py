# tool_exporter/models/jobs.py
"""
Export job models, status state machine, and in-memory storage.

Internal models (NOT exposed directly via HTTP/MCP) for tracking export jobs.
Both job stores share the transition rules defined here.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from tool_exporter.errors import InvalidTransition, JobNotFound
from tool_exporter.models.store import JobStore

logger = logging.getLogger(__name__)


class ToolType(Enum):
    """Closed set of exportable tool kinds. Each maps to one export strategy."""

    FORMS = "forms"
    WORKFLOWS = "workflows"
    THEMES = "themes"


class JobStatus(Enum):
    """Export job lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})

VALID_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED}),
    JobStatus.IN_PROGRESS: frozenset(
        {
            JobStatus.IN_PROGRESS,
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.CANCELLED,
        }
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

PACKAGE_FIELDS = frozenset(
    {"package_path", "package_size_bytes", "package_checksum", "package_expires_at"}
)

# Fields a caller may pass to transition(); status timestamps are stamped by the store
TRANSITION_FIELDS = PACKAGE_FIELDS | {"current_step_name", "error_message", "worker_id"}

# Only fields that may change after a job is terminal
BOOKKEEPING_FIELDS = frozenset({"download_count", "last_downloaded_at"})

RECOVERY_ERROR_MESSAGE = "Service restarted during export"


@dataclass
class ExportJob:
    """
    Internal export job record (NOT Pydantic - converted to responses at the edges).

    One record per export attempt. Terminal records are immutable except for
    download bookkeeping.
    """

    job_id: str
    tool_id: str
    tool_type: ToolType
    status: JobStatus
    steps_total: int
    created_at: datetime
    updated_at: datetime
    steps_completed: int = 0
    current_step_name: str | None = None
    package_path: str | None = None
    package_size_bytes: int | None = None
    package_checksum: str | None = None  # SHA-256 hex digest of the archive
    package_expires_at: datetime | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    cancelled_at: datetime | None = None
    download_count: int = 0
    last_downloaded_at: datetime | None = None
    worker_id: str | None = None  # "<host>:<pid>:<token>" of the runner that claimed the job

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def progress_percentage(self) -> int:
        if self.steps_total <= 0:
            return 0
        return (100 * self.steps_completed) // self.steps_total

    def is_expired(self, now: datetime | None = None) -> bool:
        """True when a completed package is past its retention window."""
        if self.package_expires_at is None:
            return False
        return (now or utcnow()) >= self.package_expires_at


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_job_id() -> str:
    """
    Generate unique job ID.

    Returns:
        32-character hex string from UUID4
    """
    return uuid4().hex


def check_transition(job: ExportJob, new_status: JobStatus) -> None:
    """
    Validate a status change against the state machine.

    Raises:
        InvalidTransition: If the change is not in VALID_TRANSITIONS
    """
    if new_status not in VALID_TRANSITIONS[job.status]:
        reason = "job is terminal" if job.is_terminal else None
        raise InvalidTransition(job.job_id, job.status.value, new_status.value, reason)


def build_transition(
    job: ExportJob,
    new_status: JobStatus,
    fields: dict[str, Any],
    now: datetime,
    expected: JobStatus | None = None,
) -> dict[str, Any]:
    """
    Validate a transition request and compute the resulting field updates.

    Shared by every JobStore implementation so the rules cannot drift apart.

    Args:
        job: Current job record (read inside the store's write critical section)
        new_status: Requested status
        fields: Extra fields supplied by the caller
        now: Timestamp to stamp on the record
        expected: Status the caller last observed; any other current status
            rejects the transition (compare-and-set)

    Returns:
        Mapping of field name -> new value, including status and timestamps

    Raises:
        ValueError: If fields contains names that transition() does not accept
        InvalidTransition: If the status change or field combination is illegal
    """
    unknown = set(fields) - TRANSITION_FIELDS
    if unknown:
        raise ValueError(f"Invalid field names for transition: {sorted(unknown)}")

    if expected is not None and job.status != expected:
        raise InvalidTransition(
            job.job_id,
            job.status.value,
            new_status.value,
            f"job is no longer {expected.value}",
        )

    check_transition(job, new_status)

    def _reject(reason: str) -> None:
        raise InvalidTransition(job.job_id, job.status.value, new_status.value, reason)

    supplied_package = {k for k in PACKAGE_FIELDS if fields.get(k) is not None}
    error_message = fields.get("error_message")

    if new_status == JobStatus.COMPLETED:
        if not fields.get("package_path"):
            _reject("package_path is required")
        if error_message is not None:
            _reject("completed jobs cannot carry an error_message")
        if job.steps_completed != job.steps_total:
            _reject(f"only {job.steps_completed}/{job.steps_total} steps completed")
    elif new_status == JobStatus.FAILED:
        if not error_message or not str(error_message).strip():
            _reject("error_message is required")
        if supplied_package:
            _reject("failed jobs cannot carry package fields")
    else:
        if error_message is not None:
            _reject(f"{new_status.value} jobs cannot carry an error_message")
        if supplied_package:
            _reject(f"{new_status.value} jobs cannot carry package fields")

    updates: dict[str, Any] = dict(fields)
    updates["status"] = new_status
    updates["updated_at"] = now

    if new_status == JobStatus.IN_PROGRESS and job.started_at is None:
        updates["started_at"] = now
    elif new_status == JobStatus.COMPLETED:
        updates["completed_at"] = now
    elif new_status == JobStatus.FAILED:
        updates["failed_at"] = now
    elif new_status == JobStatus.CANCELLED:
        updates["cancelled_at"] = now

    return updates


def check_increment(job: ExportJob) -> None:
    """
    Validate a step increment.

    Raises:
        InvalidTransition: If the job is not running or all steps are done
    """
    if job.status != JobStatus.IN_PROGRESS:
        raise InvalidTransition(
            job.job_id,
            job.status.value,
            JobStatus.IN_PROGRESS.value,
            "steps can only be recorded while in_progress",
        )
    if job.steps_completed >= job.steps_total:
        raise InvalidTransition(
            job.job_id,
            job.status.value,
            JobStatus.IN_PROGRESS.value,
            f"all {job.steps_total} steps already completed",
        )


class InMemoryJobStore(JobStore):
    """
    Simple in-memory job storage.

    Writes are serialized by a single asyncio.Lock. Reads return copies so
    callers never hold a reference into the store.
    """

    def __init__(self) -> None:
        """Initialize empty job store."""
        self._jobs: dict[str, ExportJob] = {}
        self._lock = asyncio.Lock()
        logger.info("Initialized InMemoryJobStore")

    async def initialize(self) -> None:
        return None

    async def create(self, tool_id: str, tool_type: ToolType, steps_total: int) -> ExportJob:
        if steps_total < 1:
            raise ValueError("steps_total must be at least 1")

        now = utcnow()
        job = ExportJob(
            job_id=generate_job_id(),
            tool_id=tool_id,
            tool_type=tool_type,
            status=JobStatus.PENDING,
            steps_total=steps_total,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Job {job.job_id} already exists")
            self._jobs[job.job_id] = job

        logger.info(f"Created job {job.job_id} for tool {tool_id} ({tool_type.value})")
        return dataclasses.replace(job)

    async def get(self, job_id: str) -> ExportJob | None:
        job = self._jobs.get(job_id)
        return dataclasses.replace(job) if job else None

    async def transition(
        self,
        job_id: str,
        new_status: JobStatus,
        *,
        expected: JobStatus | None = None,
        **fields: Any,
    ) -> ExportJob:
        async with self._lock:
            job = self._require(job_id)
            updates = build_transition(job, new_status, fields, utcnow(), expected=expected)
            updated = dataclasses.replace(job, **updates)
            self._jobs[job_id] = updated

        if updated.status != job.status:
            logger.info(f"Job {job_id}: {job.status.value} -> {updated.status.value}")
        return dataclasses.replace(updated)

    async def increment_step(self, job_id: str, step_name: str) -> ExportJob:
        async with self._lock:
            job = self._require(job_id)
            check_increment(job)
            updated = dataclasses.replace(
                job,
                steps_completed=job.steps_completed + 1,
                current_step_name=step_name,
                updated_at=utcnow(),
            )
            self._jobs[job_id] = updated
        return dataclasses.replace(updated)

    async def record_download(self, job_id: str) -> ExportJob:
        async with self._lock:
            job = self._require(job_id)
            if job.status != JobStatus.COMPLETED:
                raise InvalidTransition(
                    job_id, job.status.value, job.status.value, "only completed jobs can be downloaded"
                )
            updated = dataclasses.replace(
                job,
                download_count=job.download_count + 1,
                last_downloaded_at=utcnow(),
            )
            self._jobs[job_id] = updated
        return dataclasses.replace(updated)

    async def list_jobs(
        self,
        tool_id: str | None = None,
        status: JobStatus | None = None,
        limit: int = 50,
    ) -> list[ExportJob]:
        # Insertion order breaks created_at ties, like rowid in SQLite
        ordered = [
            (index, j)
            for index, j in enumerate(self._jobs.values())
            if (tool_id is None or j.tool_id == tool_id)
            and (status is None or j.status == status)
        ]
        ordered.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [dataclasses.replace(j) for _, j in ordered[:limit]]

    async def recover_interrupted(
        self, is_orphaned: Callable[[ExportJob], bool] | None = None
    ) -> list[ExportJob]:
        recovered = []
        async with self._lock:
            now = utcnow()
            for job_id, job in list(self._jobs.items()):
                if job.status != JobStatus.IN_PROGRESS:
                    continue
                if is_orphaned is not None and not is_orphaned(job):
                    continue
                updates = build_transition(
                    job,
                    JobStatus.FAILED,
                    {"error_message": RECOVERY_ERROR_MESSAGE},
                    now,
                )
                self._jobs[job_id] = dataclasses.replace(job, **updates)
                recovered.append(dataclasses.replace(self._jobs[job_id]))

        if recovered:
            logger.warning(f"Crash recovery: marked {len(recovered)} in-progress job(s) as failed")
        return recovered

    async def close(self) -> None:
        return None

    def _require(self, job_id: str) -> ExportJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

