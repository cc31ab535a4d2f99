# tool_exporter/models/store.py
"""
Job store protocol definition.

Defines the abstract interface that both InMemoryJobStore and SQLiteJobStore implement.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tool_exporter.models.jobs import ExportJob, JobStatus, ToolType


class JobStore(ABC):
    """
    Abstract base class for export job storage implementations.

    Implementations must serialize writes so that the status check and the
    update of a transition happen atomically with respect to other writers.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the store for use (schema creation for durable stores)."""
        pass

    @abstractmethod
    async def create(self, tool_id: str, tool_type: "ToolType", steps_total: int) -> "ExportJob":
        """
        Create a new pending job record.

        Args:
            tool_id: Tool being exported (not unique across jobs)
            tool_type: Export strategy tag
            steps_total: Number of steps in the strategy

        Returns:
            The created ExportJob with status=PENDING
        """
        pass

    @abstractmethod
    async def get(self, job_id: str) -> "ExportJob | None":
        """
        Get a job record by ID.

        Args:
            job_id: Job identifier

        Returns:
            ExportJob if found, None otherwise
        """
        pass

    @abstractmethod
    async def transition(
        self,
        job_id: str,
        new_status: "JobStatus",
        *,
        expected: "JobStatus | None" = None,
        **fields: Any,
    ) -> "ExportJob":
        """
        Move a job to a new status, enforcing the transition table.

        With expected set, the transition only applies if the job is still in
        that status when the write lock is held. Workers claim a pending job
        this way, so two dispatchers can never both run it.

        Args:
            job_id: Job identifier
            new_status: Target status
            expected: Status the caller observed (None = any legal source)
            **fields: current_step_name, worker_id, package fields or error_message

        Returns:
            The updated ExportJob

        Raises:
            JobNotFound: If job_id doesn't exist
            InvalidTransition: If the transition or field combination is illegal,
                or the job is no longer in the expected status
            ValueError: If an unknown field name is passed
        """
        pass

    @abstractmethod
    async def increment_step(self, job_id: str, step_name: str) -> "ExportJob":
        """
        Atomically bump steps_completed and set current_step_name.

        Raises:
            JobNotFound: If job_id doesn't exist
            InvalidTransition: If the job is not in_progress or already at steps_total
        """
        pass

    @abstractmethod
    async def record_download(self, job_id: str) -> "ExportJob":
        """
        Record one download of a completed package.

        Raises:
            JobNotFound: If job_id doesn't exist
            InvalidTransition: If the job is not completed
        """
        pass

    @abstractmethod
    async def list_jobs(
        self,
        tool_id: str | None = None,
        status: "JobStatus | None" = None,
        limit: int = 50,
    ) -> "list[ExportJob]":
        """
        List job records, newest first.

        Args:
            tool_id: Only jobs for this tool
            status: Only jobs in this status
            limit: Maximum number of records
        """
        pass

    @abstractmethod
    async def recover_interrupted(
        self, is_orphaned: "Callable[[ExportJob], bool] | None" = None
    ) -> "list[ExportJob]":
        """
        Mark jobs left in_progress by a previous process as failed.

        Args:
            is_orphaned: Only jobs for which this returns True are recovered
                (None = every in_progress job). Used to skip jobs whose
                worker process is still alive.

        Returns:
            The recovered jobs (their working directories need rollback)
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the store."""
        pass
