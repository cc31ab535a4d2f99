# tool_exporter/background/runner.py
"""
Export job runner: asynchronous dispatch, cancellation, and rollback.

Each job runs as its own asyncio task with a private working directory.
A semaphore bounds how many jobs execute at once; queued jobs stay pending.

A worker claims a job with a compare-and-set (pending -> in_progress) that
also records its worker id. Only the claiming worker ever touches the job's
working directory, so several runners (in one process or several processes
sharing a database) can dispatch the same pending jobs safely.
"""

import asyncio
import logging
import os
import socket
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from uuid import uuid4

import psutil

from tool_exporter.config.schema import ToolExporterConfig
from tool_exporter.errors import (
    InvalidTransition,
    JobNotFound,
    PreflightFailed,
    SnapshotUnavailable,
)
from tool_exporter.export.packager import FilesystemPackager
from tool_exporter.export.pipeline import ExportPipeline, summarize_error
from tool_exporter.export.strategies import ExportStrategy
from tool_exporter.models.jobs import ExportJob, JobStatus, ToolType, utcnow
from tool_exporter.models.store import JobStore
from tool_exporter.snapshots.models import check_snapshot
from tool_exporter.snapshots.source import ToolSnapshotSource
from tool_exporter.validation.preflight import PreflightValidator, ValidationResult

logger = logging.getLogger(__name__)

PACKAGING_LABEL = "Packaging archive"
SHUTDOWN_ERROR_MESSAGE = "Export interrupted by service shutdown"


def new_worker_id() -> str:
    """Worker id of the form "<host>:<pid>:<token>" (one token per runner)."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"


def worker_is_alive(worker_id: str | None) -> bool:
    """
    Best-effort liveness check for the process that claimed a job.

    Only this host's process table can be inspected, so workers on other
    hosts are assumed alive. Malformed or missing ids count as dead.
    """
    if not worker_id:
        return False
    parts = worker_id.rsplit(":", 2)
    if len(parts) != 3:
        return False
    host, pid_text, _ = parts
    if host != socket.gethostname():
        return True
    try:
        pid = int(pid_text)
    except ValueError:
        return False
    return pid == os.getpid() or psutil.pid_exists(pid)


@dataclass
class _JobHandle:
    """In-process bookkeeping for one dispatched job."""

    job_id: str
    task: asyncio.Task | None = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    started: bool = False  # holds a concurrency slot


class ExportJobRunner:
    """
    Dispatches export jobs and drives them to a terminal status.

    All collaborators are injected; nothing here is global. The strategy
    registry is shared read-only across jobs.
    """

    def __init__(
        self,
        store: JobStore,
        snapshots: ToolSnapshotSource,
        validator: PreflightValidator,
        strategies: Mapping[ToolType, ExportStrategy],
        packager: FilesystemPackager,
        config: ToolExporterConfig | None = None,
    ) -> None:
        config = config or ToolExporterConfig()
        self._store = store
        self._snapshots = snapshots
        self._validator = validator
        self._strategies = strategies
        self._packager = packager
        self._step_timeout = config.runner.step_timeout_seconds
        self._retention = timedelta(days=config.export.package_retention_days)
        self._semaphore = asyncio.Semaphore(config.runner.max_concurrent_jobs)
        self._handles: dict[str, _JobHandle] = {}
        self._shutting_down = False
        self._worker_id = new_worker_id()
        logger.info(
            f"Created ExportJobRunner {self._worker_id} "
            f"(max_concurrent_jobs={config.runner.max_concurrent_jobs}, "
            f"step_timeout={self._step_timeout})"
        )

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def packager(self) -> FilesystemPackager:
        return self._packager

    @property
    def active_job_ids(self) -> list[str]:
        return list(self._handles)

    async def preflight(self, tool_id: str) -> ValidationResult:
        return await self._validator.validate(tool_id)

    async def submit(
        self, tool_id: str, dispatch: bool = True
    ) -> tuple[ExportJob, ValidationResult]:
        """
        Validate a tool, create its job record, and dispatch it.

        With dispatch=False the job is only queued; a later resume_pending()
        (for example in a separate `run` process) picks it up.

        Returns:
            (pending job, preflight result carrying any warnings)

        Raises:
            PreflightFailed: If preflight reports errors (no job is created)
            RuntimeError: If the runner is shutting down
        """
        if self._shutting_down:
            raise RuntimeError("Export runner is shutting down")

        result = await self._validator.validate(tool_id)
        if not result.ok:
            raise PreflightFailed(tool_id, result)

        strategy = self._strategies[result.tool_type]
        job = await self._store.create(tool_id, strategy.tool_type, strategy.steps_total)
        if dispatch:
            self._dispatch(job)
        return job, result

    async def start(self, tool_id: str) -> ExportJob:
        """Non-blocking export request. Returns the pending job immediately."""
        job, _ = await self.submit(tool_id)
        return job

    async def get(self, job_id: str) -> ExportJob | None:
        return await self._store.get(job_id)

    async def wait(self, job_id: str) -> ExportJob | None:
        """Wait for this process's worker of a job to finish, then return the record."""
        handle = self._handles.get(job_id)
        if handle is not None and handle.task is not None:
            await asyncio.wait({handle.task})
        return await self._store.get(job_id)

    async def cancel(self, job_id: str) -> ExportJob:
        """
        Cancel a pending or in-progress job.

        A queued job is cancelled outright. A running job stops at its next
        checkpoint; the step in flight always completes first. When the job
        runs in another runner (or process) the cancellation is recorded in
        the store and that worker rolls back at its next checkpoint.

        Raises:
            JobNotFound: If the job does not exist
            InvalidTransition: If the job is (or becomes) terminal first
        """
        job = await self._store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        if job.is_terminal:
            raise InvalidTransition(
                job_id, job.status.value, JobStatus.CANCELLED.value, "job is terminal"
            )

        handle = self._handles.get(job_id)
        if handle is None or handle.task is None or handle.task.done():
            return await self._record_cancel(job)

        logger.info(f"Cancellation requested for job {job_id}")
        handle.cancel_event.set()
        if not handle.started:
            handle.task.cancel()
        await asyncio.wait({handle.task})

        job = await self._store.get(job_id)
        if job is not None and not job.is_terminal:
            # Our worker never claimed the job
            job = await self._record_cancel(job)

        if job is None or job.status != JobStatus.CANCELLED:
            current = job.status.value if job else "missing"
            raise InvalidTransition(
                job_id,
                current,
                JobStatus.CANCELLED.value,
                "job finished before cancellation took effect",
            )
        return job

    async def resume_pending(self) -> int:
        """Dispatch pending jobs left over from a previous run (oldest first)."""
        pending = await self._store.list_jobs(status=JobStatus.PENDING, limit=10_000)
        resumed = 0
        for job in reversed(pending):
            if job.job_id not in self._handles:
                self._dispatch(job)
                resumed += 1
        if resumed:
            logger.info(f"Resumed {resumed} pending export job(s)")
        return resumed

    async def shutdown(self) -> None:
        """
        Stop all workers.

        Running jobs are rolled back and marked failed. Queued jobs stay
        pending and are resumed on the next startup.
        """
        self._shutting_down = True
        tasks = [h.task for h in self._handles.values() if h.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Stopped {len(tasks)} export worker(s)")

    def _dispatch(self, job: ExportJob) -> None:
        handle = _JobHandle(job_id=job.job_id)
        handle.task = asyncio.create_task(self._run_job(job, handle), name=f"export-{job.job_id}")
        handle.task.add_done_callback(lambda t, job_id=job.job_id: self._on_task_done(job_id, t))
        self._handles[job.job_id] = handle
        logger.info(f"Dispatched job {job.job_id} ({job.tool_type.value}, tool {job.tool_id})")

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self._handles.pop(job_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Export worker for job {job_id} crashed: {exc!r}", exc_info=exc)

    async def _cancel_requested(self, handle: _JobHandle) -> bool:
        if handle.cancel_event.is_set():
            return True
        job = await self._store.get(handle.job_id)
        return job is not None and job.status == JobStatus.CANCELLED

    async def _owns(self, job_id: str) -> bool:
        """True when this runner's claim is on the stored record."""
        job = await self._store.get(job_id)
        return job is not None and job.worker_id == self._worker_id

    async def _record_cancel(self, job: ExportJob) -> ExportJob:
        """
        Mark a job cancelled without a worker of this runner.

        Pending jobs have no output yet. An in-progress job whose worker is
        alive keeps its working directory; that worker rolls back when it
        sees the cancelled status at its next checkpoint.
        """
        job_id = job.job_id
        while True:
            try:
                cancelled = await self._store.transition(
                    job_id, JobStatus.CANCELLED, expected=job.status
                )
                break
            except InvalidTransition:
                # Claimed or finished since we read it
                job = await self._store.get(job_id)
                if job is None:
                    raise JobNotFound(job_id) from None
                if job.is_terminal:
                    raise InvalidTransition(
                        job_id, job.status.value, JobStatus.CANCELLED.value, "job is terminal"
                    ) from None

        if job.status == JobStatus.PENDING or not worker_is_alive(job.worker_id):
            await self._packager.rollback(self._packager.workdir_for(job_id))
        else:
            logger.info(f"Job {job_id} marked cancelled; worker {job.worker_id} rolls back")
        return cancelled

    async def _run_job(self, job: ExportJob, handle: _JobHandle) -> None:
        job_id = job.job_id
        try:
            async with self._semaphore:
                handle.started = True
                await self._execute(job, handle)
        except asyncio.CancelledError:
            if await self._owns(job_id):
                if handle.cancel_event.is_set():
                    await self._finish_cancelled(job_id)
                else:
                    await self._finish_failed(job_id, SHUTDOWN_ERROR_MESSAGE)
            raise
        except Exception as e:
            logger.error(f"Job {job_id} failed unexpectedly: {type(e).__name__}: {e}", exc_info=True)
            if not await self._owns(job_id):
                return
            workdir = self._packager.workdir_for(job_id)
            await self._finish_failed(
                job_id, summarize_error("export", e, workdir, prefix="Export failed")
            )

    async def _execute(self, job: ExportJob, handle: _JobHandle) -> None:
        job_id = job.job_id

        if handle.cancel_event.is_set():
            # cancel() records the status once this task exits
            return

        strategy = self._strategies[job.tool_type]
        try:
            job = await self._store.transition(
                job_id,
                JobStatus.IN_PROGRESS,
                expected=JobStatus.PENDING,
                current_step_name=strategy.steps[0].label,
                worker_id=self._worker_id,
            )
        except InvalidTransition as e:
            logger.info(f"Job {job_id} not claimed by {self._worker_id}: {e.message}")
            return

        snapshot = await self._snapshots.get_snapshot(job.tool_id)
        if snapshot is None:
            raise SnapshotUnavailable(job.tool_id)
        check_snapshot(snapshot)

        workdir = await self._packager.create_workdir(job_id)

        async def _progress(steps_completed: int, next_label: str | None) -> None:
            try:
                await self._store.increment_step(job_id, next_label or PACKAGING_LABEL)
            except InvalidTransition:
                # Cancelled elsewhere; the next checkpoint stops the run
                if not await self._cancel_requested(handle):
                    raise

        pipeline = ExportPipeline(strategy, step_timeout=self._step_timeout)
        result = await pipeline.execute(
            job,
            snapshot,
            workdir,
            progress_callback=_progress,
            cancel_check=lambda: self._cancel_requested(handle),
        )

        if result.cancelled:
            await self._finish_cancelled(job_id)
            return
        if not result.success:
            await self._finish_failed(job_id, result.error or "Export failed")
            return
        if await self._cancel_requested(handle):
            await self._finish_cancelled(job_id)
            return

        info = await self._packager.finalize(
            workdir, archive_root=f"{job.tool_id}-{job.tool_type.value}"
        )
        await self._store.transition(
            job_id,
            JobStatus.COMPLETED,
            current_step_name=None,
            package_path=str(info.path),
            package_size_bytes=info.size_bytes,
            package_checksum=info.checksum,
            package_expires_at=utcnow() + self._retention,
        )
        await self._packager.cleanup(workdir)
        logger.info(f"Job {job_id} completed: {info.path}")

    async def _finish_cancelled(self, job_id: str) -> None:
        await self._packager.rollback(self._packager.workdir_for(job_id))
        try:
            await self._store.transition(job_id, JobStatus.CANCELLED)
        except InvalidTransition as e:
            current = await self._store.get(job_id)
            if current is None or current.status != JobStatus.CANCELLED:
                logger.warning(f"Job {job_id} could not be marked cancelled: {e}")
        logger.info(f"Job {job_id} cancelled")

    async def _finish_failed(self, job_id: str, message: str) -> None:
        await self._packager.rollback(self._packager.workdir_for(job_id))
        current = await self._store.get(job_id)
        if current is None or current.is_terminal:
            status = current.status.value if current else "missing"
            logger.info(f"Job {job_id} already {status}; failure not recorded: {message}")
            return
        try:
            await self._store.transition(job_id, JobStatus.FAILED, error_message=message)
        except InvalidTransition as e:
            logger.warning(f"Job {job_id} could not be marked failed: {e}")
        logger.info(f"Job {job_id} failed: {message}")
