# tool_exporter/export/pipeline.py
"""
Export pipeline: runs a strategy's steps strictly in order.

A step failure stops the run immediately (no retries, no skipping). After
each successful step the progress callback is awaited so pollers observe
monotonic progress. Cancellation is checked between steps only.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tool_exporter.errors import ExportError
from tool_exporter.export.steps.base import StepContext, step_logger
from tool_exporter.export.strategies import ExportStrategy
from tool_exporter.models.jobs import ExportJob
from tool_exporter.snapshots.models import ToolSnapshot

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500

# progress_callback(steps_completed, label_of_next_step_or_None)
ProgressCallback = Callable[[int, str | None], Any]
CancelCheck = Callable[[], Awaitable[bool]]


@dataclass
class PipelineResult:
    """
    Result of executing an export pipeline.

    Attributes:
        success: Whether all steps completed
        steps_completed: Number of steps that fully succeeded
        failed_step: Name of the step that failed (if success=False)
        error: Summarized error message (if success=False and not cancelled)
        cancelled: True if a cancel checkpoint stopped the run
    """

    success: bool
    steps_completed: int
    failed_step: str | None = None
    error: str | None = None
    cancelled: bool = False


def summarize_error(
    step_name: str, exc: BaseException, workdir: Path, prefix: str | None = None
) -> str:
    """
    Build the stored error message for a failed step.

    Working directory paths are redacted and the message is truncated.
    prefix replaces the default "Step '<name>' failed" lead-in.
    """
    if isinstance(exc, ExportError):
        detail = exc.message
    else:
        detail = f"{type(exc).__name__}: {exc}"

    for path in {str(workdir.resolve()), str(workdir)}:
        detail = detail.replace(path, "<workdir>")

    if prefix is None:
        prefix = f"Step '{step_name}' failed"
    message = f"{prefix}: {detail}"
    if len(message) > MAX_ERROR_LENGTH:
        message = message[: MAX_ERROR_LENGTH - 3] + "..."
    return message


class ExportPipeline:
    """
    Ordered step executor for one strategy.

    Example:
        pipeline = ExportPipeline(strategies[ToolType.FORMS], step_timeout=300)
        result = await pipeline.execute(job, snapshot, workdir, progress_callback=cb)
    """

    def __init__(self, strategy: ExportStrategy, step_timeout: float | None = None) -> None:
        """
        Initialize export pipeline.

        Args:
            strategy: Strategy whose steps are executed
            step_timeout: Per-step limit in seconds (None = unlimited)
        """
        self._strategy = strategy
        self._step_timeout = step_timeout

    @property
    def strategy(self) -> ExportStrategy:
        return self._strategy

    async def execute(
        self,
        job: ExportJob,
        snapshot: ToolSnapshot,
        workdir: Path,
        progress_callback: ProgressCallback | None = None,
        cancel_check: CancelCheck | None = None,
    ) -> PipelineResult:
        """
        Execute every step against the working directory.

        Args:
            job: Job being executed
            snapshot: Tool snapshot (read once by the runner)
            workdir: The job's private working directory
            progress_callback: Awaited after each successful step
            cancel_check: Awaited before each step; True stops the run

        Returns:
            PipelineResult. Step exceptions are converted into a failed result;
            asyncio.CancelledError propagates.
        """
        context = StepContext(
            job_id=job.job_id,
            snapshot=snapshot,
            workdir=workdir,
            logger=step_logger(job.job_id, job.tool_id),
        )
        try:
            return await self._run_steps(job, context, workdir, progress_callback, cancel_check)
        finally:
            # Threads abandoned by a timed-out step must not write after rollback
            context.close()

    async def _run_steps(
        self,
        job: ExportJob,
        context: StepContext,
        workdir: Path,
        progress_callback: ProgressCallback | None,
        cancel_check: CancelCheck | None,
    ) -> PipelineResult:
        steps = self._strategy.steps
        completed = 0

        for index, step in enumerate(steps):
            if cancel_check is not None and await cancel_check():
                logger.info(f"[{job.job_id}] Cancelled before step '{step.name}'")
                return PipelineResult(success=False, steps_completed=completed, cancelled=True)

            context.logger = step_logger(job.job_id, job.tool_id, step.name)
            logger.info(f"[{job.job_id}] Step {index + 1}/{len(steps)}: {step.name}")

            try:
                await asyncio.wait_for(step.run(context), timeout=self._step_timeout)
            except asyncio.TimeoutError:
                error = f"Step '{step.name}' failed: timed out after {self._step_timeout:g}s"
                logger.error(f"[{job.job_id}] {error}")
                return PipelineResult(
                    success=False, steps_completed=completed, failed_step=step.name, error=error
                )
            except Exception as e:
                logger.error(
                    f"[{job.job_id}] Step '{step.name}' failed: {type(e).__name__}: {e}",
                    exc_info=True,
                )
                return PipelineResult(
                    success=False,
                    steps_completed=completed,
                    failed_step=step.name,
                    error=summarize_error(step.name, e, workdir),
                )

            completed += 1
            if progress_callback is not None:
                next_label = steps[index + 1].label if index + 1 < len(steps) else None
                result_or_coro = progress_callback(completed, next_label)
                if hasattr(result_or_coro, "__await__"):
                    await result_or_coro

        return PipelineResult(success=True, steps_completed=completed)
