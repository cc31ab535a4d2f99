# tool_exporter/export/steps/base.py
"""
Abstract base class for export steps.

Each step turns part of a tool snapshot into files inside the job's working
directory. Steps are stateless and shared by every job of a strategy; all
per-job state travels in the StepContext.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tool_exporter.errors import StepError
from tool_exporter.snapshots.models import ToolSnapshot
from tool_exporter.validation.sanitize import safe_join

logger = logging.getLogger(__name__)


def step_logger(job_id: str, tool_id: str, step: str | None = None) -> logging.LoggerAdapter:
    """Logger adapter that tags every record with the job, tool, and step."""
    return logging.LoggerAdapter(
        logging.getLogger("tool_exporter.export.steps"),
        {"job_id": job_id, "tool_id": tool_id, "step": step},
    )


def _write(context: "StepContext", path: Path, content: str) -> int:
    # Runs in a worker thread that may outlive a timed-out step
    context.ensure_open(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.write_text(content, encoding="utf-8")


@dataclass
class StepContext:
    """
    Per-job state handed to every step.

    Attributes:
        job_id: Export job identifier
        snapshot: Read-only tool snapshot (fetched once per job)
        workdir: The job's private working directory
        logger: Step-scoped logger (re-bound by the pipeline before each step)
        artifacts: Values published by earlier steps for later ones
        closed: Set once the run is over; later writes raise StepError
    """

    job_id: str
    snapshot: ToolSnapshot
    workdir: Path
    logger: logging.LoggerAdapter
    artifacts: dict[str, Any] = field(default_factory=dict)
    closed: bool = field(default=False, init=False)

    @property
    def tool_id(self) -> str:
        return self.snapshot.tool_id

    def path(self, relative: str) -> Path:
        """Resolve a path inside the working directory (rejects traversal)."""
        return safe_join(self.workdir, relative)

    def close(self) -> None:
        """Refuse all further writes into the working directory."""
        self.closed = True

    def ensure_open(self, target: Path | str) -> None:
        if self.closed:
            step = self.logger.extra.get("step") or "export"
            raise StepError(step, f"Refusing to write {target}: working directory is closed")

    async def write_text(self, relative: str, content: str) -> Path:
        target = self.path(relative)
        size = await asyncio.to_thread(_write, self, target, content)
        self.logger.debug(f"Wrote {relative} ({size} chars)")
        return target

    async def write_json(self, relative: str, data: Any) -> Path:
        return await self.write_text(relative, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


class ExportStep(ABC):
    """
    Abstract base class for export steps.

    Subclasses must implement:
        - name: machine name (used in error summaries and logs)
        - label: human-readable progress label
        - run(): produce files in context.workdir, raising on failure
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def label(self) -> str:
        pass

    @abstractmethod
    async def run(self, context: StepContext) -> None:
        """
        Execute the step.

        Args:
            context: Per-job step context

        Raises:
            StepError: On invalid snapshot data or unmet preconditions
            OSError: On filesystem failures
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
