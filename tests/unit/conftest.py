# tests/unit/conftest.py
"""Shared snapshot factories, test steps, and runner wiring."""

import asyncio
import dataclasses
from pathlib import Path
from types import MappingProxyType

import pytest

from tool_exporter.background.runner import ExportJobRunner
from tool_exporter.config.schema import (
    ExportConfig,
    PreflightConfig,
    RunnerConfig,
    SnapshotConfig,
    StorageConfig,
    ToolExporterConfig,
)
from tool_exporter.errors import StepError
from tool_exporter.export.packager import FilesystemPackager
from tool_exporter.export.steps.base import ExportStep, StepContext
from tool_exporter.export.strategies import ExportStrategy, build_strategy_registry
from tool_exporter.export.templates import TemplateRenderer
from tool_exporter.models.jobs import TERMINAL_STATES, InMemoryJobStore, ToolType
from tool_exporter.snapshots.models import ToolSnapshot
from tool_exporter.snapshots.source import InMemorySnapshotSource
from tool_exporter.validation.preflight import PreflightValidator


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def make_form(tmp_path: Path, tool_id: str = "contact-form", **overrides) -> ToolSnapshot:
    asset = tmp_path / "asset-src" / "logo.png"
    asset.parent.mkdir(parents=True, exist_ok=True)
    asset.write_bytes(b"\x89PNG fake image")
    snapshot = ToolSnapshot(
        tool_id=tool_id,
        tool_type="forms",
        name="Contact form",
        status="published",
        schema={"fields": [{"name": "email", "type": "email", "required": True}]},
        theme={"colors": {"primary": "#3366ff"}},
        submissions=[{"email": "a@example.com"}],
        assets={"logo.png": asset},
    )
    return dataclasses.replace(snapshot, **overrides)


def make_workflow(tool_id: str = "onboarding", **overrides) -> ToolSnapshot:
    snapshot = ToolSnapshot(
        tool_id=tool_id,
        tool_type="workflows",
        name="Onboarding",
        schema={"steps": [{"id": "welcome"}, {"id": "profile"}]},
        theme={"colors": {"primary": "#000000"}},
    )
    return dataclasses.replace(snapshot, **overrides)


def make_theme(tool_id: str = "brand-theme", **overrides) -> ToolSnapshot:
    snapshot = ToolSnapshot(
        tool_id=tool_id,
        tool_type="themes",
        name="Brand",
        theme={"colors": {"primary": "#ff0000", "text": "#111111"}, "font": {"size": 16}},
    )
    return dataclasses.replace(snapshot, **overrides)


@pytest.fixture
def snapshots(tmp_path: Path) -> InMemorySnapshotSource:
    return InMemorySnapshotSource([make_form(tmp_path), make_workflow(), make_theme()])


# ---------------------------------------------------------------------------
# Test steps
# ---------------------------------------------------------------------------

class WriteStep(ExportStep):
    """Writes <name>.txt into the working directory."""

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def label(self) -> str:
        return f"Running {self._name}"

    async def run(self, context: StepContext) -> None:
        await context.write_text(f"{self._name}.txt", self._name)


class FailStep(WriteStep):
    async def run(self, context: StepContext) -> None:
        await context.write_text(f"{self._name}.txt", "partial")
        raise StepError(self._name, f"{self._name} could not finish")


class SlowStep(WriteStep):
    def __init__(self, name: str, delay: float) -> None:
        super().__init__(name)
        self._delay = delay

    async def run(self, context: StepContext) -> None:
        await asyncio.sleep(self._delay)
        await super().run(context)


class GateStep(WriteStep):
    """Blocks until release is set; entered is set once the step starts."""

    def __init__(self, name: str = "gate") -> None:
        super().__init__(name)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def run(self, context: StepContext) -> None:
        self.entered.set()
        await self.release.wait()
        await super().run(context)


def make_strategy(*steps: ExportStep, tool_type: ToolType = ToolType.FORMS) -> ExportStrategy:
    return ExportStrategy(
        tool_type=tool_type,
        steps=tuple(steps),
        required_files=(),
        templates=MappingProxyType({}),
    )


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def make_config(tmp_path: Path, max_concurrent_jobs: int = 4, step_timeout: float | None = 10.0) -> ToolExporterConfig:
    return ToolExporterConfig(
        storage=StorageConfig(db_path=str(tmp_path / "jobs.db")),
        export=ExportConfig(exports_dir=str(tmp_path / "exports")),
        snapshots=SnapshotConfig(tools_dir=str(tmp_path / "tools")),
        runner=RunnerConfig(max_concurrent_jobs=max_concurrent_jobs, step_timeout_seconds=step_timeout),
        preflight=PreflightConfig(min_free_disk_mb=0),
    )


def build_runner(
    tmp_path: Path,
    snapshots: InMemorySnapshotSource,
    strategy: ExportStrategy | None = None,
    store=None,
    **config_overrides,
) -> ExportJobRunner:
    """Runner over an in-memory store. A custom strategy replaces the forms strategy."""
    config = make_config(tmp_path, **config_overrides)
    renderer = TemplateRenderer()
    strategies = build_strategy_registry(renderer, config.export)
    if strategy is not None:
        strategies = MappingProxyType({**strategies, strategy.tool_type: strategy})
    validator = PreflightValidator(
        snapshots, strategies, renderer, config.export.exports_dir, min_free_disk_mb=0
    )
    packager = FilesystemPackager(config.export.exports_dir)
    return ExportJobRunner(
        store or InMemoryJobStore(), snapshots, validator, strategies, packager, config=config
    )


async def wait_terminal(store, job_id: str, timeout: float = 5.0):
    """Poll the store until the job is terminal."""
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        job = await store.get(job_id)
        if job is not None and job.status in TERMINAL_STATES:
            return job
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"Job {job_id} did not finish: {job}")
        await asyncio.sleep(0.01)
