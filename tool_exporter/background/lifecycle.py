# tool_exporter/background/lifecycle.py
"""
Service lifecycle management.

Wires the store, snapshot source, strategies, packager, validator, and runner
from configuration. Coordinates startup (DB initialization + crash recovery +
resuming queued jobs) and shutdown.
"""

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path

from tool_exporter.background.runner import ExportJobRunner, worker_is_alive
from tool_exporter.background.signals import setup_signal_handlers
from tool_exporter.config.schema import ToolExporterConfig
from tool_exporter.export.packager import FilesystemPackager
from tool_exporter.export.strategies import ExportStrategy, build_strategy_registry
from tool_exporter.export.templates import TemplateRenderer
from tool_exporter.models.jobs import ToolType
from tool_exporter.models.sqlite_store import SQLiteJobStore
from tool_exporter.models.store import JobStore
from tool_exporter.snapshots.source import DirectorySnapshotSource, ToolSnapshotSource
from tool_exporter.validation.preflight import PreflightValidator

logger = logging.getLogger(__name__)


class ServiceLifecycle:
    """
    Service lifecycle coordinator.

    Manages:
        - Database initialization and crash recovery on startup
        - Rollback of working directories left by interrupted jobs
        - Resuming jobs that were still pending
        - Optional signal handler registration
        - Graceful shutdown
    """

    def __init__(
        self,
        config: ToolExporterConfig | None = None,
        snapshots: ToolSnapshotSource | None = None,
        store: JobStore | None = None,
    ) -> None:
        """
        Initialize service lifecycle manager.

        Args:
            config: Service configuration (defaults when None)
            snapshots: Tool snapshot source (defaults to config.snapshots.tools_dir)
            store: Job store (defaults to SQLite at config.storage.db_path)
        """
        self._config = config or ToolExporterConfig()
        self._store = store or SQLiteJobStore(self._config.storage.db_path)
        self._snapshots = snapshots or DirectorySnapshotSource(self._config.snapshots.tools_dir)
        self._renderer = TemplateRenderer(self._config.export.templates_dir)
        self._strategies = build_strategy_registry(self._renderer, self._config.export)
        self._packager = FilesystemPackager(self._config.export.exports_dir)
        self._validator = PreflightValidator(
            self._snapshots,
            self._strategies,
            self._renderer,
            self._config.export.exports_dir,
            min_free_disk_mb=self._config.preflight.min_free_disk_mb,
        )
        self._runner = ExportJobRunner(
            self._store,
            self._snapshots,
            self._validator,
            self._strategies,
            self._packager,
            config=self._config,
        )
        self._started = False
        logger.info(f"Created ServiceLifecycle with exports_dir={self._config.export.exports_dir}")

    @property
    def config(self) -> ToolExporterConfig:
        return self._config

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def runner(self) -> ExportJobRunner:
        return self._runner

    @property
    def packager(self) -> FilesystemPackager:
        return self._packager

    @property
    def validator(self) -> PreflightValidator:
        return self._validator

    @property
    def strategies(self) -> Mapping[ToolType, ExportStrategy]:
        return self._strategies

    async def startup(
        self,
        register_signals: bool = False,
        recover: bool = True,
        resume_pending: bool = True,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """
        Start the service lifecycle.

        Steps:
            1. Initialize database schema
            2. Crash recovery: in_progress jobs whose worker process is gone
               become failed and their workdirs are removed
            3. Register signal handlers (optional)
            4. Dispatch jobs that were still pending

        One-shot CLI commands pass recover=False and resume_pending=False so
        they never touch jobs owned by a running worker process.
        """
        logger.info("Starting service lifecycle...")

        Path(self._config.export.exports_dir).mkdir(parents=True, exist_ok=True)
        await self._store.initialize()

        recovered = (
            await self._store.recover_interrupted(
                is_orphaned=lambda job: not worker_is_alive(job.worker_id)
            )
            if recover
            else []
        )
        if recovered:
            logger.warning(f"Recovered {len(recovered)} interrupted job(s) from previous session")
            for job in recovered:
                logger.warning(f"  - {job.job_id}: {job.tool_type.value} export of {job.tool_id}")
                await self._packager.rollback(self._packager.workdir_for(job.job_id))

        if register_signals:
            setup_signal_handlers(self, stop_event)

        if resume_pending:
            await self._runner.resume_pending()

        self._started = True
        logger.info("Service lifecycle started")

    async def shutdown(self) -> None:
        """
        Shut down gracefully.

        Steps:
            1. Stop workers (running jobs roll back and fail; queued jobs stay pending)
            2. Close database (WAL checkpoint)
        """
        if not self._started:
            return
        self._started = False
        logger.info("Shutting down service lifecycle...")
        await self._runner.shutdown()
        await self._store.close()
        logger.info("Service lifecycle shutdown complete")
