# tool_exporter/models/sqlite_store.py
"""
SQLite-backed export job persistence.

Provides async operations with WAL mode and IMMEDIATE transactions so
status polling never observes a half-applied transition.
"""

import asyncio
import dataclasses
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from tool_exporter.errors import InvalidTransition, JobNotFound
from tool_exporter.models.jobs import (
    RECOVERY_ERROR_MESSAGE,
    ExportJob,
    JobStatus,
    ToolType,
    build_transition,
    check_increment,
    generate_job_id,
    utcnow,
)
from tool_exporter.models.schema import BUSY_TIMEOUT_MS, init_db
from tool_exporter.models.store import JobStore

logger = logging.getLogger(__name__)

_DATETIME_FIELDS = (
    "created_at",
    "updated_at",
    "started_at",
    "completed_at",
    "failed_at",
    "cancelled_at",
    "package_expires_at",
    "last_downloaded_at",
)


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteJobStore(JobStore):
    """
    Async SQLite-backed export job storage.

    Features:
        - WAL mode for concurrent reads/writes
        - IMMEDIATE transactions: status check and update in one write lock
        - In-process single writer (asyncio.Lock) serializing all mutations
        - Crash recovery (in_progress → failed on startup)
        - No persistent connections (avoids resource leaks)
    """

    def __init__(self, db_path: str) -> None:
        """
        Initialize SQLite job store.

        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        self._write_lock = asyncio.Lock()
        logger.info(f"Created SQLiteJobStore with path: {db_path}")

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        """Initialize database schema. Crash recovery is a separate call."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        await init_db(self._db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
            yield db

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

        async with self._write_lock, self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "SELECT id FROM export_jobs WHERE id = ?", (job.job_id,)
                )
                if await cursor.fetchone():
                    raise ValueError(f"Job {job.job_id} already exists")

                await db.execute(
                    """
                    INSERT INTO export_jobs (
                        id, tool_id, tool_type, status, steps_total, steps_completed,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        job.job_id,
                        job.tool_id,
                        job.tool_type.value,
                        job.status.value,
                        job.steps_total,
                        job.steps_completed,
                        job.created_at.isoformat(),
                        job.updated_at.isoformat(),
                    ),
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(f"Created job {job.job_id} for tool {tool_id} ({tool_type.value})")
        return job

    async def get(self, job_id: str) -> ExportJob | None:
        async with self._connect() as db:
            return await self._fetch(db, job_id)

    async def transition(
        self,
        job_id: str,
        new_status: JobStatus,
        *,
        expected: JobStatus | None = None,
        **fields: Any,
    ) -> ExportJob:
        async with self._write_lock, self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                job = await self._require(db, job_id)
                updates = build_transition(job, new_status, fields, utcnow(), expected=expected)
                await self._apply(db, job_id, updates)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        if new_status != job.status:
            logger.info(f"Job {job_id}: {job.status.value} -> {new_status.value}")
        return dataclasses.replace(job, **updates)

    async def increment_step(self, job_id: str, step_name: str) -> ExportJob:
        async with self._write_lock, self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                job = await self._require(db, job_id)
                check_increment(job)
                updates = {
                    "steps_completed": job.steps_completed + 1,
                    "current_step_name": step_name,
                    "updated_at": utcnow(),
                }
                await self._apply(db, job_id, updates)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return dataclasses.replace(job, **updates)

    async def record_download(self, job_id: str) -> ExportJob:
        async with self._write_lock, self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                job = await self._require(db, job_id)
                if job.status != JobStatus.COMPLETED:
                    raise InvalidTransition(
                        job_id,
                        job.status.value,
                        job.status.value,
                        "only completed jobs can be downloaded",
                    )
                updates = {
                    "download_count": job.download_count + 1,
                    "last_downloaded_at": utcnow(),
                }
                # Bookkeeping only; updated_at tracks status changes
                await self._apply(db, job_id, updates)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return dataclasses.replace(job, **updates)

    async def list_jobs(
        self,
        tool_id: str | None = None,
        status: JobStatus | None = None,
        limit: int = 50,
    ) -> list[ExportJob]:
        clauses = []
        params: list[Any] = []
        if tool_id is not None:
            clauses.append("tool_id = ?")
            params.append(tool_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)

        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT * FROM export_jobs {where} ORDER BY created_at DESC, rowid DESC LIMIT ?",
                params,
            )
            rows = await cursor.fetchall()
            return [self._row_to_job(row) for row in rows]

    async def recover_interrupted(
        self, is_orphaned: Callable[[ExportJob], bool] | None = None
    ) -> list[ExportJob]:
        """
        Crash recovery: mark orphaned jobs with status='in_progress' as failed.

        A process that died mid-export can never resume its working directory,
        so these jobs are terminal. Callers roll back their directories.
        Jobs rejected by is_orphaned (a live worker still owns them) are left alone.
        """
        recovered: list[ExportJob] = []

        async with self._write_lock, self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "SELECT * FROM export_jobs WHERE status = ?",
                    (JobStatus.IN_PROGRESS.value,),
                )
                now = utcnow()
                for row in await cursor.fetchall():
                    job = self._row_to_job(row)
                    if is_orphaned is not None and not is_orphaned(job):
                        continue
                    updates = build_transition(
                        job,
                        JobStatus.FAILED,
                        {"error_message": RECOVERY_ERROR_MESSAGE},
                        now,
                    )
                    await self._apply(db, job.job_id, updates)
                    recovered.append(dataclasses.replace(job, **updates))
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        if recovered:
            logger.warning(
                f"Crash recovery: marked {len(recovered)} in-progress job(s) as failed"
            )
        return recovered

    async def close(self) -> None:
        """
        Checkpoint WAL and close database.

        Truncates WAL file to avoid unbounded growth.
        """
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                logger.info("WAL checkpoint completed")
        except Exception as e:
            logger.warning(f"WAL checkpoint failed: {e}")

    async def _fetch(self, db: aiosqlite.Connection, job_id: str) -> ExportJob | None:
        cursor = await db.execute("SELECT * FROM export_jobs WHERE id = ?", (job_id,))
        row = await cursor.fetchone()
        return self._row_to_job(row) if row else None

    async def _require(self, db: aiosqlite.Connection, job_id: str) -> ExportJob:
        job = await self._fetch(db, job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def _apply(
        self, db: aiosqlite.Connection, job_id: str, updates: dict[str, Any]
    ) -> None:
        set_parts = [f"{key} = ?" for key in updates]
        values = [_to_db(value) for value in updates.values()]
        values.append(job_id)
        await db.execute(
            f"UPDATE export_jobs SET {', '.join(set_parts)} WHERE id = ?", values
        )

    def _row_to_job(self, row: aiosqlite.Row) -> ExportJob:
        """
        Convert SQLite row to ExportJob.

        Args:
            row: SQLite row (with row_factory=aiosqlite.Row)

        Returns:
            ExportJob instance
        """
        dates = {name: _parse_dt(row[name]) for name in _DATETIME_FIELDS}
        return ExportJob(
            job_id=row["id"],
            tool_id=row["tool_id"],
            tool_type=ToolType(row["tool_type"]),
            status=JobStatus(row["status"]),
            steps_total=row["steps_total"],
            steps_completed=row["steps_completed"],
            current_step_name=row["current_step_name"],
            package_path=row["package_path"],
            package_size_bytes=row["package_size_bytes"],
            package_checksum=row["package_checksum"],
            error_message=row["error_message"],
            download_count=row["download_count"],
            worker_id=row["worker_id"],
            **dates,
        )
