# tool_exporter/models/schema.py
"""
Database schema definition for SQLite export job persistence.

Provides DDL for tables, indexes, and schema initialization.
"""

import logging

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

EXPORT_JOBS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS export_jobs (
    id TEXT PRIMARY KEY,
    tool_id TEXT NOT NULL,
    tool_type TEXT NOT NULL CHECK(tool_type IN ('forms', 'workflows', 'themes')),
    status TEXT NOT NULL CHECK(status IN ('pending', 'in_progress', 'completed', 'failed', 'cancelled')),
    steps_total INTEGER NOT NULL CHECK(steps_total >= 1),
    steps_completed INTEGER NOT NULL DEFAULT 0
        CHECK(steps_completed >= 0 AND steps_completed <= steps_total),
    current_step_name TEXT,
    package_path TEXT,
    package_size_bytes INTEGER,
    package_checksum TEXT,
    package_expires_at TEXT,
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    failed_at TEXT,
    cancelled_at TEXT,
    download_count INTEGER NOT NULL DEFAULT 0,
    last_downloaded_at TEXT,
    worker_id TEXT,
    CHECK(package_path IS NULL OR error_message IS NULL),
    CHECK(package_path IS NULL OR status = 'completed'),
    CHECK(error_message IS NULL OR status = 'failed')
)
"""

# Export history per tool (newest first)
EXPORT_JOBS_TOOL_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_export_jobs_tool_created "
    "ON export_jobs(tool_id, created_at)"
)

# Crash recovery and pending-job resume scan by status
EXPORT_JOBS_STATUS_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_export_jobs_status_created "
    "ON export_jobs(status, created_at)"
)

BUSY_TIMEOUT_MS = 5000


async def _get_schema_version(db: aiosqlite.Connection) -> int:
    """
    Get current schema version from database.

    Args:
        db: Database connection

    Returns:
        Schema version (0 if no version table exists)
    """
    try:
        cursor = await db.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        return row[0] if row else 0
    except aiosqlite.OperationalError:
        return 0


async def _set_schema_version(db: aiosqlite.Connection, version: int) -> None:
    await db.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER)")
    await db.execute("DELETE FROM schema_version")
    await db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))


async def _migrate(db: aiosqlite.Connection, from_version: int) -> None:
    """Bring an existing database up to SCHEMA_VERSION."""
    if from_version == 1:
        # v2: owning worker, so recovery skips jobs of a live process
        await db.execute("ALTER TABLE export_jobs ADD COLUMN worker_id TEXT")
        logger.info("Migrated database schema v1 -> v2 (export_jobs.worker_id)")


async def init_db(db_path: str) -> None:
    """
    Initialize database schema with WAL mode and optimal settings.

    Args:
        db_path: Path to SQLite database file

    Settings:
        - WAL mode: status polling reads never block the writer
        - synchronous=NORMAL: Good durability/performance balance
        - busy_timeout=5000ms: Retry on SQLITE_BUSY
        - foreign_keys=ON: Enforce constraints
    """
    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA synchronous=NORMAL")
        await db.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        await db.execute("PRAGMA foreign_keys=ON")

        await db.execute(EXPORT_JOBS_TABLE_SQL)
        await db.execute(EXPORT_JOBS_TOOL_INDEX_SQL)
        await db.execute(EXPORT_JOBS_STATUS_INDEX_SQL)

        current_version = await _get_schema_version(db)
        if current_version < SCHEMA_VERSION:
            if current_version > 0:
                await _migrate(db, current_version)
            else:
                logger.info(f"New database initialized at v{SCHEMA_VERSION}")
            await _set_schema_version(db, SCHEMA_VERSION)
        elif current_version > SCHEMA_VERSION:
            logger.warning(
                f"Database schema v{current_version} is newer than supported v{SCHEMA_VERSION}"
            )

        await db.commit()

        logger.info(f"Initialized database at {db_path} (schema v{SCHEMA_VERSION})")
