# tool_exporter/config/schema.py
"""
Pydantic configuration models for tool-exporter.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from platformdirs import user_config_path, user_data_path
from pydantic import BaseModel, ConfigDict, Field

APP_NAME = "tool-exporter"


def _default_db_path() -> str:
    return str(user_config_path(APP_NAME) / "jobs.db")


def _default_exports_dir() -> str:
    return str(user_data_path(APP_NAME) / "exports")


def _default_tools_dir() -> str:
    return str(user_data_path(APP_NAME) / "tools")


class StorageConfig(BaseModel):
    """Job record persistence."""

    model_config = ConfigDict(extra="ignore")

    db_path: str = Field(
        default_factory=_default_db_path, description="SQLite database file for export jobs"
    )


class ExportConfig(BaseModel):
    """Package output and content options."""

    model_config = ConfigDict(extra="ignore")

    exports_dir: str = Field(
        default_factory=_default_exports_dir,
        description="Root for per-job working directories and finished archives",
    )
    templates_dir: str | None = Field(
        default=None,
        description="Override directory for boilerplate template sets (None = bundled)",
    )
    package_retention_days: int = Field(
        default=30, ge=1, description="Days a finished archive stays downloadable"
    )
    include_submissions: bool = Field(
        default=True, description="Bundle collected submissions into forms exports"
    )
    service_port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port the exported service listens on inside its container",
    )


class SnapshotConfig(BaseModel):
    """Where tool snapshots are read from."""

    model_config = ConfigDict(extra="ignore")

    tools_dir: str = Field(
        default_factory=_default_tools_dir,
        description="Directory of <tool_id>/tool.yaml snapshots",
    )


class RunnerConfig(BaseModel):
    """Job runner concurrency and timeouts."""

    model_config = ConfigDict(extra="ignore")

    max_concurrent_jobs: int = Field(
        default=4, ge=1, le=64, description="Exports executing at the same time"
    )
    step_timeout_seconds: float | None = Field(
        default=300.0,
        gt=0,
        description="Per-step time limit in seconds (None = no limit)",
    )


class PreflightConfig(BaseModel):
    """Preflight environment checks."""

    model_config = ConfigDict(extra="ignore")

    min_free_disk_mb: int = Field(
        default=100, ge=0, description="Free space required under exports_dir"
    )


class PollingConfig(BaseModel):
    """Client-side status polling defaults (CLI wait command)."""

    model_config = ConfigDict(extra="ignore")

    interval_seconds: float = Field(default=1.0, gt=0, description="Delay between polls")
    timeout_seconds: float = Field(
        default=120.0, gt=0, description="Give up waiting after this many seconds"
    )


class HttpConfig(BaseModel):
    """HTTP API server."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Log output."""

    model_config = ConfigDict(extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_format: bool = Field(
        default=True, description="JSON lines on stderr in server modes"
    )


class ToolExporterConfig(BaseModel):
    """Root configuration for tool-exporter."""

    model_config = ConfigDict(extra="ignore")

    storage: StorageConfig = Field(default_factory=StorageConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    preflight: PreflightConfig = Field(default_factory=PreflightConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
