"""Configuration system for tool-exporter."""

from .loader import get_config_path, load_config
from .schema import (
    ExportConfig,
    HttpConfig,
    LoggingConfig,
    PollingConfig,
    PreflightConfig,
    RunnerConfig,
    SnapshotConfig,
    StorageConfig,
    ToolExporterConfig,
)

__all__ = [
    "ToolExporterConfig",
    "StorageConfig",
    "ExportConfig",
    "SnapshotConfig",
    "RunnerConfig",
    "PreflightConfig",
    "PollingConfig",
    "HttpConfig",
    "LoggingConfig",
    "load_config",
    "get_config_path",
]
