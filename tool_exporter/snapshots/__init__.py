"""Tool snapshot models and read-only accessors."""

from tool_exporter.models.jobs import ToolType
from tool_exporter.snapshots.models import ToolSnapshot
from tool_exporter.snapshots.source import (
    DirectorySnapshotSource,
    InMemorySnapshotSource,
    ToolSnapshotSource,
)

__all__ = [
    "ToolType",
    "ToolSnapshot",
    "ToolSnapshotSource",
    "InMemorySnapshotSource",
    "DirectorySnapshotSource",
]
