# tool_exporter/snapshots/source.py
"""
Tool snapshot accessors.

The export core only reads tools through ToolSnapshotSource. Each call
returns an independent copy so concurrent jobs never share mutable data.
"""

import asyncio
import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml

from tool_exporter.errors import InvalidSnapshot
from tool_exporter.snapshots.models import ToolSnapshot, check_snapshot
from tool_exporter.validation.sanitize import safe_join, sanitize_asset_name

logger = logging.getLogger(__name__)


class ToolSnapshotSource(ABC):
    """Read-only accessor for tool snapshots."""

    @abstractmethod
    async def get_snapshot(self, tool_id: str) -> ToolSnapshot | None:
        """
        Load a tool snapshot.

        Args:
            tool_id: Tool identifier

        Returns:
            ToolSnapshot if the tool exists, None otherwise
        """
        pass


class InMemorySnapshotSource(ToolSnapshotSource):
    """Dict-backed snapshot source for tests and embedding."""

    def __init__(self, snapshots: list[ToolSnapshot] | None = None) -> None:
        self._snapshots: dict[str, ToolSnapshot] = {}
        for snapshot in snapshots or []:
            self.put(snapshot)

    def put(self, snapshot: ToolSnapshot) -> None:
        self._snapshots[snapshot.tool_id] = snapshot

    def remove(self, tool_id: str) -> None:
        self._snapshots.pop(tool_id, None)

    async def get_snapshot(self, tool_id: str) -> ToolSnapshot | None:
        snapshot = self._snapshots.get(tool_id)
        return copy.deepcopy(snapshot) if snapshot else None


class DirectorySnapshotSource(ToolSnapshotSource):
    """
    Reads snapshots from a directory tree.

    Layout:
        <root>/<tool_id>/tool.yaml          tool_type, name, status, schema, theme,
                                            assets (list of names), metadata
        <root>/<tool_id>/submissions.json   optional list of submissions
        <root>/<tool_id>/assets/<name>      files listed under assets

    Malformed files raise InvalidSnapshot. Asset names are relative paths
    that must resolve inside the tool's assets/ directory.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    async def get_snapshot(self, tool_id: str) -> ToolSnapshot | None:
        return await asyncio.to_thread(self._load, tool_id)

    def _tool_dir(self, tool_id: str) -> Path | None:
        root = self._root.resolve()
        tool_dir = (root / tool_id).resolve()
        if tool_dir.parent != root:
            logger.warning(f"Rejected tool id outside snapshot root: {tool_id!r}")
            return None
        return tool_dir

    def _load(self, tool_id: str) -> ToolSnapshot | None:
        tool_dir = self._tool_dir(tool_id)
        if tool_dir is None:
            return None

        manifest = tool_dir / "tool.yaml"
        if not manifest.is_file():
            return None

        try:
            with manifest.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise InvalidSnapshot(tool_id, f"tool.yaml is not valid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidSnapshot(tool_id, "tool.yaml must contain a mapping")

        submissions: Any = []
        submissions_file = tool_dir / "submissions.json"
        if submissions_file.is_file():
            try:
                submissions = json.loads(submissions_file.read_text(encoding="utf-8"))
            except ValueError as e:
                raise InvalidSnapshot(tool_id, f"submissions.json is not valid JSON: {e}") from e

        snapshot = ToolSnapshot(
            tool_id=tool_id,
            tool_type=_text(tool_id, data, "tool_type", ""),
            name=_text(tool_id, data, "name", tool_id),
            status=_text(tool_id, data, "status", "published"),
            schema=data.get("schema") or {},
            theme=data.get("theme") or {},
            submissions=submissions,
            assets=self._assets(tool_id, tool_dir / "assets", data.get("assets")),
            metadata=data.get("metadata") or {},
        )
        check_snapshot(snapshot)
        return snapshot

    @staticmethod
    def _assets(tool_id: str, assets_dir: Path, names: Any) -> dict[str, Path]:
        """Map asset names to source files, all confined to the tool's assets/ directory."""
        if names is None:
            return {}
        if not isinstance(names, list):
            raise InvalidSnapshot(tool_id, "'assets' must be a list of file names")

        assets: dict[str, Path] = {}
        for name in names:
            try:
                name = sanitize_asset_name(name)
                assets[name] = safe_join(assets_dir, name)
            except ValueError as e:
                raise InvalidSnapshot(tool_id, str(e)) from e
        return assets


def _text(tool_id: str, data: dict[str, Any], key: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        raise InvalidSnapshot(tool_id, f"'{key}' must be a string")
    return str(value)
