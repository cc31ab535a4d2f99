# tool_exporter/snapshots/models.py
"""
Read-only tool snapshot handed to an export job.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tool_exporter.errors import InvalidSnapshot
from tool_exporter.models.jobs import ToolType
from tool_exporter.validation.sanitize import sanitize_asset_name


@dataclass(frozen=True)
class ToolSnapshot:
    """
    Point-in-time copy of a tool's exportable content.

    Attributes:
        tool_id: Tool identifier
        tool_type: Raw type tag as stored by the form builder (may be unsupported)
        name: Display name
        status: Publication status (published, draft, archived, ...)
        schema: Form fields or workflow definition
        theme: Theme tokens (colors, fonts, spacing)
        submissions: Collected submissions (forms only)
        assets: Archive-relative asset name -> source file
        metadata: Free-form extra attributes
    """

    tool_id: str
    tool_type: str
    name: str
    status: str = "published"
    schema: dict[str, Any] = field(default_factory=dict)
    theme: dict[str, Any] = field(default_factory=dict)
    submissions: list[dict[str, Any]] = field(default_factory=list)
    assets: dict[str, Path] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> ToolType | None:
        """The export strategy tag, or None if the type is not exportable."""
        try:
            return ToolType(self.tool_type)
        except ValueError:
            return None


def check_snapshot(snapshot: ToolSnapshot) -> None:
    """
    Verify snapshot field types before any check or step reads them.

    Raises:
        InvalidSnapshot: On the first malformed field
    """
    for name in ("tool_type", "name", "status"):
        if not isinstance(getattr(snapshot, name), str):
            raise InvalidSnapshot(snapshot.tool_id, f"'{name}' must be a string")
    for name in ("schema", "theme", "metadata"):
        if not isinstance(getattr(snapshot, name), dict):
            raise InvalidSnapshot(snapshot.tool_id, f"'{name}' must be a mapping")
    if not isinstance(snapshot.submissions, list) or not all(
        isinstance(item, dict) for item in snapshot.submissions
    ):
        raise InvalidSnapshot(snapshot.tool_id, "'submissions' must be a list of objects")
    if not isinstance(snapshot.assets, dict):
        raise InvalidSnapshot(snapshot.tool_id, "'assets' must map names to files")
    for name in snapshot.assets:
        try:
            sanitize_asset_name(name)
        except ValueError as e:
            raise InvalidSnapshot(snapshot.tool_id, str(e)) from e
