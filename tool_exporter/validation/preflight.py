# tool_exporter/validation/preflight.py
"""
Preflight validation: decides whether a tool can be exported.

Runs before any job record exists and has no side effects, so a failed
preflight never leaves an orphaned pending job or directory behind.
"""

import asyncio
import logging
import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from tool_exporter.errors import InvalidSnapshot
from tool_exporter.export.strategies import ExportStrategy
from tool_exporter.export.templates import TemplateRenderer
from tool_exporter.models.jobs import ToolType
from tool_exporter.snapshots.models import ToolSnapshot, check_snapshot
from tool_exporter.snapshots.source import ToolSnapshotSource
from tool_exporter.validation.sanitize import sanitize_tool_id

logger = logging.getLogger(__name__)

EXPORTABLE_STATUSES = frozenset({"published", "active"})
BLOCKED_STATUSES = frozenset({"archived", "deleted"})


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str


@dataclass
class ValidationResult:
    """
    Outcome of a preflight check.

    Errors block the export; warnings are reported but do not.
    """

    tool_id: str
    tool_type: ToolType | None = None
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def reasons(self) -> list[str]:
        return [issue.message for issue in self.errors]

    def has_error(self, code: str) -> bool:
        return any(issue.code == code for issue in self.errors)

    def error(self, code: str, message: str) -> None:
        self.errors.append(ValidationIssue(code, message))

    def warn(self, code: str, message: str) -> None:
        self.warnings.append(ValidationIssue(code, message))


def _nearest_existing(path: Path) -> Path | None:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return None


class PreflightValidator:
    """
    Checks a tool against the export prerequisites.

    Args:
        snapshots: Tool snapshot accessor
        strategies: Registered export strategies
        renderer: Template renderer (template set completeness)
        exports_dir: Where working directories and packages will be written
        min_free_disk_mb: Required free space under exports_dir
    """

    def __init__(
        self,
        snapshots: ToolSnapshotSource,
        strategies: Mapping[ToolType, ExportStrategy],
        renderer: TemplateRenderer,
        exports_dir: Path | str,
        min_free_disk_mb: int = 100,
    ) -> None:
        self._snapshots = snapshots
        self._strategies = strategies
        self._renderer = renderer
        self._exports_dir = Path(exports_dir)
        self._min_free_bytes = min_free_disk_mb * 1024 * 1024

    async def validate(self, tool_id: str) -> ValidationResult:
        """
        Run every preflight check for a tool.

        Args:
            tool_id: Tool to check

        Returns:
            ValidationResult (result.ok is True when the tool is exportable)
        """
        result = ValidationResult(tool_id=tool_id)

        try:
            tool_id = sanitize_tool_id(tool_id)
        except ValueError as e:
            result.error("invalid_tool_id", str(e))
            return result

        try:
            snapshot = await self._snapshots.get_snapshot(tool_id)
            if snapshot is not None:
                check_snapshot(snapshot)
        except InvalidSnapshot as e:
            result.error("invalid_snapshot", e.message)
            return result
        if snapshot is None:
            result.error("tool_not_found", f"Tool '{tool_id}' not found")
            return result

        kind = snapshot.kind
        if kind is None or kind not in self._strategies:
            supported = ", ".join(sorted(t.value for t in self._strategies))
            result.error(
                "unsupported_tool_type",
                f"Tool type '{snapshot.tool_type}' is not supported for export "
                f"(supported: {supported})",
            )
            return result

        result.tool_type = kind
        self._check_status(snapshot, result)
        self._check_content(snapshot, kind, result)
        self._check_templates(self._strategies[kind], result)
        await asyncio.to_thread(self._check_filesystem, result)

        if result.ok:
            logger.info(f"Preflight passed for {tool_id} ({len(result.warnings)} warning(s))")
        else:
            logger.info(f"Preflight failed for {tool_id}: {result.reasons}")
        return result

    def _check_status(self, snapshot: ToolSnapshot, result: ValidationResult) -> None:
        status = snapshot.status.lower()
        if status in BLOCKED_STATUSES:
            result.error("tool_not_exportable", f"Tool is {status} and cannot be exported")
        elif status not in EXPORTABLE_STATUSES:
            result.warn(
                "tool_status",
                f"Tool status is '{snapshot.status}'; the exported package reflects unpublished content",
            )

    def _check_content(self, snapshot: ToolSnapshot, kind: ToolType, result: ValidationResult) -> None:
        if kind == ToolType.FORMS:
            fields = snapshot.schema.get("fields")
            if not isinstance(fields, list) or not fields:
                result.error("missing_schema", "Form has no persisted schema with fields")
            if not snapshot.submissions:
                result.warn("no_submissions", "Form has no submissions; package will contain an empty dataset")
        elif kind == ToolType.WORKFLOWS:
            steps = snapshot.schema.get("steps")
            if not isinstance(steps, list) or not steps:
                result.error("missing_schema", "Workflow has no persisted definition with steps")
        elif kind == ToolType.THEMES:
            if not snapshot.theme:
                result.error("missing_theme", "Theme has no tokens")

    def _check_templates(self, strategy: ExportStrategy, result: ValidationResult) -> None:
        missing = self._renderer.missing_templates(strategy.tool_type.value, strategy.template_names)
        if missing:
            result.error(
                "missing_templates",
                f"Boilerplate template set for '{strategy.tool_type.value}' is incomplete "
                f"(missing: {', '.join(missing)})",
            )

    def _check_filesystem(self, result: ValidationResult) -> None:
        existing = _nearest_existing(self._exports_dir.resolve())
        if existing is None or not existing.is_dir() or not os.access(existing, os.W_OK | os.X_OK):
            result.error("exports_dir_not_writable", "Export directory is not writable")
            return

        free = shutil.disk_usage(existing).free
        if free < self._min_free_bytes:
            result.error(
                "insufficient_disk_space",
                f"Insufficient disk space for export: {free // (1024 * 1024)}MB free, "
                f"{self._min_free_bytes // (1024 * 1024)}MB required",
            )
