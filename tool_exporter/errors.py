# tool_exporter/errors.py
"""
Exception hierarchy for export orchestration.

Every domain error carries a machine-readable code and a details dict so the
HTTP layer, MCP tools, and CLI can report failures uniformly.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tool_exporter.validation.preflight import ValidationResult


class ExportError(Exception):
    """Base exception for all export orchestration errors."""

    def __init__(
        self,
        message: str,
        code: str = "export_error",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class InvalidTransition(ExportError):
    """Raised when a job status change is not allowed by the state machine."""

    def __init__(self, job_id: str, current: str, requested: str, reason: str | None = None) -> None:
        message = f"Cannot transition job {job_id} from '{current}' to '{requested}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            code="invalid_transition",
            details={"job_id": job_id, "current": current, "requested": requested},
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested


class JobNotFound(ExportError):
    """Raised when a job id has no record in the store."""

    def __init__(self, job_id: str) -> None:
        super().__init__(
            f"Export job '{job_id}' not found",
            code="job_not_found",
            details={"job_id": job_id},
        )
        self.job_id = job_id


class PreflightFailed(ExportError):
    """Raised by the runner when a tool fails preflight. No job is created."""

    def __init__(self, tool_id: str, result: "ValidationResult") -> None:
        super().__init__(
            f"Tool '{tool_id}' cannot be exported: " + "; ".join(result.reasons),
            code="preflight_failed",
            details={"tool_id": tool_id, "reasons": result.reasons},
        )
        self.tool_id = tool_id
        self.result = result

    @property
    def not_found(self) -> bool:
        """True when the only blocking problem is a missing tool."""
        return self.result.has_error("tool_not_found")


class StepError(ExportError):
    """Raised by an export step when it cannot produce its output."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message, code="step_failed", details={"step": step})
        self.step = step


class SnapshotUnavailable(ExportError):
    """Raised when a tool snapshot disappears between preflight and execution."""

    def __init__(self, tool_id: str) -> None:
        super().__init__(
            f"Snapshot for tool '{tool_id}' is no longer available",
            code="snapshot_unavailable",
            details={"tool_id": tool_id},
        )
        self.tool_id = tool_id


class InvalidSnapshot(ExportError):
    """Raised when a stored tool snapshot is malformed (bad YAML/JSON or wrong field types)."""

    def __init__(self, tool_id: str, reason: str) -> None:
        super().__init__(
            f"Snapshot for tool '{tool_id}' is invalid: {reason}",
            code="invalid_snapshot",
            details={"tool_id": tool_id, "reason": reason},
        )
        self.tool_id = tool_id
        self.reason = reason
