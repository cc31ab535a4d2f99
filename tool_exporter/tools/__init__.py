"""MCP tool implementations (surface-independent of FastMCP registration)."""

from .cancel_export import cancel_export
from .check_status import check_export_status
from .list_exports import list_exports
from .preflight_export import preflight_export
from .start_export import start_export

__all__ = [
    "start_export",
    "check_export_status",
    "cancel_export",
    "list_exports",
    "preflight_export",
]
