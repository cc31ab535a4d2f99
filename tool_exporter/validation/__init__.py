"""Input validation and sanitization utilities.

Preflight checks live in tool_exporter.validation.preflight.
"""

from .sanitize import safe_join, sanitize_asset_name, sanitize_job_id, sanitize_tool_id

__all__ = [
    "sanitize_job_id",
    "sanitize_tool_id",
    "sanitize_asset_name",
    "safe_join",
]
