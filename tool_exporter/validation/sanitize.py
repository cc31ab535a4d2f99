# tool_exporter/validation/sanitize.py
"""
Input sanitization and validation utilities.

Provides identifier validation and path traversal protection.
"""

import logging
import re
from pathlib import Path, PurePosixPath, PureWindowsPath

logger = logging.getLogger(__name__)

_JOB_ID_PATTERN = re.compile(r"^[a-zA-Z0-9-]{8,64}$")
_TOOL_ID_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]{0,127}$")


def sanitize_job_id(job_id: str) -> str:
    """
    Sanitize and validate job ID.

    Job IDs must be alphanumeric with hyphens only, 8-64 characters.

    Args:
        job_id: User-provided job ID

    Returns:
        Validated job ID

    Raises:
        ValueError: If job ID format is invalid
    """
    job_id = job_id.strip()
    if not _JOB_ID_PATTERN.match(job_id):
        raise ValueError(
            f"Invalid job ID '{job_id}': must be 8-64 alphanumeric characters or hyphens"
        )
    return job_id


def sanitize_tool_id(tool_id: str) -> str:
    """
    Sanitize and validate tool ID.

    Tool IDs start with an alphanumeric character and may contain
    underscores and hyphens, up to 128 characters.

    Raises:
        ValueError: If tool ID format is invalid
    """
    tool_id = tool_id.strip()
    if not _TOOL_ID_PATTERN.match(tool_id):
        raise ValueError(
            f"Invalid tool ID '{tool_id}': must be 1-128 characters of letters, "
            f"digits, '_' or '-'"
        )
    return tool_id


def sanitize_asset_name(name: object) -> str:
    """
    Validate an asset name listed by a tool snapshot.

    Asset names are POSIX paths relative to the tool's assets directory and
    to public/assets/ in the package.

    Raises:
        ValueError: If the name is not a string, is empty or absolute, carries
            a drive or backslash, or contains '..'
    """
    if not isinstance(name, str):
        raise ValueError(f"Invalid asset name {name!r}: must be a string")
    pure = PurePosixPath(name)
    if (
        not name.strip()
        or not pure.parts
        or pure.is_absolute()
        or "\\" in name
        or PureWindowsPath(name).drive
        or ".." in pure.parts
    ):
        raise ValueError(f"Invalid asset name {name!r}: must be a relative path inside assets/")
    return str(pure)


def safe_join(base: Path, relative: str) -> Path:
    """
    Join a relative path onto base, refusing anything that escapes it.

    Args:
        base: Directory the result must stay inside
        relative: Untrusted POSIX-style relative path

    Returns:
        Resolved path inside base

    Raises:
        ValueError: If relative is absolute, empty, or traverses outside base
    """
    pure = PurePosixPath(relative)
    if not relative or pure.is_absolute() or ".." in pure.parts:
        raise ValueError(f"Unsafe relative path: {relative!r}")

    base_resolved = base.resolve()
    target = (base_resolved / Path(*pure.parts)).resolve()
    if target != base_resolved and base_resolved not in target.parents:
        raise ValueError(f"Path escapes working directory: {relative!r}")
    return target
