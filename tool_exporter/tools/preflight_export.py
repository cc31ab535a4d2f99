# tool_exporter/tools/preflight_export.py
"""
preflight_export tool implementation.

Reports whether a tool can be exported without creating a job.
"""

import logging

from tool_exporter.background.runner import ExportJobRunner
from tool_exporter.models.responses import PreflightIssueResponse, PreflightResponse
from tool_exporter.validation.preflight import ValidationResult

logger = logging.getLogger(__name__)


def build_preflight_response(result: ValidationResult) -> PreflightResponse:
    return PreflightResponse(
        tool_id=result.tool_id,
        tool_type=result.tool_type.value if result.tool_type else None,
        exportable=result.ok,
        errors=[PreflightIssueResponse(code=i.code, message=i.message) for i in result.errors],
        warnings=[PreflightIssueResponse(code=i.code, message=i.message) for i in result.warnings],
        reasons=result.reasons,
    )


async def preflight_export(tool_id: str, runner: ExportJobRunner) -> dict:
    """
    Check a tool against the export prerequisites.

    Invalid or unknown tool ids are reported as blocking errors in the
    response rather than raised.

    Args:
        tool_id: Tool to check
        runner: Export job runner

    Returns:
        PreflightResponse as dict
    """
    result = await runner.preflight(tool_id)
    return build_preflight_response(result).model_dump()
