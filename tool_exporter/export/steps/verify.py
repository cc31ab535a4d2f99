# tool_exporter/export/steps/verify.py
"""
Required-file checklist validation step.
"""

import asyncio
import json

from tool_exporter.errors import StepError
from tool_exporter.export.steps.base import ExportStep, StepContext


class VerifyPackageStep(ExportStep):
    """Fails unless every required file exists, is non-empty, and package.json parses."""

    def __init__(self, required_files: tuple[str, ...]) -> None:
        self._required_files = tuple(required_files)

    @property
    def name(self) -> str:
        return "verify_package"

    @property
    def label(self) -> str:
        return "Verifying package contents"

    @property
    def required_files(self) -> tuple[str, ...]:
        return self._required_files

    def _check(self, context: StepContext) -> list[str]:
        problems = []
        for relative in self._required_files:
            path = context.path(relative)
            if not path.is_file():
                problems.append(f"missing {relative}")
            elif path.stat().st_size == 0:
                problems.append(f"empty {relative}")

        manifest = context.path("package.json")
        if manifest.is_file():
            try:
                json.loads(manifest.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                problems.append(f"package.json is not valid JSON ({e.msg})")
        return problems

    async def run(self, context: StepContext) -> None:
        problems = await asyncio.to_thread(self._check, context)
        if problems:
            raise StepError(self.name, "Package checklist failed: " + ", ".join(problems))
        context.logger.info(f"Verified {len(self._required_files)} required file(s)")
