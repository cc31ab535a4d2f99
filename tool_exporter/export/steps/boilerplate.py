# tool_exporter/export/steps/boilerplate.py
"""
Deployment boilerplate generation step.

Writes the dependency manifest (package.json) and renders the tool type's
template set: container build file, compose file, README, ignore file and
type-specific extras.
"""

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from tool_exporter.export.steps.base import ExportStep, StepContext
from tool_exporter.export.templates import TemplateRenderer, slugify
from tool_exporter.snapshots.models import ToolSnapshot

ManifestBuilder = Callable[[ToolSnapshot, str], dict[str, Any]]


class GenerateBoilerplateStep(ExportStep):
    """
    Renders boilerplate for one tool type.

    Args:
        renderer: Shared template renderer
        tool_type: Template set to render from
        files: Output path -> template name
        manifest_builder: Builds package.json content from the snapshot
        package_prefix: Prefix for the generated package/image name
        service_port: Port the exported service listens on
    """

    def __init__(
        self,
        renderer: TemplateRenderer,
        tool_type: str,
        files: Mapping[str, str],
        manifest_builder: ManifestBuilder,
        package_prefix: str,
        service_port: int = 3000,
    ) -> None:
        self._renderer = renderer
        self._tool_type = tool_type
        self._files = dict(files)
        self._manifest_builder = manifest_builder
        self._package_prefix = package_prefix
        self._service_port = service_port

    @property
    def name(self) -> str:
        return "generate_boilerplate"

    @property
    def label(self) -> str:
        return "Generating deployment boilerplate"

    def package_name(self, snapshot: ToolSnapshot) -> str:
        return f"{self._package_prefix}-{slugify(snapshot.tool_id)}"

    def template_context(self, context: StepContext) -> dict[str, Any]:
        snapshot = context.snapshot
        return {
            "tool": {
                "id": snapshot.tool_id,
                "name": snapshot.name,
                "type": snapshot.tool_type,
                "status": snapshot.status,
            },
            "job_id": context.job_id,
            "exported_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "service_port": self._service_port,
            "package_name": self.package_name(snapshot),
            "summary": context.artifacts.get("summary", {}),
            "assets": context.artifacts.get("assets", []),
        }

    async def run(self, context: StepContext) -> None:
        snapshot = context.snapshot
        manifest = self._manifest_builder(snapshot, self.package_name(snapshot))
        await context.write_json("package.json", manifest)

        template_context = self.template_context(context)
        for output_path, template in self._files.items():
            content = self._renderer.render(self._tool_type, template, **template_context)
            await context.write_text(output_path, content)

        context.logger.info(f"Generated package.json and {len(self._files)} boilerplate file(s)")
