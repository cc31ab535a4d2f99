# tool_exporter/export/strategies.py
"""
Export strategies: one immutable step sequence per tool type.

Strategies are built once at process start by build_strategy_registry()
and shared read-only by every job.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import Any

from tool_exporter.config.schema import ExportConfig
from tool_exporter.export.steps import (
    BundleAssetsStep,
    ExportStep,
    ExtractFormStep,
    ExtractThemeStep,
    ExtractWorkflowStep,
    GenerateBoilerplateStep,
    VerifyPackageStep,
)
from tool_exporter.export.steps.boilerplate import ManifestBuilder
from tool_exporter.export.templates import TemplateRenderer
from tool_exporter.models.jobs import ToolType
from tool_exporter.snapshots.models import ToolSnapshot

logger = logging.getLogger(__name__)

# Files every package must contain, regardless of tool type
BASE_REQUIRED_FILES = (
    "package.json",
    "Dockerfile",
    "docker-compose.yml",
    "README.md",
    ".dockerignore",
)

_NODE_SERVICE_DEPENDENCIES = {
    "express": "^4.19.2",
    "cors": "^2.8.5",
    "helmet": "^7.1.0",
    "dotenv": "^16.4.5",
}

_NODE_SERVICE_FILES = {
    "Dockerfile": "Dockerfile",
    "docker-compose.yml": "docker-compose.yml",
    "README.md": "README.md",
    ".dockerignore": "dockerignore",
    ".env.example": "env.example",
    "src/server.js": "server.js",
}

_THEME_FILES = {
    "Dockerfile": "Dockerfile",
    "docker-compose.yml": "docker-compose.yml",
    "README.md": "README.md",
    ".dockerignore": "dockerignore",
    "index.html": "index.html",
}


@dataclass(frozen=True)
class ExportStrategy:
    """
    Tagged step sequence for one tool type.

    Attributes:
        tool_type: Strategy tag
        steps: Ordered steps (executed strictly in sequence)
        required_files: Checklist enforced by the final verification step
        templates: Boilerplate output path -> template name
    """

    tool_type: ToolType
    steps: tuple[ExportStep, ...]
    required_files: tuple[str, ...]
    templates: Mapping[str, str]

    @property
    def steps_total(self) -> int:
        return len(self.steps)

    @property
    def step_labels(self) -> list[str]:
        return [step.label for step in self.steps]

    @property
    def template_names(self) -> tuple[str, ...]:
        return tuple(self.templates.values())


def node_service_manifest(
    snapshot: ToolSnapshot, package_name: str, service: str
) -> dict[str, Any]:
    """package.json for the Express service generated for forms and workflows."""
    return {
        "name": package_name,
        "version": "1.0.0",
        "private": True,
        "description": f"Standalone {service} service exported from {snapshot.name}",
        "main": "src/server.js",
        "scripts": {"start": "node src/server.js"},
        "dependencies": dict(_NODE_SERVICE_DEPENDENCIES),
        "engines": {"node": ">=18.0.0"},
    }


form_manifest = partial(node_service_manifest, service="form")
workflow_manifest = partial(node_service_manifest, service="workflow")


def theme_manifest(snapshot: ToolSnapshot, package_name: str) -> dict[str, Any]:
    return {
        "name": package_name,
        "version": "1.0.0",
        "description": f"Theme package exported from {snapshot.name}",
        "style": "theme/theme.css",
        "files": ["theme", "public", "index.html"],
    }


def _strategy(
    tool_type: ToolType,
    first_step: ExportStep,
    files: dict[str, str],
    manifest_builder: ManifestBuilder,
    package_prefix: str,
    extra_required: tuple[str, ...],
    renderer: TemplateRenderer,
    config: ExportConfig,
) -> ExportStrategy:
    required = BASE_REQUIRED_FILES + extra_required
    steps = (
        first_step,
        BundleAssetsStep(),
        GenerateBoilerplateStep(
            renderer,
            tool_type.value,
            files,
            manifest_builder,
            package_prefix,
            service_port=config.service_port,
        ),
        VerifyPackageStep(required),
    )
    return ExportStrategy(
        tool_type=tool_type,
        steps=steps,
        required_files=required,
        templates=MappingProxyType(dict(files)),
    )


def build_strategy_registry(
    renderer: TemplateRenderer, config: ExportConfig | None = None
) -> Mapping[ToolType, ExportStrategy]:
    """
    Construct the forms, workflows, and themes strategies.

    Args:
        renderer: Template renderer shared by all boilerplate steps
        config: Export options (defaults when None)

    Returns:
        Read-only mapping of ToolType -> ExportStrategy
    """
    config = config or ExportConfig()

    registry = {
        ToolType.FORMS: _strategy(
            ToolType.FORMS,
            ExtractFormStep(include_submissions=config.include_submissions),
            _NODE_SERVICE_FILES,
            form_manifest,
            "form-service",
            ("data/form-schema.json", "src/server.js"),
            renderer,
            config,
        ),
        ToolType.WORKFLOWS: _strategy(
            ToolType.WORKFLOWS,
            ExtractWorkflowStep(),
            _NODE_SERVICE_FILES,
            workflow_manifest,
            "workflow-service",
            ("data/workflow.json", "src/server.js"),
            renderer,
            config,
        ),
        ToolType.THEMES: _strategy(
            ToolType.THEMES,
            ExtractThemeStep(),
            _THEME_FILES,
            theme_manifest,
            "theme",
            ("theme/theme.json", "theme/theme.css"),
            renderer,
            config,
        ),
    }

    for tool_type, strategy in registry.items():
        logger.info(
            f"Registered {tool_type.value} strategy with {strategy.steps_total} steps"
        )
    return MappingProxyType(registry)
