# tool_exporter/export/steps/extract.py
"""
Snapshot extraction steps: serialize schema, theme, and submissions.
"""

import re
from typing import Any

from tool_exporter.errors import StepError
from tool_exporter.export.steps.base import ExportStep, StepContext

_CSS_NAME = re.compile(r"[^a-z0-9-]+")
_CSS_UNSAFE = re.compile(r"[;{}<>]")


class ExtractFormStep(ExportStep):
    """Writes data/form-schema.json, data/theme.json and data/submissions.json."""

    def __init__(self, include_submissions: bool = True) -> None:
        self._include_submissions = include_submissions

    @property
    def name(self) -> str:
        return "extract_form"

    @property
    def label(self) -> str:
        return "Extracting form schema"

    async def run(self, context: StepContext) -> None:
        snapshot = context.snapshot
        fields = snapshot.schema.get("fields")
        if not isinstance(fields, list) or not fields:
            raise StepError(self.name, "Form schema has no fields")

        await context.write_json(
            "data/form-schema.json",
            {"tool_id": snapshot.tool_id, "name": snapshot.name, **snapshot.schema},
        )
        await context.write_json("data/theme.json", snapshot.theme)

        submissions = snapshot.submissions if self._include_submissions else []
        await context.write_json("data/submissions.json", submissions)

        context.artifacts["summary"] = {
            "field_count": len(fields),
            "submission_count": len(submissions),
        }
        context.logger.info(
            f"Extracted {len(fields)} field(s) and {len(submissions)} submission(s)"
        )


class ExtractWorkflowStep(ExportStep):
    """Writes data/workflow.json and data/theme.json."""

    @property
    def name(self) -> str:
        return "extract_workflow"

    @property
    def label(self) -> str:
        return "Extracting workflow definition"

    async def run(self, context: StepContext) -> None:
        snapshot = context.snapshot
        steps = snapshot.schema.get("steps")
        if not isinstance(steps, list) or not steps:
            raise StepError(self.name, "Workflow definition has no steps")

        await context.write_json(
            "data/workflow.json",
            {"tool_id": snapshot.tool_id, "name": snapshot.name, **snapshot.schema},
        )
        await context.write_json("data/theme.json", snapshot.theme)

        context.artifacts["summary"] = {"step_count": len(steps)}
        context.logger.info(f"Extracted workflow with {len(steps)} step(s)")


def flatten_tokens(tokens: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """
    Flatten nested theme tokens into CSS custom property names.

    {"colors": {"primary": "#336"}} -> {"--colors-primary": "#336"}
    Non-scalar leaves and values that could break out of a declaration are dropped.
    """
    flat: dict[str, str] = {}
    for key, value in tokens.items():
        name = _CSS_NAME.sub("-", f"{prefix}-{key}".lower()).strip("-")
        if isinstance(value, dict):
            flat.update(flatten_tokens(value, name))
        elif isinstance(value, (str, int, float)) and not isinstance(value, bool):
            text = str(value)
            if name and not _CSS_UNSAFE.search(text):
                flat[f"--{name}"] = text
    return flat


def render_theme_css(tokens: dict[str, Any]) -> str:
    declarations = "".join(
        f"  {name}: {value};\n" for name, value in sorted(flatten_tokens(tokens).items())
    )
    return f":root {{\n{declarations}}}\n"


class ExtractThemeStep(ExportStep):
    """Writes theme/theme.json and the generated theme/theme.css."""

    @property
    def name(self) -> str:
        return "extract_theme"

    @property
    def label(self) -> str:
        return "Extracting theme tokens"

    async def run(self, context: StepContext) -> None:
        theme = context.snapshot.theme
        if not theme:
            raise StepError(self.name, "Theme has no tokens")

        await context.write_json("theme/theme.json", theme)
        css = render_theme_css(theme)
        await context.write_text("theme/theme.css", css)

        token_count = len(flatten_tokens(theme))
        context.artifacts["summary"] = {"token_count": token_count}
        context.logger.info(f"Extracted theme with {token_count} CSS token(s)")
