# tool_exporter/export/templates.py
"""
Boilerplate template rendering.

Template sets live in tool_exporter/templates/<tool_type>/<name>.j2. A
configured override directory with the same layout takes precedence.

Tool data comes from the form builder and is untrusted: *.html.j2 templates
are autoescaped, JavaScript values go through |tojson, and comment or
heading contexts use |single_line.
"""

import logging
import re
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    select_autoescape,
)

logger = logging.getLogger(__name__)

BUNDLED_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def slugify(value: Any) -> str:
    """Jinja filter: lowercase, dash-separated name safe for package and image names."""
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower()).strip("-")
    return slug or "tool"


_LINE_BREAKS = re.compile(r"[\x00-\x1f\x7f\u2028\u2029]+")


def single_line(value: Any) -> str:
    """Jinja filter: collapse line breaks and control characters for comment and heading contexts."""
    return _LINE_BREAKS.sub(" ", str(value)).strip()


class TemplateRenderer:
    """Renders boilerplate files for a tool type with StrictUndefined."""

    def __init__(self, templates_dir: Path | str | None = None) -> None:
        search_path = [str(BUNDLED_TEMPLATES_DIR)]
        if templates_dir:
            search_path.insert(0, str(templates_dir))

        self._env = Environment(
            loader=FileSystemLoader(search_path),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
        )
        self._env.filters["slug"] = slugify
        self._env.filters["single_line"] = single_line
        logger.info(f"Template search path: {search_path}")

    @staticmethod
    def template_name(tool_type: str, name: str) -> str:
        return f"{tool_type}/{name}.j2"

    def has_template(self, tool_type: str, name: str) -> bool:
        try:
            self._env.get_template(self.template_name(tool_type, name))
        except TemplateNotFound:
            return False
        return True

    def missing_templates(self, tool_type: str, names: list[str] | tuple[str, ...]) -> list[str]:
        return [name for name in names if not self.has_template(tool_type, name)]

    def render(self, tool_type: str, name: str, **context: Any) -> str:
        """
        Render one template.

        Raises:
            jinja2.TemplateNotFound: If the template set lacks this file
            jinja2.UndefinedError: If the template references a missing variable
        """
        template = self._env.get_template(self.template_name(tool_type, name))
        return template.render(**context)
