# tool_exporter/export/steps/assets.py
"""
Static asset bundling step.
"""

import asyncio
import shutil
from pathlib import Path

from tool_exporter.errors import StepError
from tool_exporter.export.steps.base import ExportStep, StepContext
from tool_exporter.validation.sanitize import sanitize_asset_name

ASSETS_DIR = "public/assets"


def _make_dir(context: StepContext, target: Path) -> None:
    context.ensure_open(target)
    target.mkdir(parents=True, exist_ok=True)


def _copy(context: StepContext, source: Path, target: Path) -> int:
    context.ensure_open(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)
    return target.stat().st_size


class BundleAssetsStep(ExportStep):
    """Copies every referenced asset into public/assets/ and writes public/assets.json."""

    @property
    def name(self) -> str:
        return "bundle_assets"

    @property
    def label(self) -> str:
        return "Bundling static assets"

    async def run(self, context: StepContext) -> None:
        await asyncio.to_thread(_make_dir, context, context.path(ASSETS_DIR))

        manifest = []
        for name, source in sorted(context.snapshot.assets.items()):
            try:
                name = sanitize_asset_name(name)
                target = context.path(f"{ASSETS_DIR}/{name}")
            except ValueError as e:
                raise StepError(self.name, f"Asset {name!r} rejected: {e}") from e

            if not source.is_file():
                raise StepError(self.name, f"Asset '{name}' is missing from the tool snapshot")

            size = await asyncio.to_thread(_copy, context, source, target)
            manifest.append({"name": name, "path": f"{ASSETS_DIR}/{name}", "size_bytes": size})

        await context.write_json("public/assets.json", manifest)
        context.artifacts["assets"] = [entry["name"] for entry in manifest]
        context.logger.info(f"Bundled {len(manifest)} asset(s)")
