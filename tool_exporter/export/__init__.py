"""
Export pipeline, strategies, and packaging.

Exports:
    - ExportPipeline / PipelineResult: ordered step execution
    - ExportStrategy / build_strategy_registry: per-tool-type step sequences
    - FilesystemPackager / PackageInfo: working directories and archives
    - TemplateRenderer: boilerplate templates
"""

from tool_exporter.export.packager import FilesystemPackager, PackageInfo
from tool_exporter.export.pipeline import ExportPipeline, PipelineResult
from tool_exporter.export.strategies import ExportStrategy, build_strategy_registry
from tool_exporter.export.templates import TemplateRenderer

__all__ = [
    "ExportPipeline",
    "PipelineResult",
    "ExportStrategy",
    "build_strategy_registry",
    "FilesystemPackager",
    "PackageInfo",
    "TemplateRenderer",
]
