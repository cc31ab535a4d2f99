"""
Export steps.

Exports:
    - ExportStep / StepContext: common step interface
    - Extract*Step: snapshot serialization per tool type
    - BundleAssetsStep, GenerateBoilerplateStep, VerifyPackageStep
"""

from tool_exporter.export.steps.assets import BundleAssetsStep
from tool_exporter.export.steps.base import ExportStep, StepContext, step_logger
from tool_exporter.export.steps.boilerplate import GenerateBoilerplateStep
from tool_exporter.export.steps.extract import (
    ExtractFormStep,
    ExtractThemeStep,
    ExtractWorkflowStep,
)
from tool_exporter.export.steps.verify import VerifyPackageStep

__all__ = [
    "ExportStep",
    "StepContext",
    "step_logger",
    "ExtractFormStep",
    "ExtractWorkflowStep",
    "ExtractThemeStep",
    "BundleAssetsStep",
    "GenerateBoilerplateStep",
    "VerifyPackageStep",
]
