"""Background execution: job runner, lifecycle, and signal handling."""

from .lifecycle import ServiceLifecycle
from .runner import ExportJobRunner

__all__ = ["ExportJobRunner", "ServiceLifecycle"]
