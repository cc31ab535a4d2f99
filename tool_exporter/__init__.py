"""tool-exporter: packages form-builder tools as standalone deployable services."""

__version__ = "0.1.0"
