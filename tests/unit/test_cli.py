# tests/unit/test_cli.py
"""
CLI unit tests.

Tests each command via typer's CliRunner with the store and lifecycle
replaced by mocks, so nothing touches the user's config or database.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from tool_exporter.cli import _fmt_duration, _fmt_size, app
from tool_exporter.config.schema import ToolExporterConfig
from tool_exporter.errors import InvalidTransition, PreflightFailed
from tool_exporter.models.jobs import ExportJob, JobStatus, ToolType
from tool_exporter.validation.preflight import ValidationResult

runner = CliRunner()

JOB_ID_1 = "0123456789abcdef0123456789abcdef"
JOB_ID_2 = "fedcba9876543210fedcba9876543210"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _make_job(
    job_id=JOB_ID_1,
    tool_id="contact-form",
    status=JobStatus.PENDING,
    steps_completed=0,
    package_path=None,
    error_message=None,
):
    created = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return ExportJob(
        job_id=job_id,
        tool_id=tool_id,
        tool_type=ToolType.FORMS,
        status=status,
        steps_total=4,
        steps_completed=steps_completed,
        created_at=created,
        updated_at=created,
        package_path=package_path,
        package_size_bytes=2048 if package_path else None,
        package_checksum="a" * 64 if package_path else None,
        package_expires_at=created if package_path else None,
        error_message=error_message,
    )


def _mock_store(*jobs):
    store = AsyncMock()
    store.get.return_value = jobs[0] if jobs else None
    store.list_jobs.return_value = list(jobs)
    return store


def _mock_lifecycle():
    lifecycle = MagicMock()
    lifecycle.shutdown = AsyncMock()
    lifecycle.runner.submit = AsyncMock()
    lifecycle.runner.cancel = AsyncMock()
    lifecycle.runner.preflight = AsyncMock()
    return lifecycle


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestHelp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "Export form-builder tools" in result.output

    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("export", "run", "list", "status", "cancel", "preflight", "wait", "serve", "http"):
            assert command in result.output


class TestFormatting:
    def test_duration(self):
        assert _fmt_duration(42) == "42s"
        assert _fmt_duration(317) == "5m17s"

    def test_size(self):
        assert _fmt_size(None) == "-"
        assert _fmt_size(512) == "512B"
        assert _fmt_size(2048) == "2.0KB"


class TestExport:
    @patch("tool_exporter.cli._load_config", return_value=ToolExporterConfig())
    @patch("tool_exporter.cli._get_lifecycle")
    def test_detach_queues_job(self, mock_lifecycle, mock_config):
        lifecycle = _mock_lifecycle()
        lifecycle.runner.submit.return_value = (_make_job(), ValidationResult("contact-form", ToolType.FORMS))
        mock_lifecycle.return_value = lifecycle

        result = runner.invoke(app, ["export", "contact-form", "--detach"])

        assert result.exit_code == 0
        assert f"Queued job {JOB_ID_1}" in result.output
        lifecycle.runner.submit.assert_awaited_once_with("contact-form", dispatch=False)
        lifecycle.shutdown.assert_awaited_once()

    @patch("tool_exporter.cli._load_config", return_value=ToolExporterConfig())
    @patch("tool_exporter.cli._get_lifecycle")
    def test_warnings_are_printed(self, mock_lifecycle, mock_config):
        validation = ValidationResult("contact-form", ToolType.FORMS)
        validation.warn("tool_status", "Tool 'contact-form' is draft")
        lifecycle = _mock_lifecycle()
        lifecycle.runner.submit.return_value = (_make_job(), validation)
        mock_lifecycle.return_value = lifecycle

        result = runner.invoke(app, ["export", "contact-form", "-d"])

        assert result.exit_code == 0
        assert "Warning: Tool 'contact-form' is draft" in result.output

    @patch("tool_exporter.cli._load_config", return_value=ToolExporterConfig())
    @patch("tool_exporter.cli._get_lifecycle")
    def test_preflight_failure_exits_1(self, mock_lifecycle, mock_config):
        validation = ValidationResult("ghost")
        validation.error("tool_not_found", "Tool 'ghost' not found")
        lifecycle = _mock_lifecycle()
        lifecycle.runner.submit.side_effect = PreflightFailed("ghost", validation)
        mock_lifecycle.return_value = lifecycle

        result = runner.invoke(app, ["export", "ghost", "--detach"])

        assert result.exit_code == 1
        assert "Error: Tool 'ghost' cannot be exported" in result.output
        lifecycle.shutdown.assert_awaited_once()


class TestList:
    @patch("tool_exporter.cli._get_store")
    def test_list_empty(self, mock_store):
        mock_store.return_value = _mock_store()

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "No exports found." in result.output

    @patch("tool_exporter.cli._get_store")
    def test_list_shows_jobs(self, mock_store):
        mock_store.return_value = _mock_store(
            _make_job(JOB_ID_2, status=JobStatus.FAILED, error_message="boom"),
            _make_job(JOB_ID_1),
        )

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert JOB_ID_1 in result.output
        assert JOB_ID_2 in result.output
        assert "failed" in result.output

    @patch("tool_exporter.cli._get_store")
    def test_list_passes_filters(self, mock_store):
        store = _mock_store()
        mock_store.return_value = store

        runner.invoke(app, ["list", "--tool", "contact-form", "--status", "completed", "-n", "5"])

        store.list_jobs.assert_awaited_once_with(
            tool_id="contact-form", status=JobStatus.COMPLETED, limit=5
        )

    @patch("tool_exporter.cli._get_store")
    def test_list_bad_status(self, mock_store):
        mock_store.return_value = _mock_store()

        result = runner.invoke(app, ["list", "--status", "done"])

        assert result.exit_code == 1
        assert "Invalid status" in result.output


class TestStatus:
    @patch("tool_exporter.cli._get_store")
    def test_completed_job(self, mock_store):
        mock_store.return_value = _mock_store(
            _make_job(status=JobStatus.COMPLETED, steps_completed=4, package_path="/tmp/p.tar.gz")
        )

        result = runner.invoke(app, ["status", JOB_ID_1])

        assert result.exit_code == 0
        assert "completed" in result.output
        assert "4/4 (100%)" in result.output
        assert "/tmp/p.tar.gz (2.0KB)" in result.output

    @patch("tool_exporter.cli._get_store")
    def test_failed_job_shows_error(self, mock_store):
        mock_store.return_value = _mock_store(
            _make_job(status=JobStatus.FAILED, steps_completed=2, error_message="Export failed: boom")
        )

        result = runner.invoke(app, ["status", JOB_ID_1])

        assert "Export failed: boom" in result.output

    @patch("tool_exporter.cli._get_store")
    def test_unknown_job(self, mock_store):
        mock_store.return_value = _mock_store()

        result = runner.invoke(app, ["status", JOB_ID_1])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestCancel:
    @patch("tool_exporter.cli._get_lifecycle")
    def test_cancel(self, mock_lifecycle):
        lifecycle = _mock_lifecycle()
        lifecycle.runner.cancel.return_value = _make_job(status=JobStatus.CANCELLED, steps_completed=1)
        mock_lifecycle.return_value = lifecycle

        result = runner.invoke(app, ["cancel", JOB_ID_1])

        assert result.exit_code == 0
        assert "cancelled after 1 step(s)" in result.output
        lifecycle.shutdown.assert_awaited_once()

    @patch("tool_exporter.cli._get_lifecycle")
    def test_cancel_terminal_job(self, mock_lifecycle):
        lifecycle = _mock_lifecycle()
        lifecycle.runner.cancel.side_effect = InvalidTransition(
            JOB_ID_1, "completed", "cancelled", "job is terminal"
        )
        mock_lifecycle.return_value = lifecycle

        result = runner.invoke(app, ["cancel", JOB_ID_1])

        assert result.exit_code == 1
        assert "job is terminal" in result.output


class TestPreflight:
    @patch("tool_exporter.cli._get_lifecycle")
    def test_exportable(self, mock_lifecycle):
        lifecycle = _mock_lifecycle()
        lifecycle.runner.preflight.return_value = ValidationResult("contact-form", ToolType.FORMS)
        mock_lifecycle.return_value = lifecycle

        result = runner.invoke(app, ["preflight", "contact-form"])

        assert result.exit_code == 0
        assert "contact-form is exportable (forms)" in result.output

    @patch("tool_exporter.cli._get_lifecycle")
    def test_blocked(self, mock_lifecycle):
        validation = ValidationResult("old-form", ToolType.FORMS)
        validation.error("tool_not_exportable", "Tool 'old-form' is archived")
        lifecycle = _mock_lifecycle()
        lifecycle.runner.preflight.return_value = validation
        mock_lifecycle.return_value = lifecycle

        result = runner.invoke(app, ["preflight", "old-form"])

        assert result.exit_code == 1
        assert "tool_not_exportable" in result.output


class TestWait:
    @patch("tool_exporter.cli._load_config", return_value=ToolExporterConfig())
    @patch("tool_exporter.cli._get_store")
    def test_wait_completed_prints_package(self, mock_store, mock_config):
        mock_store.return_value = _mock_store(
            _make_job(status=JobStatus.COMPLETED, steps_completed=4, package_path="/tmp/p.tar.gz")
        )

        result = runner.invoke(app, ["wait", JOB_ID_1])

        assert result.exit_code == 0
        assert "/tmp/p.tar.gz" in result.output

    @patch("tool_exporter.cli._load_config", return_value=ToolExporterConfig())
    @patch("tool_exporter.cli._get_store")
    def test_wait_failed_exits_1(self, mock_store, mock_config):
        mock_store.return_value = _mock_store(
            _make_job(status=JobStatus.FAILED, error_message="Export failed: boom")
        )

        result = runner.invoke(app, ["wait", JOB_ID_1])

        assert result.exit_code == 1
        assert "Export failed: boom" in result.output

    @patch("tool_exporter.cli._load_config", return_value=ToolExporterConfig())
    @patch("tool_exporter.cli._get_store")
    def test_wait_times_out(self, mock_store, mock_config):
        mock_store.return_value = _mock_store(_make_job(status=JobStatus.IN_PROGRESS))

        result = runner.invoke(app, ["wait", JOB_ID_1, "--timeout", "0", "--interval", "0.01"])

        assert result.exit_code == 2
        assert "Timed out" in result.output
