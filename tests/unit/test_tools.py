# tests/unit/test_tools.py
"""
Tests for the MCP tool implementations.

Tool functions are called directly with a runner or store; FastMCP
registration is a thin wrapper around them.
"""

import asyncio
from pathlib import Path

import pytest
from fastmcp.exceptions import ToolError

from conftest import GateStep, build_runner, make_form, make_strategy, wait_terminal
from tool_exporter.models.jobs import JobStatus
from tool_exporter.snapshots.source import InMemorySnapshotSource
from tool_exporter.tools import (
    cancel_export,
    check_export_status,
    list_exports,
    preflight_export,
    start_export,
)


@pytest.mark.asyncio
async def test_start_export_returns_pending_job(tmp_path: Path, snapshots):
    runner = build_runner(tmp_path, snapshots)

    result = await start_export("contact-form", runner=runner)

    assert result["status"] == "pending"
    assert result["tool_type"] == "forms"
    assert result["steps_total"] == 4
    assert result["warnings"] == []
    assert "check_export_status" in result["next_steps"]
    await wait_terminal(runner.store, result["job_id"])


@pytest.mark.asyncio
async def test_start_export_reports_warnings(tmp_path: Path):
    snapshots = InMemorySnapshotSource([make_form(tmp_path, status="draft")])
    runner = build_runner(tmp_path, snapshots)

    result = await start_export("contact-form", runner=runner)

    assert len(result["warnings"]) == 1
    await wait_terminal(runner.store, result["job_id"])


@pytest.mark.asyncio
@pytest.mark.parametrize("tool_id, match", [("../etc", "Invalid tool ID"), ("missing", "not found")])
async def test_start_export_errors(tmp_path: Path, snapshots, tool_id: str, match: str):
    runner = build_runner(tmp_path, snapshots)

    with pytest.raises(ToolError, match=match):
        await start_export(tool_id, runner=runner)


@pytest.mark.asyncio
async def test_start_export_after_shutdown(tmp_path: Path, snapshots):
    runner = build_runner(tmp_path, snapshots)
    await runner.shutdown()

    with pytest.raises(ToolError):
        await start_export("contact-form", runner=runner)


@pytest.mark.asyncio
async def test_check_export_status(tmp_path: Path, snapshots):
    runner = build_runner(tmp_path, snapshots)
    job = await runner.start("contact-form")
    await wait_terminal(runner.store, job.job_id)

    result = await check_export_status(job.job_id, store=runner.store)

    assert result["status"] == "completed"
    assert result["progress"] == 100
    assert result["package_path"].endswith(".tar.gz")
    assert len(result["package_checksum"]) == 64


@pytest.mark.asyncio
@pytest.mark.parametrize("job_id, match", [("bad id", "Invalid job ID"), ("0" * 32, "not found")])
async def test_check_export_status_errors(tmp_path: Path, snapshots, job_id: str, match: str):
    runner = build_runner(tmp_path, snapshots)

    with pytest.raises(ToolError, match=match):
        await check_export_status(job_id, store=runner.store)


@pytest.mark.asyncio
async def test_cancel_export(tmp_path: Path, snapshots):
    gate = GateStep()
    runner = build_runner(tmp_path, snapshots, strategy=make_strategy(gate), max_concurrent_jobs=1)
    first = await runner.start("contact-form")
    await asyncio.wait_for(gate.entered.wait(), timeout=5)
    queued = await runner.start("contact-form")

    result = await cancel_export(queued.job_id, runner=runner)

    assert result["status"] == "cancelled"
    assert result["steps_completed"] == 0
    gate.release.set()
    await wait_terminal(runner.store, first.job_id)


@pytest.mark.asyncio
async def test_cancel_export_terminal_and_unknown(tmp_path: Path, snapshots):
    runner = build_runner(tmp_path, snapshots)
    job = await runner.start("contact-form")
    await wait_terminal(runner.store, job.job_id)

    with pytest.raises(ToolError, match="terminal"):
        await cancel_export(job.job_id, runner=runner)
    with pytest.raises(ToolError, match="list_exports"):
        await cancel_export("0" * 32, runner=runner)


@pytest.mark.asyncio
async def test_list_exports_filters(tmp_path: Path, snapshots):
    runner = build_runner(tmp_path, snapshots)
    form = await runner.start("contact-form")
    theme = await runner.start("brand-theme")
    await wait_terminal(runner.store, form.job_id)
    await wait_terminal(runner.store, theme.job_id)

    everything = await list_exports(store=runner.store)
    themes = await list_exports(store=runner.store, tool_id="brand-theme")
    failed = await list_exports(store=runner.store, status="failed")

    assert everything["total"] == 2
    assert [e["job_id"] for e in everything["exports"]] == [theme.job_id, form.job_id]
    assert [e["tool_type"] for e in themes["exports"]] == ["themes"]
    assert failed["exports"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"status": "done"}, "Invalid status"),
        ({"limit": 0}, "limit"),
        ({"limit": 501}, "limit"),
        ({"tool_id": "a/b"}, "Invalid tool ID"),
    ],
)
async def test_list_exports_rejects_bad_filters(tmp_path: Path, snapshots, kwargs, match):
    runner = build_runner(tmp_path, snapshots)

    with pytest.raises(ToolError, match=match):
        await list_exports(store=runner.store, **kwargs)


@pytest.mark.asyncio
async def test_preflight_export(tmp_path: Path, snapshots):
    runner = build_runner(tmp_path, snapshots)

    ok = await preflight_export("onboarding", runner=runner)
    missing = await preflight_export("missing", runner=runner)

    assert ok["exportable"] is True
    assert ok["tool_type"] == "workflows"
    assert missing["exportable"] is False
    assert missing["errors"][0]["code"] == "tool_not_found"
    assert await runner.store.list_jobs() == []
