# tool_exporter/cli.py
"""
CLI interface for tool-exporter.

Thin presentation layer over the tools/ service layer.
All commands delegate to the same functions that MCP wraps.
"""

import asyncio
import time


def _fmt_duration(seconds: float) -> str:
    """Format seconds as human-readable duration (e.g. '5m17s', '42s')."""
    s = int(seconds)
    if s < 60:
        return f"{s}s"
    m, s = divmod(s, 60)
    return f"{m}m{s:02d}s"


def _fmt_size(size: int | None) -> str:
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{size}B"


import typer

app = typer.Typer(
    name="tool-exporter",
    help="Export form-builder tools as standalone deployable packages.",
    no_args_is_help=True,
)

TERMINAL = ("completed", "failed", "cancelled")


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _load_config():
    from tool_exporter.config.loader import load_config

    return load_config()


def _configure_cli_logging(config) -> None:
    from tool_exporter.logging_config import configure_logging

    configure_logging(config.logging.level, json_format=False)


async def _get_store():
    """Open SQLiteJobStore directly (no lifecycle needed for read-only ops)."""
    from tool_exporter.models.sqlite_store import SQLiteJobStore

    config = _load_config()
    store = SQLiteJobStore(config.storage.db_path)
    await store.initialize()
    return store


async def _get_lifecycle():
    """
    Build a started lifecycle for one-shot commands.

    Skips crash recovery and pending-job resumption so a concurrently running
    worker keeps ownership of its jobs.
    """
    from tool_exporter.background.lifecycle import ServiceLifecycle

    lifecycle = ServiceLifecycle(_load_config())
    await lifecycle.startup(recover=False, resume_pending=False)
    return lifecycle


def _state_color(state: str) -> str:
    """Return ANSI color for job status."""
    colors = {
        "completed": typer.colors.GREEN,
        "in_progress": typer.colors.YELLOW,
        "pending": typer.colors.CYAN,
        "failed": typer.colors.RED,
        "cancelled": typer.colors.MAGENTA,
    }
    return colors.get(state, typer.colors.WHITE)


def _make_live_display(tool_id: str, labels: list[str], job, elapsed: float):
    """Build a rich renderable for the live progress display."""
    from rich.console import Group
    from rich.panel import Panel
    from rich.table import Table
    from rich.text import Text

    completed = job.steps_completed if job else 0
    running = job is not None and job.status.value == "in_progress"

    table = Table.grid(padding=(0, 2))
    table.add_column(width=3)
    table.add_column()

    rows = list(labels) + ["Packaging archive"]
    for i, label in enumerate(rows):
        if i < completed or (job is not None and job.status.value == "completed"):
            icon, style = Text("✓", style="green"), "dim"
        elif i == completed and running:
            icon, style = Text("⟳", style="yellow"), "bold"
        else:
            icon, style = Text("○", style="dim"), "dim"
        table.add_row(icon, Text(label, style=style))

    progress = job.progress_percentage if job else 0
    bar_width = 36
    filled = progress * bar_width // 100
    bar = "█" * filled + "░" * (bar_width - filled)
    bar_text = Text(f"\n  {bar}  {progress}%  {_fmt_duration(elapsed)}", style="cyan")

    return Panel(
        Group(table, bar_text, Text("")),
        title=Text(f" Exporting {tool_id} ", style="bold"),
        border_style="bright_black",
    )


async def _run_inline(lifecycle, job_id: str, tool_id: str, labels: list[str]) -> None:
    """Poll a dispatched job with a live display, then print the outcome."""
    from rich.console import Console
    from rich.live import Live

    console = Console(stderr=True)
    store = lifecycle.store
    start = time.monotonic()
    worker = asyncio.create_task(lifecycle.runner.wait(job_id))

    try:
        with Live(
            _make_live_display(tool_id, labels, None, 0.0),
            console=console,
            refresh_per_second=4,
        ) as live:
            while not worker.done():
                job = await store.get(job_id)
                live.update(_make_live_display(tool_id, labels, job, time.monotonic() - start))
                await asyncio.sleep(0.3)
            job = await store.get(job_id)
            live.update(_make_live_display(tool_id, labels, job, time.monotonic() - start))
    except (KeyboardInterrupt, asyncio.CancelledError):
        try:
            await lifecycle.runner.cancel(job_id)
        except Exception as e:
            console.print(f"[red]Cancel failed:[/red] {e}")
        raise KeyboardInterrupt

    final = await store.get(job_id)
    elapsed = _fmt_duration(time.monotonic() - start)
    console.print()
    if final is None:
        raise typer.Exit(1)
    if final.status.value == "completed":
        console.print(f"[green]✓ Done[/green]  size: {_fmt_size(final.package_size_bytes)}  time: {elapsed}")
        console.print(f"[dim]sha256:[/dim] {final.package_checksum}")
        typer.echo(final.package_path)
    elif final.status.value == "cancelled":
        console.print("[magenta]✗ Cancelled[/magenta]")
        raise typer.Exit(1)
    else:
        console.print(f"[red]✗ Failed[/red]: {final.error_message or 'unknown error'}")
        raise typer.Exit(1)


@app.command()
def export(
    tool_id: str = typer.Argument(..., help="Tool to export"),
    detach: bool = typer.Option(False, "--detach", "-d", help="Queue only, don't run inline"),
):
    """Export a tool with live progress. Use --detach to queue only."""
    from tool_exporter.errors import PreflightFailed

    async def _export():
        lifecycle = await _get_lifecycle()
        try:
            job, result = await lifecycle.runner.submit(tool_id, dispatch=not detach)
            for issue in result.warnings:
                typer.echo(typer.style(f"Warning: {issue.message}", fg=typer.colors.YELLOW), err=True)

            if detach:
                typer.echo(f"Queued job {job.job_id}. Run 'tool-exporter run' to start processing.")
                return

            labels = lifecycle.strategies[job.tool_type].step_labels
            await _run_inline(lifecycle, job.job_id, job.tool_id, labels)
        finally:
            await lifecycle.shutdown()

    _configure_cli_logging(_load_config())
    try:
        _run(_export())
    except PreflightFailed as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        typer.echo("\nCancelled.", err=True)
        raise typer.Exit(130)


@app.command("run")
def run_worker():
    """Start the worker to process queued exports. Ctrl+C to stop."""
    from tool_exporter.background.lifecycle import ServiceLifecycle

    config = _load_config()
    _configure_cli_logging(config)

    async def _run_worker():
        stop = asyncio.Event()
        lifecycle = ServiceLifecycle(config)
        await lifecycle.startup(register_signals=True, stop_event=stop)
        typer.echo("Worker started. Processing queued exports... (Ctrl+C to stop)\n")
        try:
            await stop.wait()
        except (KeyboardInterrupt, asyncio.CancelledError):
            pass
        finally:
            typer.echo("\nShutting down...")
            await lifecycle.shutdown()

    try:
        _run(_run_worker())
    except KeyboardInterrupt:
        pass


@app.command("list")
def list_jobs(
    tool_id: str = typer.Option(None, "--tool", "-t", help="Only exports of this tool"),
    status: str = typer.Option(None, "--status", "-s", help="Only exports in this status"),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum number of exports"),
):
    """List export jobs, newest first."""
    from tool_exporter.tools.list_exports import list_exports

    async def _list():
        store = await _get_store()
        try:
            return await list_exports(store=store, tool_id=tool_id, status=status, limit=limit)
        finally:
            await store.close()

    try:
        result = _run(_list())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    exports = result["exports"]
    if not exports:
        typer.echo("No exports found.")
        return

    typer.echo(f"{'JOB ID':<34} {'STATUS':<12} {'TYPE':<10} {'PROGRESS':<9} TOOL")
    typer.echo("-" * 90)
    for e in exports:
        state = e["status"]
        typer.echo(
            f"{e['job_id']:<34} "
            + typer.style(f"{state:<12} ", fg=_state_color(state))
            + f"{e['tool_type']:<10} {str(e['progress']) + '%':<9} {e['tool_id']}"
        )


@app.command()
def status(job_id: str = typer.Argument(..., help="Job ID to check")):
    """Check the status of an export job."""
    from tool_exporter.tools.check_status import check_export_status

    async def _status():
        store = await _get_store()
        try:
            return await check_export_status(job_id, store=store)
        finally:
            await store.close()

    try:
        result = _run(_status())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    state = result["status"]
    typer.echo(f"Job:      {result['job_id']}")
    typer.echo(f"Tool:     {result['tool_id']} ({result['tool_type']})")
    typer.echo(typer.style(f"Status:   {state}", fg=_state_color(state)))
    typer.echo(f"Progress: {result['steps_completed']}/{result['steps_total']} ({result['progress']}%)")
    if result.get("current_step_name"):
        typer.echo(f"Step:     {result['current_step_name']}")
    if result.get("package_path"):
        typer.echo(f"Package:  {result['package_path']} ({_fmt_size(result['package_size_bytes'])})")
        typer.echo(f"SHA-256:  {result['package_checksum']}")
        typer.echo(f"Expires:  {result['package_expires_at']}")
    if result.get("error_message"):
        typer.echo(typer.style(f"Error:    {result['error_message']}", fg=typer.colors.RED))


@app.command()
def cancel(job_id: str = typer.Argument(..., help="Job ID to cancel")):
    """Cancel a pending or running export."""
    from tool_exporter.tools.cancel_export import cancel_export

    async def _cancel():
        lifecycle = await _get_lifecycle()
        try:
            return await cancel_export(job_id, runner=lifecycle.runner)
        finally:
            await lifecycle.shutdown()

    try:
        result = _run(_cancel())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Export {result['job_id']} cancelled after {result['steps_completed']} step(s).")


@app.command()
def preflight(tool_id: str = typer.Argument(..., help="Tool to check")):
    """Check whether a tool can be exported."""
    from tool_exporter.tools.preflight_export import preflight_export

    async def _preflight():
        lifecycle = await _get_lifecycle()
        try:
            return await preflight_export(tool_id, runner=lifecycle.runner)
        finally:
            await lifecycle.shutdown()

    try:
        result = _run(_preflight())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    for issue in result["errors"]:
        typer.echo(typer.style(f"✗ {issue['code']}: {issue['message']}", fg=typer.colors.RED))
    for issue in result["warnings"]:
        typer.echo(typer.style(f"! {issue['code']}: {issue['message']}", fg=typer.colors.YELLOW))

    if not result["exportable"]:
        raise typer.Exit(1)
    typer.echo(typer.style(f"✓ {tool_id} is exportable ({result['tool_type']})", fg=typer.colors.GREEN))


@app.command()
def wait(
    job_id: str = typer.Argument(..., help="Job ID to wait for"),
    timeout: float = typer.Option(None, "--timeout", help="Seconds before giving up (default from config)"),
    interval: float = typer.Option(None, "--interval", help="Seconds between polls (default from config)"),
):
    """Poll an export until it finishes. Exits 0 only when it completed."""
    from tool_exporter.tools.check_status import check_export_status

    config = _load_config()
    poll_timeout = timeout if timeout is not None else config.polling.timeout_seconds
    poll_interval = interval if interval is not None else config.polling.interval_seconds

    async def _wait():
        store = await _get_store()
        try:
            deadline = time.monotonic() + poll_timeout
            while True:
                result = await check_export_status(job_id, store=store)
                if result["status"] in TERMINAL:
                    return result
                if time.monotonic() >= deadline:
                    return None
                await asyncio.sleep(poll_interval)
        finally:
            await store.close()

    try:
        result = _run(_wait())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if result is None:
        typer.echo(f"Timed out after {_fmt_duration(poll_timeout)} waiting for {job_id}.", err=True)
        raise typer.Exit(2)

    state = result["status"]
    typer.echo(typer.style(f"{job_id}: {state}", fg=_state_color(state)))
    if state == "completed":
        typer.echo(result["package_path"])
        return
    if result.get("error_message"):
        typer.echo(f"Error: {result['error_message']}", err=True)
    raise typer.Exit(1)


@app.command()
def serve():
    """Start the MCP server on stdio."""
    from tool_exporter.__main__ import main

    asyncio.run(main())


@app.command()
def http(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", help="Bind port (default from config)"),
):
    """Start the HTTP API with uvicorn."""
    import uvicorn

    from tool_exporter.api.app import create_app
    from tool_exporter.background.lifecycle import ServiceLifecycle
    from tool_exporter.logging_config import configure_logging

    config = _load_config()
    configure_logging(config.logging.level, json_format=config.logging.json_format)

    application = create_app(ServiceLifecycle(config))
    uvicorn.run(
        application,
        host=host or config.http.host,
        port=port or config.http.port,
        log_config=None,
    )


if __name__ == "__main__":
    app()
