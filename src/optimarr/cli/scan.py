"""CLI commands for library scans."""

import json
import logging
import sys
from datetime import timedelta

import click

from optimarr.cli import get_db_path, get_pipeline
from optimarr.cli.exit_codes import ExitCode
from optimarr.db.connection import get_connection
from optimarr.db.queries import (
    fail_orphaned_scans,
    get_scan,
    list_failed_files,
    list_scans,
)
from optimarr.db.types import FailureType, ScanStatus
from optimarr.introspector import ExtractorUnavailableError
from optimarr.jobs.exceptions import (
    LibraryPathNotFoundError,
    ScanConflictError,
    ScanNotFoundError,
    ScanStateError,
)
from optimarr.jobs.progress import OperationProgress

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5


def format_progress_line(progress: OperationProgress) -> str:
    """One-line progress summary for terminal display."""
    total = progress.total if progress.total is not None else "?"
    parts = [f"[{progress.processed}/{total}]"]
    if progress.percent is not None:
        parts.append(f"{progress.percent:5.1f}%")
    if progress.items_per_second is not None:
        parts.append(f"{progress.items_per_second:.1f} files/s")
    if progress.eta_seconds is not None:
        parts.append(f"ETA {timedelta(seconds=int(progress.eta_seconds))}")
    if progress.errors:
        parts.append(f"{progress.errors} error(s)")
    if progress.current_item:
        parts.append(progress.current_item)
    return "  ".join(parts)


class ProgressDisplay:
    """Rewrites a single stderr line while a scan runs (TTY only)."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled and sys.stderr.isatty()
        self._width = 0

    def show(self, progress: OperationProgress) -> None:
        if not self.enabled:
            return
        line = format_progress_line(progress)
        padding = max(0, self._width - len(line))
        click.echo("\r" + line + " " * padding, err=True, nl=False)
        self._width = len(line)

    def finish(self) -> None:
        if self.enabled and self._width:
            click.echo(err=True)
            self._width = 0


@click.group("scan")
def scan_group() -> None:
    """Run and inspect library scans."""
    pass


@scan_group.command("run")
@click.argument("library_path_id", type=int)
@click.option("--json", "json_output", is_flag=True, help="Output summary as JSON.")
@click.pass_context
def run_scan(ctx: click.Context, library_path_id: int, json_output: bool) -> None:
    """Scan a library path in the foreground.

    Press Ctrl+C to cancel; files already analyzed are kept.
    """
    try:
        pipeline = get_pipeline(ctx)
    except ExtractorUnavailableError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.TOOL_NOT_AVAILABLE)

    try:
        scan_id = pipeline.start_scan(library_path_id)
    except LibraryPathNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.TARGET_NOT_FOUND)
    except ScanConflictError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.CONFLICT)

    display = ProgressDisplay(enabled=not json_output)
    interrupted = False
    try:
        while pipeline.orchestrator.is_active(scan_id):
            progress = pipeline.get_scan_progress(scan_id)
            if progress is not None:
                display.show(progress)
            pipeline.orchestrator.wait(scan_id, timeout=POLL_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        interrupted = True
        display.finish()
        click.echo("Cancelling scan...", err=True)
        try:
            pipeline.cancel_scan(scan_id)
        except ScanStateError:
            pass  # finished while the interrupt was handled
        pipeline.orchestrator.wait(scan_id)
    display.finish()

    progress = pipeline.get_scan_progress(scan_id)
    with get_connection(get_db_path(ctx)) as conn:
        scan = get_scan(conn, scan_id)

    if json_output:
        summary = None if scan is None else {
            "scan_id": scan_id,
            "status": scan.status.value,
            "total": scan.total_files,
            "processed": scan.processed_files,
            "failed": scan.failed_files,
            "healthy": progress.secondary if progress else None,
            "error": scan.error_message,
        }
        click.echo(json.dumps(summary, indent=2))
    elif scan is not None:
        click.echo(f"Scan {scan_id}: {scan.status.value}")
        click.echo(f"  Files:     {scan.total_files or 0}")
        click.echo(f"  Processed: {scan.processed_files}")
        if progress is not None:
            click.echo(f"  Broken:    {scan.processed_files - progress.secondary}")
        click.echo(f"  Failed:    {scan.failed_files}")
        if scan.error_message:
            click.echo(f"  Error:     {scan.error_message}")

    if interrupted:
        ctx.exit(ExitCode.INTERRUPTED)
    if scan is None or scan.status == ScanStatus.FAILED:
        ctx.exit(ExitCode.OPERATION_FAILED)


@scan_group.command("cancel")
@click.argument("scan_id", type=int)
@click.pass_context
def cancel_scan_cmd(ctx: click.Context, scan_id: int) -> None:
    """Cancel a scan left active by another process."""
    try:
        get_pipeline(ctx).cancel_scan(scan_id)
    except (ScanNotFoundError, ScanStateError, ExtractorUnavailableError) as e:
        raise click.ClickException(str(e))
    click.echo(f"Cancelled scan {scan_id}")


@scan_group.command("list")
@click.option("--library", "library_path_id", type=int, default=None, help="Library path ID.")
@click.option("--limit", "-n", type=int, default=20, help="Maximum number of scans.")
@click.pass_context
def list_scans_cmd(ctx: click.Context, library_path_id: int | None, limit: int) -> None:
    """List recent scans."""
    with get_connection(get_db_path(ctx)) as conn:
        scans = list_scans(conn, library_path_id=library_path_id, limit=limit)

    if not scans:
        click.echo("No scans found.")
        return

    status_colors = {
        ScanStatus.PENDING: "yellow",
        ScanStatus.RUNNING: "blue",
        ScanStatus.COMPLETED: "green",
        ScanStatus.FAILED: "red",
        ScanStatus.CANCELLED: "bright_black",
    }
    click.echo(
        f"{'ID':<6} {'LIB':<5} {'STATUS':<11} {'TOTAL':>6} {'DONE':>6} "
        f"{'FAILED':>6}  STARTED"
    )
    click.echo("-" * 70)
    for scan in scans:
        status = click.style(
            f"{scan.status.value:<11}", fg=status_colors.get(scan.status, "white")
        )
        started = (scan.started_at or "-")[:19].replace("T", " ")
        total = scan.total_files if scan.total_files is not None else "-"
        click.echo(
            f"{scan.id:<6} {scan.library_path_id:<5} {status} {total:>6} "
            f"{scan.processed_files:>6} {scan.failed_files:>6}  {started}"
        )


@scan_group.command("failures")
@click.argument("scan_id", type=int)
@click.option(
    "--type",
    "error_type",
    type=click.Choice([t.value for t in FailureType]),
    default=None,
    help="Only show one kind of failure.",
)
@click.pass_context
def list_failures(ctx: click.Context, scan_id: int, error_type: str | None) -> None:
    """List files that failed during a scan."""
    with get_connection(get_db_path(ctx)) as conn:
        if get_scan(conn, scan_id) is None:
            raise click.ClickException(f"Scan not found: {scan_id}")
        failures = list_failed_files(
            conn, scan_id, FailureType(error_type) if error_type else None
        )

    if not failures:
        click.echo("No failures recorded.")
        return

    for failure in failures:
        retries = f" (x{failure.retry_count + 1})" if failure.retry_count else ""
        click.echo(f"[{failure.error_type.value}] {failure.path}{retries}")
        click.echo(f"    {failure.message}")


@scan_group.command("reconcile")
@click.pass_context
def reconcile_scans(ctx: click.Context) -> None:
    """Mark scans left running by a stopped process as failed.

    Only run this when no other optimarr process is scanning.
    """
    with get_connection(get_db_path(ctx)) as conn:
        count = fail_orphaned_scans(conn)
        conn.commit()
    click.echo(f"Marked {count} orphaned scan(s) as failed.")
