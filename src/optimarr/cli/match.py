"""CLI commands for matching records to Sonarr/Radarr."""

import json
import logging

import click

from optimarr.cli import get_db_path
from optimarr.cli.exit_codes import ExitCode
from optimarr.db.connection import get_connection
from optimarr.db.queries import get_library_path
from optimarr.matching import ServarrMatcher

logger = logging.getLogger(__name__)


@click.group("match")
def match_group() -> None:
    """Match analysis records to Sonarr episodes and Radarr movies."""
    pass


@match_group.command("run")
@click.option(
    "--library",
    "library_path_id",
    type=int,
    default=None,
    help="Only match records under this library path.",
)
@click.option("--json", "json_output", is_flag=True, help="Output summary as JSON.")
@click.pass_context
def run_match(ctx: click.Context, library_path_id: int | None, json_output: bool) -> None:
    """Match unmatched records by file path.

    Records that are already matched are left as they are.
    """
    sources = ctx.obj["sources_factory"]()
    if not sources:
        click.echo(
            "Error: No Sonarr or Radarr connection configured "
            "(see [servarr.sonarr] / [servarr.radarr] in config.toml).",
            err=True,
        )
        ctx.exit(ExitCode.CONFIG_ERROR)

    def progress_callback(processed: int, total: int) -> None:
        if not json_output and processed and processed % 100 == 0:
            click.echo(f"  Progress: {processed}/{total} records...", err=True)

    try:
        with get_connection(get_db_path(ctx)) as conn:
            if library_path_id is not None and get_library_path(conn, library_path_id) is None:
                click.echo(f"Error: Library path not found: {library_path_id}", err=True)
                ctx.exit(ExitCode.TARGET_NOT_FOUND)
            matcher = ServarrMatcher(conn, sources, progress_callback=progress_callback)
            summary = matcher.match_all(library_path_id=library_path_id)
    finally:
        for source in sources:
            source.close()

    if json_output:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        click.echo(
            f"Processed {summary.processed}: {summary.matched} matched, "
            f"{summary.unmatched} unmatched, {summary.errors} error(s)."
        )
    if summary.errors:
        ctx.exit(ExitCode.OPERATION_FAILED)
