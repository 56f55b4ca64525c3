"""CLI commands for inspecting and maintaining analysis records."""

import json
import logging

import click

from optimarr.cli import get_db_path, get_pipeline
from optimarr.cli.exit_codes import ExitCode
from optimarr.db.connection import get_connection
from optimarr.db.queries import get_analysis
from optimarr.db.types import VideoAnalysisRecord
from optimarr.introspector import ExtractorUnavailableError
from optimarr.jobs.exceptions import RecordNotFoundError
from optimarr.rating.config import RatingConfigError
from optimarr.scanner.analysis import recalculate_all, recalculate_record

logger = logging.getLogger(__name__)


def _format_record(record: VideoAnalysisRecord) -> list[str]:
    """Human-readable lines describing one record."""
    lines = [f"{record.path}", f"  Analyzed:   {record.analyzed_at}"]
    if record.is_broken:
        lines.append(f"  BROKEN:     {record.broken_reason}")
        return lines

    lines.append(f"  Container:  {record.container}")
    video = f"{record.video_codec} {record.bit_depth}-bit"
    if record.resolution:
        video += f" {record.resolution}"
    if record.hdr_type:
        video += f" {record.hdr_type}"
    lines.append(f"  Video:      {video}")
    for track in record.audio_tracks:
        lines.append(f"  Audio:      {track.codec} {track.channels}ch ({track.language})")
    for track in record.subtitle_tracks:
        source = "embedded" if track.embedded else "external"
        lines.append(f"  Subtitle:   {track.format} ({track.language}, {source})")
    lines.append(
        f"  Score:      {record.score} ({record.category})  "
        f"direct play {record.direct_play_clients}, remux {record.remux_clients}, "
        f"transcode {record.transcode_clients}"
    )
    for issue in record.issues:
        lines.append(f"  Issue:      {issue}")
    for recommendation in record.recommendations:
        lines.append(f"  Suggest:    {recommendation}")
    if record.is_matched:
        origin = f"{record.origin_system.value}: {record.origin_title}"
        if record.season_number is not None and record.episode_number is not None:
            origin += f" S{record.season_number:02d}E{record.episode_number:02d}"
        elif record.year:
            origin += f" ({record.year})"
        lines.append(f"  Origin:     {origin}")
    return lines


@click.group("analysis")
def analysis_group() -> None:
    """Inspect and maintain analysis records."""
    pass


@analysis_group.command("show")
@click.argument("record_id", type=int)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_analysis(ctx: click.Context, record_id: int, json_output: bool) -> None:
    """Show one analysis record."""
    with get_connection(get_db_path(ctx)) as conn:
        record = get_analysis(conn, record_id)
    if record is None:
        click.echo(f"Error: Record not found: {record_id}", err=True)
        ctx.exit(ExitCode.TARGET_NOT_FOUND)

    if json_output:
        click.echo(json.dumps(record.to_dict(), indent=2))
        return
    for line in _format_record(record):
        click.echo(line)


@analysis_group.command("recalculate")
@click.argument("record_id", type=int, required=False)
@click.option("--all", "all_records", is_flag=True, help="Re-rate every record.")
@click.option(
    "--library",
    "library_path_id",
    type=int,
    default=None,
    help="With --all, only records under this library path.",
)
@click.pass_context
def recalculate(
    ctx: click.Context,
    record_id: int | None,
    all_records: bool,
    library_path_id: int | None,
) -> None:
    """Re-rate records from stored attributes without re-extracting."""
    if (record_id is None) == (not all_records):
        raise click.UsageError("Give either RECORD_ID or --all.")

    try:
        config = ctx.obj["rating_loader"]()
    except RatingConfigError as e:
        click.echo(f"Error: Invalid rating configuration: {e}", err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)

    with get_connection(get_db_path(ctx)) as conn:
        if all_records:
            summary = recalculate_all(conn, config, library_path_id=library_path_id)
            click.echo(
                f"Recalculated {summary.recalculated} record(s); "
                f"{summary.changed} changed."
            )
            return

        try:
            result = recalculate_record(conn, record_id, config)
        except RecordNotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(ExitCode.TARGET_NOT_FOUND)
        conn.commit()

    if result is None:
        click.echo(f"Record {record_id} is broken; nothing to rate.")
    else:
        click.echo(
            f"Record {record_id}: score {result.score} ({result.category.value})"
        )


@analysis_group.command("rescan")
@click.argument("record_id", type=int)
@click.pass_context
def rescan(ctx: click.Context, record_id: int) -> None:
    """Re-extract and re-rate one file."""
    try:
        record = get_pipeline(ctx).rescan_file(record_id)
    except ExtractorUnavailableError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.TOOL_NOT_AVAILABLE)
    except (RecordNotFoundError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.TARGET_NOT_FOUND)
    except RatingConfigError as e:
        click.echo(f"Error: Invalid rating configuration: {e}", err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)

    for line in _format_record(record):
        click.echo(line)


@analysis_group.command("rescan-processing")
@click.pass_context
def rescan_processing(ctx: click.Context) -> None:
    """Re-analyze records stuck in Processing past the configured age."""
    try:
        summary = get_pipeline(ctx).rescan_stale_processing()
    except ExtractorUnavailableError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.TOOL_NOT_AVAILABLE)
    click.echo(
        f"Rescanned {summary.rescanned}, removed {summary.removed}, "
        f"failed {summary.failed}."
    )
