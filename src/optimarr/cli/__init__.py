"""CLI module for optimarr."""

import logging
from pathlib import Path

import click

from optimarr.config import get_config, load_rating_config
from optimarr.config.models import LoggingConfig, OptimarrConfig
from optimarr.cli.exit_codes import ExitCode
from optimarr.db.connection import (
    DatabaseLockedError,
    get_connection,
    handle_database_locked,
)
from optimarr.db.schema import initialize_database
from optimarr.introspector import FFprobeExtractor
from optimarr.jobs.progress import ProgressTracker
from optimarr.logging import configure_logging
from optimarr.servarr import build_clients
from optimarr.service import MediaPipeline

_logging_configured: bool = False

logger = logging.getLogger(__name__)


def _configure_logging(config: LoggingConfig) -> None:
    """Configure logging once per process."""
    global _logging_configured
    if _logging_configured:
        return
    configure_logging(config)
    _logging_configured = True


def get_db_path(ctx: click.Context) -> Path:
    return ctx.obj["db_path"]


def get_pipeline(ctx: click.Context) -> MediaPipeline:
    """Build the MediaPipeline for this invocation (once).

    Raises:
        ExtractorUnavailableError: If ffprobe cannot be found.
    """
    if "pipeline" not in ctx.obj:
        config: OptimarrConfig = ctx.obj["config"]
        ctx.obj["pipeline"] = MediaPipeline(
            ctx.obj["db_path"],
            ctx.obj["extractor_factory"](),
            ProgressTracker(retention_seconds=config.scan.progress_retention_seconds),
            ctx.obj["rating_loader"],
            ctx.obj["sources_factory"](),
            processing_rescan_hours=config.scan.processing_rescan_hours,
        )
    return ctx.obj["pipeline"]


@click.group()
@click.version_option(package_name="optimarr")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: ~/.optimarr/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """optimarr - Rate video libraries for direct-play compatibility."""
    ctx.ensure_object(dict)

    config = get_config(
        config_path=config_path,
        log_level=log_level,
        log_file=log_file,
        log_format="json" if log_json else None,
    )
    _configure_logging(config.logging)

    ctx.obj["config"] = config
    ctx.obj["db_path"] = config.database_path

    # Factories may be preset by the caller (tests inject fakes)
    ctx.obj.setdefault(
        "extractor_factory",
        lambda: FFprobeExtractor(
            config.tools.ffprobe,
            timeout_seconds=config.scan.extraction_timeout_seconds,
        ),
    )
    ctx.obj.setdefault(
        "rating_loader", lambda: load_rating_config(config.config_path)
    )
    ctx.obj.setdefault("sources_factory", lambda: build_clients(config.servarr))

    try:
        _initialize_database(config.database_path)
    except DatabaseLockedError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo(
            "Hint: Wait for the running scan to finish or use a different "
            "OPTIMARR_DATABASE_PATH.",
            err=True,
        )
        ctx.exit(ExitCode.DATABASE_ERROR)


@handle_database_locked
def _initialize_database(db_path: Path) -> None:
    with get_connection(db_path) as conn:
        initialize_database(conn)
        conn.commit()


# Defer import to avoid circular dependency
def _register_commands():
    from optimarr.cli.analysis import analysis_group
    from optimarr.cli.library import library_group
    from optimarr.cli.match import match_group
    from optimarr.cli.scan import scan_group
    from optimarr.cli.servarr import servarr_group

    main.add_command(library_group)
    main.add_command(scan_group)
    main.add_command(analysis_group)
    main.add_command(match_group)
    main.add_command(servarr_group)


_register_commands()
