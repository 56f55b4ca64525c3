"""CLI commands for Sonarr/Radarr connections."""

import logging

import click

from optimarr.cli.exit_codes import ExitCode
from optimarr.servarr import ServarrConnectionError

logger = logging.getLogger(__name__)


@click.group("servarr")
def servarr_group() -> None:
    """Sonarr and Radarr connections."""
    pass


@servarr_group.command("check")
@click.pass_context
def check_connections(ctx: click.Context) -> None:
    """Validate every configured Sonarr/Radarr connection."""
    sources = ctx.obj["sources_factory"]()
    if not sources:
        click.echo("No Sonarr or Radarr connection configured.")
        return

    failed = 0
    for source in sources:
        try:
            source.validate_connection()
            click.echo(f"{source.app_name}: OK")
        except ServarrConnectionError as e:
            failed += 1
            click.echo(f"{source.app_name}: FAILED ({e})")
        finally:
            source.close()

    if failed:
        ctx.exit(ExitCode.SERVICE_UNAVAILABLE)
