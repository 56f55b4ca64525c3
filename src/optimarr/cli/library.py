"""CLI commands for managing library paths."""

import json
import logging
import sqlite3
from pathlib import Path

import click

from optimarr.cli import get_db_path
from optimarr.db import OriginSystem
from optimarr.db.connection import get_connection
from optimarr.db.queries import (
    delete_library_path,
    get_library_path,
    insert_library_path,
    link_library_path,
    list_library_paths,
)

logger = logging.getLogger(__name__)

CATEGORIES = ["movies", "series", "anime", "other"]


def _format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} TB"


@click.group("library")
def library_group() -> None:
    """Manage library paths."""
    pass


@library_group.command("add")
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--name", "-n", default=None, help="Display name (default: folder name).")
@click.option(
    "--category",
    "-c",
    type=click.Choice(CATEGORIES),
    default="other",
    help="Category tag.",
)
@click.pass_context
def add_library(
    ctx: click.Context, path: Path, name: str | None, category: str
) -> None:
    """Register a directory as a library path."""
    root = path.resolve()
    with get_connection(get_db_path(ctx)) as conn:
        try:
            library_path_id = insert_library_path(
                conn, str(root), name or root.name, category
            )
        except sqlite3.IntegrityError:
            raise click.ClickException(f"Library path already registered: {root}")
        conn.commit()
    logger.info("Added library path %d: %s", library_path_id, root)
    click.echo(f"Added library path {library_path_id}: {root}")


@library_group.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_libraries(ctx: click.Context, json_output: bool) -> None:
    """List library paths."""
    with get_connection(get_db_path(ctx)) as conn:
        paths = list_library_paths(conn)

    if json_output:
        click.echo(
            json.dumps(
                [
                    {
                        "id": p.id,
                        "path": p.path,
                        "name": p.name,
                        "category": p.category,
                        "file_count": p.file_count,
                        "total_size_bytes": p.total_size_bytes,
                        "last_scanned_at": p.last_scanned_at,
                        "origin_system": (
                            p.origin_system.value if p.origin_system else None
                        ),
                        "origin_id": p.origin_id,
                        "last_synced_at": p.last_synced_at,
                    }
                    for p in paths
                ],
                indent=2,
            )
        )
        return

    if not paths:
        click.echo("No library paths registered.")
        return

    click.echo(f"{'ID':<5} {'NAME':<24} {'CATEGORY':<9} {'FILES':>6} {'SIZE':>10}  PATH")
    click.echo("-" * 90)
    for p in paths:
        name = p.name if len(p.name) <= 24 else p.name[:21] + "..."
        click.echo(
            f"{p.id:<5} {name:<24} {p.category:<9} {p.file_count:>6} "
            f"{_format_size(p.total_size_bytes):>10}  {p.path}"
        )


@library_group.command("remove")
@click.argument("library_path_id", type=int)
@click.option("--force", "-f", is_flag=True, help="Don't ask for confirmation.")
@click.pass_context
def remove_library(ctx: click.Context, library_path_id: int, force: bool) -> None:
    """Remove a library path with its scans and analyses."""
    with get_connection(get_db_path(ctx)) as conn:
        library_path = get_library_path(conn, library_path_id)
        if library_path is None:
            raise click.ClickException(f"Library path not found: {library_path_id}")

        if not force and not click.confirm(
            f"Remove {library_path.path} and all of its analyses?"
        ):
            click.echo("Cancelled.")
            return

        delete_library_path(conn, library_path_id)
        conn.commit()
    logger.info("Removed library path %d", library_path_id)
    click.echo(f"Removed library path {library_path_id}")


@library_group.command("link")
@click.argument("library_path_id", type=int)
@click.option(
    "--origin",
    type=click.Choice([s.value for s in OriginSystem]),
    required=True,
    help="Origin system that manages this library path.",
)
@click.option(
    "--origin-id",
    type=int,
    default=None,
    help="Series or movie root id in the origin system.",
)
@click.pass_context
def link_library(
    ctx: click.Context, library_path_id: int, origin: str, origin_id: int | None
) -> None:
    """Link a library path to Sonarr or Radarr."""
    origin_system = OriginSystem(origin)
    with get_connection(get_db_path(ctx)) as conn:
        if not link_library_path(conn, library_path_id, origin_system, origin_id):
            raise click.ClickException(f"Library path not found: {library_path_id}")
        conn.commit()
    logger.info(
        "Linked library path %d to %s (%s)", library_path_id, origin, origin_id
    )
    click.echo(f"Linked library path {library_path_id} to {origin_system.value}")
