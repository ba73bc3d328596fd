"""Rename command for consistent-attachments CLI."""

from typing import List

import typer
from loguru import logger
from rich.console import Console

from consistent_attachments.cli.app import app
from consistent_attachments.cli.commands.command_utils import build_engine, get_config, run_with_cleanup
from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.exceptions import ConsistencyError, DocumentNotFoundError
from consistent_attachments.utils import normalize_path

console = Console()


async def run_rename(config: ConsistentAttachmentsConfig, old_path: str, new_path: str) -> List[str]:
    """Rename a vault entry and propagate the change.

    Returns:
        Paths created, modified, moved or removed by the operation
    """
    engine = build_engine(config)
    try:
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        if not await engine.store.exists(old_path):
            raise DocumentNotFoundError(f"Not found: {old_path}")
        if await engine.store.exists(new_path):
            raise ValueError(f"Destination already exists: {new_path}")

        await engine.metadata_cache.prime()
        # the store notifies the handler, which propagates before rename returns
        await engine.store.rename(old_path, new_path)
        return sorted(engine.store.drain_touched_paths())
    finally:
        engine.close()


@app.command()
def rename(
    ctx: typer.Context,
    old_path: str = typer.Argument(..., help="Vault path of the note or attachment to rename"),
    new_path: str = typer.Argument(..., help="New vault path"),
):
    """Rename or move a note, taking its attachments along and updating links."""
    try:
        touched = run_with_cleanup(run_rename(get_config(ctx), old_path, new_path))
    except (ConsistencyError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except Exception as e:  # pragma: no cover
        logger.error(f"Error renaming {old_path}: {e}")
        typer.echo(f"Error renaming {old_path}: {e}", err=True)
        raise typer.Exit(code=1)

    console.print(f"[blue]→[/blue] {old_path} → {new_path}")
    for path in touched:
        console.print(f"  [dim]{path}[/dim]")
