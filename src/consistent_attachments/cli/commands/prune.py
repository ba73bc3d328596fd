"""Prune command for consistent-attachments CLI."""

import typer
from loguru import logger
from rich.console import Console

from consistent_attachments.cli.app import app
from consistent_attachments.cli.commands.command_utils import build_engine, get_config, run_with_cleanup
from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.exceptions import ConsistencyError
from consistent_attachments.services.folder_pruner import FolderPruner

console = Console()


async def run_prune(config: ConsistentAttachmentsConfig, folder: str) -> int:
    """Delete empty folders under folder.

    Returns:
        Number of folders removed
    """
    engine = build_engine(config, with_handler=False)
    try:
        await FolderPruner(engine.store, config).delete_empty_folders(folder)
        return len(engine.store.drain_touched_paths())
    finally:
        engine.close()


@app.command()
def prune(
    ctx: typer.Context,
    folder: str = typer.Argument("", help="Folder to prune, the whole vault by default"),
):
    """Delete empty folders."""
    try:
        removed = run_with_cleanup(run_prune(get_config(ctx), folder))
    except (ConsistencyError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except Exception as e:  # pragma: no cover
        logger.error(f"Error pruning {folder}: {e}")
        typer.echo(f"Error pruning {folder}: {e}", err=True)
        raise typer.Exit(code=1)

    console.print(f"Removed {removed} empty folder{'s' if removed != 1 else ''}")
