"""Delete command for consistent-attachments CLI."""

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


async def run_delete(config: ConsistentAttachmentsConfig, path: str) -> List[str]:
    """Move a note to the trash along with attachments nothing else links to.

    Returns:
        Paths removed by the operation
    """
    engine = build_engine(config)
    try:
        path = normalize_path(path)
        if not await engine.store.is_file(path):
            raise DocumentNotFoundError(f"Not found: {path}")

        # parse the note while it exists, its links decide what else goes
        await engine.metadata_cache.get_links(path)
        await engine.store.delete(path, to_trash=True)
        removed = []
        for touched in sorted(engine.store.drain_touched_paths()):
            if not await engine.store.exists(touched):
                removed.append(touched)
        return removed
    finally:
        engine.close()


@app.command()
def delete(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Vault path of the note to delete"),
):
    """Delete a note and the attachments only it used."""
    try:
        removed = run_with_cleanup(run_delete(get_config(ctx), path))
    except (ConsistencyError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except Exception as e:  # pragma: no cover
        logger.error(f"Error deleting {path}: {e}")
        typer.echo(f"Error deleting {path}: {e}", err=True)
        raise typer.Exit(code=1)

    for removed_path in removed:
        console.print(f"[red]✕[/red] {removed_path}")
