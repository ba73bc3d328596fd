"""Backlinks command for consistent-attachments CLI."""

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from consistent_attachments.cli.app import app
from consistent_attachments.cli.commands.command_utils import build_engine, get_config, run_with_cleanup
from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.backlinks import get_backlinks
from consistent_attachments.services.exceptions import ConsistencyError
from consistent_attachments.services.metadata_cache import Backlinks
from consistent_attachments.utils import normalize_path

console = Console()


async def run_backlinks(config: ConsistentAttachmentsConfig, path: str) -> Backlinks:
    engine = build_engine(config, with_handler=False)
    try:
        return await get_backlinks(engine.metadata_cache, normalize_path(path))
    finally:
        engine.close()


@app.command()
def backlinks(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Vault path of a note or attachment"),
):
    """Show the documents linking to a path."""
    try:
        result = run_with_cleanup(run_backlinks(get_config(ctx), path))
    except (ConsistencyError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except Exception as e:  # pragma: no cover
        logger.error(f"Error reading backlinks of {path}: {e}")
        typer.echo(f"Error reading backlinks of {path}: {e}", err=True)
        raise typer.Exit(code=1)

    if not result:
        console.print(f"No backlinks to {path}")
        return

    table = Table(title=f"Backlinks to {path}")
    table.add_column("Document", style="cyan")
    table.add_column("Links", style="green")
    for referrer, links in result.items():
        table.add_row(referrer, escape("\n".join(link.original for link in links)))
    console.print(table)
