"""Collect command for consistent-attachments CLI."""

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from consistent_attachments.cli.app import app
from consistent_attachments.cli.commands.command_utils import build_engine, get_config, run_with_cleanup
from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.attachment_collector import AttachmentCollector
from consistent_attachments.services.attachment_mover import MovedAttachmentResult
from consistent_attachments.services.exceptions import ConsistencyError

console = Console()


async def run_collect(config: ConsistentAttachmentsConfig, note_path: str) -> MovedAttachmentResult:
    engine = build_engine(config, with_handler=False)
    try:
        collector = AttachmentCollector(engine.store, config, engine.metadata_cache)
        return await collector.collect_attachments(note_path)
    finally:
        engine.close()


def display_result(note_path: str, result: MovedAttachmentResult) -> None:
    if not result.moved_attachments:
        console.print(f"{note_path}: nothing to collect")
        return

    table = Table(title=f"Attachments of {note_path}")
    table.add_column("From", style="cyan")
    table.add_column("To", style="green")
    for change in result.moved_attachments:
        table.add_row(change.old_path, change.new_path)
    console.print(table)

    for change in result.renamed_files:
        console.print(f"[yellow]![/yellow] {change.old_path} was taken, used {change.new_path}")


@app.command()
def collect(
    ctx: typer.Context,
    note_path: str = typer.Argument(..., help="Vault path of the note"),
):
    """Move the attachments a note links to into the note's attachment folder."""
    try:
        result = run_with_cleanup(run_collect(get_config(ctx), note_path))
    except (ConsistencyError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except Exception as e:  # pragma: no cover
        logger.error(f"Error collecting attachments of {note_path}: {e}")
        typer.echo(f"Error collecting attachments of {note_path}: {e}", err=True)
        raise typer.Exit(code=1)

    display_result(note_path, result)
