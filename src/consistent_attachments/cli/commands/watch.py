"""Watch command for consistent-attachments CLI."""

import typer
from loguru import logger
from rich.console import Console

from consistent_attachments.cli.app import app
from consistent_attachments.cli.commands.command_utils import build_engine, get_config, run_with_cleanup
from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.sync.watch_service import WatchService

console = Console()


async def run_watch(config: ConsistentAttachmentsConfig, quiet: bool = False) -> None:  # pragma: no cover
    engine = build_engine(config)
    try:
        watch_service = WatchService(config, engine.store, engine.handler, quiet=quiet)
        await watch_service.run()
    finally:
        engine.close()


@app.command()
def watch(
    ctx: typer.Context,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log, print nothing"),
):  # pragma: no cover
    """Watch the vault and keep it consistent as files move or disappear."""
    config = get_config(ctx)
    console.print(f"Watching {config.vault_root}")
    try:
        run_with_cleanup(run_watch(config, quiet=quiet))
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.info("Watch stopped by user")
