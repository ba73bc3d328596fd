from typing import Optional

import typer

from consistent_attachments import __version__
from consistent_attachments.config import init_cli_logging


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        typer.echo(f"consistent-attachments version: {__version__}")
        raise typer.Exit()


app = typer.Typer(name="consistent-attachments", no_args_is_help=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    vault: Optional[str] = typer.Option(
        None,
        "--vault",
        "-V",
        help="Vault directory, overrides the configured vault_path",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Keep links and attachments consistent when notes move or disappear."""
    init_cli_logging()
    ctx.obj = {"vault": vault}
