"""Main CLI entry point for consistent-attachments."""  # pragma: no cover

from consistent_attachments.cli.app import app  # pragma: no cover

# Register commands
from consistent_attachments.cli.commands import (  # noqa: F401 # pragma: no cover
    backlinks,
    collect,
    delete,
    prune,
    rename,
    watch,
)

if __name__ == "__main__":  # pragma: no cover
    app()
