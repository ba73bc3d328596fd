"""CLI commands for consistent-attachments."""

from . import backlinks, collect, delete, prune, rename, watch

__all__ = ["backlinks", "collect", "delete", "prune", "rename", "watch"]
