"""Shared helpers for CLI commands."""

import asyncio
from dataclasses import dataclass
from typing import Any, Coroutine, Optional, TypeVar

import typer

from consistent_attachments.config import ConfigManager, ConsistentAttachmentsConfig
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.services.rename_delete_handler import RenameDeleteHandler
from consistent_attachments.store.file_store import FileStore

T = TypeVar("T")


def run_with_cleanup(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine on a fresh event loop."""
    return asyncio.run(coro)


@dataclass
class Engine:
    """Everything a command needs to act on one vault."""

    config: ConsistentAttachmentsConfig
    store: FileStore
    metadata_cache: MetadataCache
    handler: Optional[RenameDeleteHandler] = None

    def close(self) -> None:
        if self.handler:
            self.handler.close()
        self.metadata_cache.close()


def get_config(ctx: Optional[typer.Context] = None) -> ConsistentAttachmentsConfig:
    """Configured settings, with the --vault option applied."""
    config = ConfigManager().config
    vault = (ctx.obj or {}).get("vault") if ctx is not None else None
    if vault:
        config = config.model_copy(update={"vault_path": vault})
    return config


def build_engine(config: ConsistentAttachmentsConfig, with_handler: bool = True) -> Engine:
    """Wire store, cache and rename/delete handler for the configured vault.

    Raises:
        ValueError: if the vault directory does not exist
    """
    root = config.vault_root
    if not root.is_dir():
        raise ValueError(f"Vault not found: {root}")

    store = FileStore(root)
    metadata_cache = MetadataCache(store)
    handler = RenameDeleteHandler(store, config, metadata_cache) if with_handler else None
    return Engine(config=config, store=store, metadata_cache=metadata_cache, handler=handler)
