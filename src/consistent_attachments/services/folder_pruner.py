"""Removal of folders left empty by moves and deletes."""

from typing import Optional

from loguru import logger

from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import dirname, normalize_path


class FolderPruner:
    """Deletes empty folders, tolerating folders that vanish while it works."""

    def __init__(self, store: DocumentStore, config: Optional[ConsistentAttachmentsConfig] = None):
        self.store = store
        self.config = config

    def _ignored(self, path: str) -> bool:
        return self.config is not None and self.config.is_path_ignored(path)

    async def _remove_if_empty(self, path: str) -> bool:
        listing = await self.store.list_directory(path)
        if not listing.is_empty:
            return False
        if not await self.store.is_folder(path):
            # vanished since the listing, as good as removed
            logger.debug(f"Folder already gone: {path}")
            return True
        try:
            await self.store.remove_folder(path)
        except FileNotFoundError:
            # removed by someone else in the meantime
            logger.debug(f"Folder already gone: {path}")
            return True
        logger.info(f"Deleted empty folder: {path}")
        return True

    async def delete_empty_folders(self, path: str) -> None:
        """Remove path and every folder below it that holds no files, deepest first."""
        path = normalize_path(path)
        if self._ignored(path):
            return

        listing = await self.store.list_directory(path)
        for folder in listing.folders:
            await self.delete_empty_folders(folder)

        # the subfolders may just have been removed, list again
        if path:
            await self._remove_if_empty(path)

    async def remove_empty_folder_hierarchy(self, path: str) -> None:
        """Remove path and its ancestors for as long as each one is empty."""
        path = normalize_path(path)
        while path and not self._ignored(path):
            if not await self._remove_if_empty(path):
                break
            path = dirname(path)
