"""Cleanup of the attachments a deleted document leaves behind."""

from typing import List, Optional

from loguru import logger

from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.attachment_paths import get_attachment_folder_path
from consistent_attachments.services.folder_pruner import FolderPruner
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import dirname, is_document


class DeletePropagator:
    """Trashes attachments no document links to anymore once their note is gone."""

    def __init__(
        self,
        store: DocumentStore,
        config: ConsistentAttachmentsConfig,
        metadata_cache: MetadataCache,
        folder_pruner: Optional[FolderPruner] = None,
    ):
        self.store = store
        self.config = config
        self.metadata_cache = metadata_cache
        self.folder_pruner = folder_pruner or FolderPruner(store, config)

    async def _candidates(self, folder: str) -> List[str]:
        # shared or not, anything in the folder nobody else links to goes
        return [path async for path in self.store.iter_files(folder) if not is_document(path)]

    async def handle_delete(self, deleted_path: str) -> List[str]:
        """Trash the attachments of a deleted document that nothing else links to.

        Running it again for the same document finds nothing left to do.

        Returns:
            Paths that were moved to the trash
        """
        if self.config.is_path_ignored(deleted_path) or not is_document(deleted_path):
            return []

        folder = get_attachment_folder_path(deleted_path, self.config.attachment_folder_path)
        if not await self.store.is_folder(folder):
            logger.debug(f"No attachment folder for {deleted_path}: {folder}")
            return []

        deleted: List[str] = []
        for attachment in await self._candidates(folder):
            if self.config.is_path_ignored(attachment):
                continue
            backlinks = await self.metadata_cache.get_backlinks(attachment)
            referrers = [referrer for referrer in backlinks if referrer != deleted_path]
            if referrers:
                logger.debug(f"Keeping {attachment}, still linked from {referrers}")
                continue
            try:
                await self.store.delete(attachment, to_trash=True)
            except FileNotFoundError:
                logger.debug(f"Attachment already gone: {attachment}")
                continue
            deleted.append(attachment)
            logger.info(f"Deleted attachment of {deleted_path}: {attachment}")

            if self.config.delete_empty_folders:
                await self.folder_pruner.remove_empty_folder_hierarchy(dirname(attachment))

        return deleted
