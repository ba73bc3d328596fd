"""Applies one entry of a rename plan to the store and to every document linking to it."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Mapping, Optional

from loguru import logger

from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.backlinks import get_backlinks
from consistent_attachments.services.document_editors import DocumentEditors
from consistent_attachments.services.exceptions import ContentRaceError, DocumentNotFoundError
from consistent_attachments.services.folder_pruner import FolderPruner
from consistent_attachments.services.link_rewriter import LinkRewriter
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.store.base import DocumentStore, StoreEntry
from consistent_attachments.utils import dirname


class RenamePropagator:
    """Moves one path and updates every link that pointed at it."""

    def __init__(
        self,
        store: DocumentStore,
        config: ConsistentAttachmentsConfig,
        metadata_cache: MetadataCache,
        link_rewriter: Optional[LinkRewriter] = None,
        folder_pruner: Optional[FolderPruner] = None,
    ):
        self.store = store
        self.config = config
        self.metadata_cache = metadata_cache
        self.link_rewriter = link_rewriter or LinkRewriter(
            store, metadata_cache, retries=config.content_race_retries
        )
        self.folder_pruner = folder_pruner or FolderPruner(store, config)
        self.editors = DocumentEditors(
            store, metadata_cache, self.link_rewriter, config.content_race_retries
        )

    @asynccontextmanager
    async def placeholder(self, path: str) -> AsyncIterator[StoreEntry]:
        """Materialize an empty file at path for the duration of the block.

        Links written against a document's previous location resolve against
        the placeholder while the real document already sits at its new path.
        """
        entry = await self.store.create(path, "")
        logger.debug(f"Created placeholder: {path}")
        try:
            yield entry
        finally:
            if await self.store.exists(path):
                await self.store.delete(path, to_trash=False)
                logger.debug(f"Removed placeholder: {path}")

    async def _find_referrer(self, referrer: str, rename_map: Mapping[str, str]) -> str:
        if await self.store.is_file(referrer):
            return referrer
        moved = rename_map.get(referrer)
        if moved and await self.store.is_file(moved):
            return moved
        raise DocumentNotFoundError(f"Referring document not found: {referrer}")

    async def update_referrers(
        self, old_path: str, new_path: str, subject_path: str, rename_map: Dict[str, str]
    ) -> None:
        """Retarget the links of every document linking to old_path or new_path."""
        backlinks = await get_backlinks(self.metadata_cache, old_path, new_path)
        for referrer in backlinks:
            if referrer in (old_path, subject_path):
                # the subject's own links are handled as internal links
                continue
            try:
                document = await self._find_referrer(referrer, rename_map)
            except DocumentNotFoundError as e:
                logger.warning(f"{e}, skipping")
                continue

            editor = self.editors.editor_for(document)
            if editor is None:
                continue
            try:
                await editor.retarget(document, old_path, new_path, rename_map)
            except ContentRaceError as e:
                logger.warning(f"Links in {document} not updated: {e}")
            except FileNotFoundError:
                logger.warning(f"Referring document vanished during update: {document}, skipping")

    async def update_subject(
        self, subject_path: str, old_path: str, rename_map: Mapping[str, str]
    ) -> None:
        editor = self.editors.editor_for(subject_path)
        if editor is None:
            return
        try:
            await editor.update_own_links(subject_path, old_path, rename_map)
        except ContentRaceError as e:
            logger.warning(f"Own links of {subject_path} not updated: {e}")

    async def move_subject(self, old_path: str, new_path: str) -> None:
        """Physically move the entry at old_path, replacing whatever occupies new_path."""
        await self.store.create_folder(dirname(new_path))
        if await self.store.exists(new_path):
            logger.info(f"Replacing existing entry at {new_path}")
            await self.store.delete(new_path, to_trash=True)
        await self.store.rename(old_path, new_path)
        logger.info(f"Moved {old_path} -> {new_path}")
        if self.config.delete_empty_folders:
            await self.folder_pruner.remove_empty_folder_hierarchy(dirname(old_path))

    async def process_rename(
        self,
        old_path: str,
        new_path: str,
        rename_map: Dict[str, str],
        own_links_map: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Apply the rename old_path -> new_path of an operation.

        Args:
            old_path: Path being renamed
            new_path: Its destination
            rename_map: Every pending rename of the operation; old_path is removed
                from it once processed, whatever the outcome
            own_links_map: Mapping used for the subject's own links instead of
                rename_map, when attachments were copied for it

        Raises:
            StoreOperationError: if the store fails to move the entry
        """
        try:
            old_entry = await self.store.get_entry(old_path)
            new_entry = await self.store.get_entry(new_path)
            subject = old_entry or new_entry
            if subject is None:
                logger.debug(f"Nothing at {old_path} or {new_path}, skipping")
                return

            if old_entry is None:
                async with self.placeholder(old_path):
                    await self._propagate(old_path, new_path, subject.path, rename_map, own_links_map)
            else:
                await self._propagate(old_path, new_path, subject.path, rename_map, own_links_map)
                await self.move_subject(old_path, new_path)
        finally:
            rename_map.pop(old_path, None)

    async def _propagate(
        self,
        old_path: str,
        new_path: str,
        subject_path: str,
        rename_map: Dict[str, str],
        own_links_map: Optional[Mapping[str, str]],
    ) -> None:
        if not self.config.update_links:
            return
        await self.update_referrers(old_path, new_path, subject_path, rename_map)
        await self.update_subject(subject_path, old_path, own_links_map or rename_map)
