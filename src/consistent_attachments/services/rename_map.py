"""Closure of path changes caused by renaming one document."""

from dataclasses import dataclass, field
from typing import Dict, List

from loguru import logger

from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.attachment_paths import (
    get_attachment_folder_path,
    get_available_path,
    get_reference_attachment_folder_path,
)
from consistent_attachments.services.backlinks import get_backlinks
from consistent_attachments.services.exceptions import NameSpaceExhaustedError
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.store.base import DocumentStore, StoreEntry
from consistent_attachments.utils import basename, dirname, is_document, is_within, join, relative


@dataclass
class RenamePlan:
    """Everything one rename sets in motion.

    Attributes:
        renames: old path -> new path, in processing order, the renamed entry first
        copies: attachment path -> intended destination, for attachments the renamed
            document takes along while other documents keep using the original
    """

    renames: Dict[str, str] = field(default_factory=dict)
    copies: Dict[str, str] = field(default_factory=dict)


class RenameMapBuilder:
    """Works out which attachments follow a renamed document."""

    def __init__(
        self,
        store: DocumentStore,
        config: ConsistentAttachmentsConfig,
        metadata_cache: MetadataCache,
    ):
        self.store = store
        self.config = config
        self.metadata_cache = metadata_cache

    async def _other_referrers(self, attachment: str, document_paths: List[str]) -> List[str]:
        backlinks = await get_backlinks(self.metadata_cache, attachment)
        return [referrer for referrer in backlinks if referrer not in document_paths]

    async def _linked_attachments(self, entry: StoreEntry, old_path: str, folder: str) -> List[str]:
        """Attachments in a shared folder that only the renamed document links to."""
        files = await self.metadata_cache.all_files()
        candidates: List[str] = []
        for link in await self.metadata_cache.get_links(entry.path):
            # the document's links were written relative to where it used to be
            target = await self.metadata_cache.link_resolver.extract_target_path(link, old_path, files)
            if not target or target in candidates or is_document(target):
                continue
            if not is_within(target, folder):
                continue
            if await self._other_referrers(target, [old_path, entry.path]):
                logger.debug(f"Keeping shared attachment in place: {target}")
                continue
            candidates.append(target)
        return candidates

    async def fill_rename_map(self, entry: StoreEntry, old_path: str, plan: RenamePlan) -> RenamePlan:
        """Add the renamed entry and the attachments moving with it to plan."""
        plan.renames[old_path] = entry.path

        if entry.is_folder or not is_document(entry.path):
            return plan

        template = self.config.attachment_folder_path
        old_folder = get_attachment_folder_path(old_path, template)
        new_folder = get_attachment_folder_path(entry.path, template)
        reference_folder = get_reference_attachment_folder_path(old_path, template)

        if old_folder == new_folder:
            return plan
        if not await self.store.is_folder(old_folder):
            return plan

        if old_folder == reference_folder:
            # folder shared by every note of the directory
            candidates = await self._linked_attachments(entry, old_path, old_folder)
            shared: List[str] = []
        else:
            # folder named after the document, it moves as a whole
            candidates = []
            shared = []
            async for path in self.store.iter_files(old_folder):
                if is_document(path):
                    continue
                if await self._other_referrers(path, [old_path, entry.path]):
                    shared.append(path)
                else:
                    candidates.append(path)

        for path in candidates + shared:
            destination = join(new_folder, dirname(relative(old_folder, path)), basename(path))
            if destination == path:
                continue
            if path in shared:
                plan.copies[path] = destination
                continue
            try:
                destination = await get_available_path(
                    self.store, destination, taken=list(plan.renames.values())
                )
            except NameSpaceExhaustedError as e:
                logger.error(f"Attachment {path} stays in place: {e}")
                continue
            plan.renames[path] = destination

        logger.debug(
            f"Rename plan for {old_path}: {len(plan.renames)} renames, {len(plan.copies)} copies"
        )
        return plan
