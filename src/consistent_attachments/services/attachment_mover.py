"""Relocation of one attachment, deciding between move, copy, suffix and delete."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Collection, List, Optional

from loguru import logger

from consistent_attachments.config import ConsistentAttachmentsConfig, DuplicatePolicy
from consistent_attachments.services.attachment_paths import get_available_path
from consistent_attachments.services.folder_pruner import FolderPruner
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import dirname, is_document, normalize_path


class AttachmentAction(str, Enum):
    COPY = "copy"
    COPY_WITH_SUFFIX = "copy_with_suffix"
    MOVE = "move"
    MOVE_WITH_SUFFIX = "move_with_suffix"
    DELETE_SOURCE = "delete_source"
    NOTHING = "nothing"


def decide_attachment_action(
    other_referrers: int, destination_occupied: bool, policy: DuplicatePolicy
) -> AttachmentAction:
    """Pick what to do with an attachment whose owner moved.

    Args:
        other_referrers: Number of documents, besides the moving ones, linking to it
        destination_occupied: Whether an entry already sits at the destination
        policy: How to treat an occupied destination
    """
    if other_referrers > 0:
        if not destination_occupied:
            return AttachmentAction.COPY
        if policy == DuplicatePolicy.OVERWRITE:
            return AttachmentAction.NOTHING
        return AttachmentAction.COPY_WITH_SUFFIX

    if not destination_occupied:
        return AttachmentAction.MOVE
    if policy == DuplicatePolicy.OVERWRITE:
        return AttachmentAction.DELETE_SOURCE
    return AttachmentAction.MOVE_WITH_SUFFIX


@dataclass(frozen=True)
class PathChange:
    old_path: str
    new_path: str


@dataclass
class MovedAttachmentResult:
    """Outcome of attachment moves.

    Attributes:
        moved_attachments: Attachments that were relocated, old -> actual new path
        renamed_files: Intended destinations that were occupied, intended -> generated path
    """

    moved_attachments: List[PathChange] = field(default_factory=list)
    renamed_files: List[PathChange] = field(default_factory=list)

    def extend(self, other: "MovedAttachmentResult") -> None:
        self.moved_attachments.extend(other.moved_attachments)
        self.renamed_files.extend(other.renamed_files)

    def is_moved(self, path: str) -> bool:
        return any(change.old_path == path for change in self.moved_attachments)


class AttachmentMover:
    """Moves or copies attachments on behalf of documents that moved."""

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

    async def generate_file_copy_name(self, path: str) -> str:
        """First free "name N.ext" next to path.

        Raises:
            NameSpaceExhaustedError: if no suffix below the ceiling is free
        """
        return await get_available_path(self.store, path, keep_original=False)

    async def delete_file(self, path: str, delete_empty_folders: bool) -> None:
        """Move a file to the trash, then prune the folders it leaves empty."""
        await self.store.delete(path, to_trash=True)
        logger.info(f"Deleted file: {path}")
        if delete_empty_folders:
            await self.folder_pruner.remove_empty_folder_hierarchy(dirname(path))

    async def move_attachment(
        self,
        path: str,
        new_path: str,
        participants: Collection[str],
        delete_existing_files: Optional[bool] = None,
        delete_empty_folders: Optional[bool] = None,
    ) -> MovedAttachmentResult:
        """Relocate the attachment at path to new_path.

        Args:
            path: Current attachment path
            new_path: Intended destination
            participants: Documents whose links to the attachment do not count as
                other referrers (the moving document under its old and new path)
            delete_existing_files: Overwrite policy, defaults to the configured one
            delete_empty_folders: Prune emptied folders, defaults to the configured value

        Raises:
            NameSpaceExhaustedError: if a suffixed name was needed and none is free
        """
        path = normalize_path(path)
        new_path = normalize_path(new_path)
        if delete_existing_files is None:
            delete_existing_files = self.config.delete_existing_files
        if delete_empty_folders is None:
            delete_empty_folders = self.config.delete_empty_folders
        policy = DuplicatePolicy.OVERWRITE if delete_existing_files else DuplicatePolicy.KEEP_BOTH

        result = MovedAttachmentResult()

        if self.config.is_path_ignored(path):
            logger.debug(f"Ignored attachment: {path}")
            return result
        if is_document(path):
            return result
        if path == new_path:
            logger.warning(f"Cannot move {path}: source and destination are the same")
            return result
        if not await self.store.is_file(path):
            logger.warning(f"Attachment not found: {path}")
            return result

        await self.store.create_folder(dirname(new_path))

        backlinks = await self.metadata_cache.get_backlinks(path)
        others = [referrer for referrer in backlinks if referrer not in set(participants)]
        occupied = await self.store.exists(new_path)
        action = decide_attachment_action(len(others), occupied, policy)
        logger.debug(f"Attachment {path} -> {new_path}: {action.value}, other referrers={others}")

        if action == AttachmentAction.MOVE:
            await self.store.rename(path, new_path)
            result.moved_attachments.append(PathChange(path, new_path))
        elif action == AttachmentAction.MOVE_WITH_SUFFIX:
            copy_name = await self.generate_file_copy_name(new_path)
            await self.store.rename(path, copy_name)
            result.moved_attachments.append(PathChange(path, copy_name))
            result.renamed_files.append(PathChange(new_path, copy_name))
        elif action == AttachmentAction.DELETE_SOURCE:
            # the file already at the destination wins
            result.moved_attachments.append(PathChange(path, new_path))
            await self.delete_file(path, delete_empty_folders)
        elif action == AttachmentAction.COPY:
            await self.store.copy(path, new_path)
            result.moved_attachments.append(PathChange(path, new_path))
        elif action == AttachmentAction.COPY_WITH_SUFFIX:
            copy_name = await self.generate_file_copy_name(new_path)
            await self.store.copy(path, copy_name)
            result.moved_attachments.append(PathChange(path, copy_name))
            result.renamed_files.append(PathChange(new_path, copy_name))

        if action in (AttachmentAction.MOVE, AttachmentAction.MOVE_WITH_SUFFIX):
            logger.info(f"Moved attachment: {path} -> {result.moved_attachments[-1].new_path}")
            if delete_empty_folders:
                await self.folder_pruner.remove_empty_folder_hierarchy(dirname(path))
        elif action in (AttachmentAction.COPY, AttachmentAction.COPY_WITH_SUFFIX):
            logger.info(f"Copied attachment: {path} -> {result.moved_attachments[-1].new_path}")

        return result
