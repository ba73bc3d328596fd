"""Entry points reacting to documents being renamed or deleted in the store."""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Set

from loguru import logger

from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.attachment_mover import AttachmentMover
from consistent_attachments.services.delete_propagator import DeletePropagator
from consistent_attachments.services.exceptions import NameSpaceExhaustedError
from consistent_attachments.services.folder_pruner import FolderPruner
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.services.rename_map import RenameMapBuilder, RenamePlan
from consistent_attachments.services.rename_propagator import RenamePropagator
from consistent_attachments.store.base import DocumentStore, StoreEntry, StoreEvent
from consistent_attachments.utils import is_document


@dataclass
class OperationContext:
    """State of one top-level rename or delete while it runs.

    Store notifications caused by the operation itself are recognized by
    their path: the origin, any path still pending in the rename map, or a
    path the operation explicitly guards.
    """

    origin: str
    rename_map: Dict[str, str] = field(default_factory=dict)
    guarded: Set[str] = field(default_factory=set)

    def covers(self, path: str) -> bool:
        return (
            path == self.origin
            or path in self.rename_map
            or path in self.guarded
            or path in self.rename_map.values()
        )


class RenameDeleteHandler:
    """Keeps links and attachments consistent when the store reports a rename or delete.

    The handler subscribes to the store's notifications on construction.
    Both entry points settle every nested store change before returning.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: ConsistentAttachmentsConfig,
        metadata_cache: Optional[MetadataCache] = None,
        subscribe: bool = True,
    ):
        self.store = store
        self.config = config
        self.metadata_cache = metadata_cache or MetadataCache(store)
        self.folder_pruner = FolderPruner(store, config)
        self.rename_map_builder = RenameMapBuilder(store, config, self.metadata_cache)
        self.attachment_mover = AttachmentMover(
            store, config, self.metadata_cache, folder_pruner=self.folder_pruner
        )
        self.rename_propagator = RenamePropagator(
            store, config, self.metadata_cache, folder_pruner=self.folder_pruner
        )
        self.delete_propagator = DeletePropagator(
            store, config, self.metadata_cache, folder_pruner=self.folder_pruner
        )
        self._active: List[OperationContext] = []
        self._unsubscribe = store.subscribe(self.handle_event) if subscribe else None

    def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def is_in_flight(self, path: str) -> bool:
        return any(context.covers(path) for context in self._active)

    @asynccontextmanager
    async def operation(self, origin: str) -> AsyncIterator[OperationContext]:
        """Register an operation and keep the host's link updating off while it runs."""
        context = OperationContext(origin=origin)
        self._active.append(context)
        try:
            async with self.store.suspend_link_updates():
                yield context
        finally:
            self._active.remove(context)

    async def handle_event(self, event: StoreEvent) -> None:
        """Store listener dispatching renames and deletes."""
        if event.action == "rename" and event.old_path:
            await self.on_rename(StoreEntry(path=event.path, is_folder=event.is_folder), event.old_path)
        elif event.action == "delete":
            await self.on_delete(StoreEntry(path=event.path, is_folder=event.is_folder))

    async def copy_shared_attachments(
        self, context: OperationContext, plan: RenamePlan, old_path: str, new_path: str
    ) -> Optional[Dict[str, str]]:
        """Copy attachments the renamed document shares with other documents.

        Returns:
            Mapping for the renamed document's own links, or None if nothing was copied
        """
        if not plan.copies:
            return None

        own_links_map = dict(plan.renames)
        for source, destination in plan.copies.items():
            context.guarded.add(source)
            try:
                result = await self.attachment_mover.move_attachment(
                    source, destination, participants=[old_path, new_path]
                )
            except NameSpaceExhaustedError as e:
                logger.error(f"Attachment {source} not copied: {e}")
                continue
            for change in result.moved_attachments:
                own_links_map[change.old_path] = change.new_path
        return own_links_map

    async def on_rename(self, entry: StoreEntry, old_path: str) -> None:
        """Propagate the rename of entry from old_path."""
        if self.is_in_flight(old_path):
            logger.trace(f"Ignoring rename notification for in-flight path {old_path}")
            return
        if entry.is_folder:
            logger.debug(f"Folder renamed, nothing to propagate: {old_path} -> {entry.path}")
            return
        if self.config.is_path_ignored(old_path) or self.config.is_path_ignored(entry.path):
            logger.debug(f"Ignored path renamed: {old_path} -> {entry.path}")
            return

        logger.info(f"Handling rename: {old_path} -> {entry.path}")
        async with self.operation(old_path) as context:
            plan = RenamePlan(renames=context.rename_map)
            await self.rename_map_builder.fill_rename_map(entry, old_path, plan)
            own_links_map = await self.copy_shared_attachments(context, plan, old_path, entry.path)

            while context.rename_map:
                pending_old, pending_new = next(iter(context.rename_map.items()))
                await self.rename_propagator.process_rename(
                    pending_old,
                    pending_new,
                    context.rename_map,
                    own_links_map=own_links_map if pending_old == old_path else None,
                )
        logger.info(f"Rename handled: {old_path} -> {entry.path}")

    async def on_delete(self, entry: StoreEntry) -> None:
        """Clean up after a deleted document."""
        if self.is_in_flight(entry.path):
            logger.trace(f"Ignoring delete notification for in-flight path {entry.path}")
            return
        if entry.is_folder or not is_document(entry.path):
            return
        if not self.config.delete_attachments_with_note:
            return

        logger.info(f"Handling delete: {entry.path}")
        async with self.operation(entry.path):
            await self.delete_propagator.handle_delete(entry.path)
