"""Collect the attachments a note links to into the note's attachment folder."""

from typing import Dict, Optional

from loguru import logger

from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.attachment_mover import AttachmentMover, MovedAttachmentResult
from consistent_attachments.services.attachment_paths import get_new_attachment_path
from consistent_attachments.services.document_editors import TextDocumentEditor
from consistent_attachments.services.exceptions import ContentRaceError, NameSpaceExhaustedError
from consistent_attachments.services.link_rewriter import LinkRewriter
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import is_document, is_text_document, normalize_path


class AttachmentCollector:
    """Moves or copies linked attachments next to the note that links them."""

    def __init__(
        self,
        store: DocumentStore,
        config: ConsistentAttachmentsConfig,
        metadata_cache: MetadataCache,
        attachment_mover: Optional[AttachmentMover] = None,
    ):
        self.store = store
        self.config = config
        self.metadata_cache = metadata_cache
        self.attachment_mover = attachment_mover or AttachmentMover(store, config, metadata_cache)
        self.editor = TextDocumentEditor(
            store,
            metadata_cache,
            LinkRewriter(store, metadata_cache, retries=config.content_race_retries),
            config.content_race_retries,
        )

    async def collect_attachments(self, note_path: str) -> MovedAttachmentResult:
        """Bring every attachment linked from a note into its attachment folder.

        Attachments other documents also link to are copied, the note's links
        are updated to whatever path each attachment ended up at.
        """
        note_path = normalize_path(note_path)
        result = MovedAttachmentResult()

        if self.config.is_path_ignored(note_path):
            logger.debug(f"Ignored note: {note_path}")
            return result
        if not is_text_document(note_path):
            raise ValueError(f"Not a note: {note_path}")
        if not await self.store.is_file(note_path):
            raise FileNotFoundError(f"Note not found: {note_path}")

        template = self.config.attachment_folder_path
        for link, target in await self.metadata_cache.get_resolved_links(note_path):
            if target is None:
                kind = "embed" if link.embed else "link"
                logger.warning(f"{note_path} has bad {kind} (file does not exist): {link.target}")
                continue
            if result.is_moved(target) or is_document(target):
                continue

            new_path = get_new_attachment_path(target, note_path, template)
            if new_path == target:
                continue

            try:
                moved = await self.attachment_mover.move_attachment(target, new_path, [note_path])
            except NameSpaceExhaustedError as e:
                logger.error(f"Attachment {target} not collected: {e}")
                continue
            result.extend(moved)

        await self._update_note_links(note_path, result)
        return result

    async def _update_note_links(self, note_path: str, result: MovedAttachmentResult) -> None:
        rename_map: Dict[str, str] = {change.old_path: change.new_path for change in result.moved_attachments}
        for old_path, new_path in rename_map.items():
            if old_path == new_path:
                continue
            try:
                # the source may already be gone, links to it must still resolve
                await self.editor.retarget(
                    note_path,
                    old_path,
                    new_path,
                    rename_map,
                    virtual_files={old_path},
                    target_remains=await self.store.exists(old_path),
                )
            except ContentRaceError as e:
                logger.warning(f"Links in {note_path} not updated: {e}")
