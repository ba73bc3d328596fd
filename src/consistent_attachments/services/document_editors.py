"""Target-path substitution for the two document kinds.

Text documents are edited by replacing link substrings at their offsets,
boards by rewriting the `file` field of their JSON nodes.
"""

import json
from abc import ABC, abstractmethod
from typing import AbstractSet, Any, Dict, List, Mapping, Optional

from loguru import logger

from consistent_attachments.markdown.links import LinkKind
from consistent_attachments.services.file_changes import (
    FileChange,
    apply_file_changes,
    process_with_retry,
)
from consistent_attachments.services.link_rewriter import LinkRewriter
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import BOARD_DOCUMENT_EXTENSION, TEXT_DOCUMENT_EXTENSION, extension

RenameMap = Mapping[str, str]


def dump_board(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent="\t", ensure_ascii=False)


def substitute_board_files(content: str, substitutions: Mapping[str, str]) -> Optional[str]:
    """Replace the `file` of every file node found in substitutions.

    Returns the new board content, or None if no node changed.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid board JSON, nodes left unchanged: {e}")
        return None
    if not isinstance(data, dict):
        return None

    changed = False
    for node in data.get("nodes", []):
        if not isinstance(node, dict) or node.get("type") != "file":
            continue
        new_file = substitutions.get(node.get("file"))
        if new_file and new_file != node["file"]:
            node["file"] = new_file
            changed = True
    return dump_board(data) if changed else None


class DocumentEditor(ABC):
    """Applies target-path substitutions to one kind of document."""

    def __init__(
        self,
        store: DocumentStore,
        metadata_cache: MetadataCache,
        link_rewriter: LinkRewriter,
        retries: int,
    ):
        self.store = store
        self.metadata_cache = metadata_cache
        self.link_rewriter = link_rewriter
        self.retries = retries

    @abstractmethod
    async def retarget(
        self,
        path: str,
        old_target: str,
        new_target: str,
        rename_map: RenameMap,
        virtual_files: AbstractSet[str] = frozenset(),
        target_remains: bool = False,
    ) -> bool:
        """Point the links of the document at path from old_target to new_target.

        Args:
            path: Document to edit
            old_target: Path the links point at
            new_target: Path they must point at
            rename_map: Pending renames, consulted for a new_target that moves on again
            virtual_files: Paths treated as existing when resolving links, so
                links to an entry that already moved still resolve to it
            target_remains: Whether old_target stays in place, the links move to a copy

        Returns:
            True if the document changed

        Raises:
            ContentRaceError: if the document kept changing under the rewrite
        """

    @abstractmethod
    async def update_own_links(self, path: str, old_path: str, rename_map: RenameMap) -> bool:
        """Fix the links of a document that moved from old_path to path."""


class TextDocumentEditor(DocumentEditor):
    """Offset-based substitution in markdown notes."""

    async def compute_changes(
        self,
        path: str,
        old_target: str,
        new_target: str,
        rename_map: RenameMap,
        content: str,
        virtual_files: AbstractSet[str] = frozenset(),
        target_remains: bool = False,
    ) -> List[FileChange]:
        files = await self.metadata_cache.all_files() | virtual_files
        changes = []
        # links are re-read here, earlier entries of the same operation may have edited the note
        for link in await self.metadata_cache.get_links(path):
            if not link.has_position or content[link.start : link.end] != link.original:
                continue
            if not await self.link_rewriter.needs_rewrite(
                link, old_target, new_target, path, rename_map, files, target_remains
            ):
                continue
            new_text = await self.link_rewriter.rewrite_link(
                link,
                old_target,
                new_target,
                path,
                rename_map,
                files=files,
                target_remains=target_remains,
            )
            changes.append(FileChange(link.start, link.end, link.original, new_text))
        return changes

    async def retarget(
        self,
        path: str,
        old_target: str,
        new_target: str,
        rename_map: RenameMap,
        virtual_files: AbstractSet[str] = frozenset(),
        target_remains: bool = False,
    ) -> bool:
        async def provider(content: str) -> List[FileChange]:
            return await self.compute_changes(
                path, old_target, new_target, rename_map, content, virtual_files, target_remains
            )

        changed = await apply_file_changes(self.store, path, provider, retries=self.retries)
        if changed:
            logger.info(f"Updated links in {path}: {old_target} -> {new_target}")
        return changed

    async def update_own_links(self, path: str, old_path: str, rename_map: RenameMap) -> bool:
        return await self.link_rewriter.rewrite_all_internal_links(path, old_path, rename_map)


class BoardDocumentEditor(DocumentEditor):
    """Structured substitution of the `file` field of canvas nodes."""

    async def retarget(
        self,
        path: str,
        old_target: str,
        new_target: str,
        rename_map: RenameMap,
        virtual_files: AbstractSet[str] = frozenset(),
        target_remains: bool = False,
    ) -> bool:
        final_target = rename_map.get(new_target, new_target)
        substitutions = {old_target: final_target, new_target: final_target}
        changed = await process_with_retry(
            self.store,
            path,
            lambda content: substitute_board_files(content, substitutions),
            retries=self.retries,
        )
        if changed:
            logger.info(f"Updated board nodes in {path}: {old_target} -> {final_target}")
        return changed

    async def update_own_links(self, path: str, old_path: str, rename_map: RenameMap) -> bool:
        # board nodes are vault-absolute, only targets that move need updating
        links = await self.metadata_cache.get_links(path)
        if not any(link.kind == LinkKind.BOARD and link.link in rename_map for link in links):
            return False
        return await process_with_retry(
            self.store,
            path,
            lambda content: substitute_board_files(content, rename_map),
            retries=self.retries,
        )


class DocumentEditors:
    """Picks the editor for a document by its extension."""

    def __init__(
        self,
        store: DocumentStore,
        metadata_cache: MetadataCache,
        link_rewriter: LinkRewriter,
        retries: int,
    ):
        self._editors: Dict[str, DocumentEditor] = {
            TEXT_DOCUMENT_EXTENSION: TextDocumentEditor(store, metadata_cache, link_rewriter, retries),
            BOARD_DOCUMENT_EXTENSION: BoardDocumentEditor(store, metadata_cache, link_rewriter, retries),
        }

    def editor_for(self, path: str) -> Optional[DocumentEditor]:
        return self._editors.get(extension(path))
