"""Freshness-checked cache of parsed document links.

The cache never answers from a stale parse: every read compares the file's
store signature with the one recorded at parse time, and store change events
drop entries eagerly. Backlinks are derived on demand from the current links
of every document, so they always reflect the latest write of each referrer.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from loguru import logger

from consistent_attachments.markdown.links import Link, parse_board_links, parse_links
from consistent_attachments.services.link_resolver import LinkResolver
from consistent_attachments.store.base import DocumentStore, StoreEvent
from consistent_attachments.utils import is_board, is_document

Backlinks = Dict[str, List[Link]]


@dataclass
class CachedLinks:
    signature: Tuple[int, int]
    links: List[Link]


class MetadataCache:
    """Links of every document in a store, parsed lazily and kept fresh."""

    def __init__(self, store: DocumentStore, link_resolver: Optional[LinkResolver] = None):
        self.store = store
        self.link_resolver = link_resolver or LinkResolver(store)
        self._entries: Dict[str, CachedLinks] = {}
        # last parse of every document, kept after the document is gone
        self._last_known: Dict[str, List[Link]] = {}
        self._dirty: Set[str] = set()
        self._unsubscribe = store.subscribe(self.handle_event)

    async def handle_event(self, event: StoreEvent) -> None:
        """Drop cached parses touched by a store mutation."""
        self.invalidate(event.path)
        if event.old_path:
            self.invalidate(event.old_path)

    def invalidate(self, path: str) -> None:
        self._entries.pop(path, None)
        self._dirty.add(path)

    def close(self) -> None:
        self._unsubscribe()

    async def get_links(self, path: str) -> List[Link]:
        """Links of the document at path, parsed from its current content.

        Attachments and missing entries have no links.
        """
        if not is_document(path):
            return []

        signature = await self.store.signature(path)
        if signature is None:
            self._entries.pop(path, None)
            return []

        cached = self._entries.get(path)
        if cached and cached.signature == signature and path not in self._dirty:
            return cached.links

        try:
            content = await self.store.read(path)
        except FileNotFoundError:
            self._entries.pop(path, None)
            return []

        links = parse_board_links(content) if is_board(path) else parse_links(content)
        self._entries[path] = CachedLinks(signature=signature, links=links)
        self._last_known[path] = links
        self._dirty.discard(path)
        logger.trace(f"Parsed {len(links)} links from {path}")
        return links

    async def prime(self) -> int:
        """Parse every document up front so deleted documents keep known links.

        Returns:
            Number of documents parsed
        """
        count = 0
        async for path in self.store.iter_files():
            if is_document(path):
                await self.get_links(path)
                count += 1
        logger.debug(f"Metadata cache primed with {count} documents")
        return count

    def last_known_links(self, path: str) -> List[Link]:
        """Links of a document as of its last parse, even if it no longer exists."""
        return list(self._last_known.get(path, []))

    async def all_files(self) -> Set[str]:
        return {path async for path in self.store.iter_files()}

    async def get_backlinks(self, path: str) -> Backlinks:
        """Every document linking to path, with the linking occurrences.

        Referring documents are returned in path order, links in document order.
        """
        files = await self.all_files()
        backlinks: Backlinks = {}

        for document in sorted(files):
            if not is_document(document):
                continue
            for link in await self.get_links(document):
                target = await self.link_resolver.extract_target_path(link, document, files)
                if target == path:
                    backlinks.setdefault(document, []).append(link)

        return backlinks

    async def get_resolved_links(self, path: str, source_path: Optional[str] = None) -> List[Tuple[Link, Optional[str]]]:
        """Links of a document paired with their target paths.

        Args:
            path: Document whose content is parsed
            source_path: Location the links are resolved from, defaults to path
        """
        files = await self.all_files()
        resolved = []
        for link in await self.get_links(path):
            target = await self.link_resolver.extract_target_path(link, source_path or path, files)
            resolved.append((link, target))
        return resolved
