"""Resolve link targets to vault paths."""

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Iterable, List, Optional

from loguru import logger

from consistent_attachments.markdown.links import Link, LinkKind
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import basename, dirname, join, normalize_path, split_extension


class LinkStyle(str, Enum):
    """How a link spells its target; preserved when the link is rewritten."""

    # relative to the owning document's folder ("../a/img.png", "a/img.png" in markdown)
    RELATIVE = "relative"
    # relative to the vault root ("/notes/a.md", "notes/a" in wiki links)
    ABSOLUTE = "absolute"
    # shortest unambiguous name ("img.png", "a")
    SHORTEST = "shortest"


@dataclass(frozen=True)
class Resolution:
    path: str
    style: LinkStyle


class LinkResolver:
    """Resolves links the way a note editor would.

    Resolution order:
    1. Paths starting with "./" or "../" only resolve relative to the owning document
    2. Paths starting with "/" only resolve from the vault root
    3. Otherwise try relative to the owning document, then from the vault root
    4. Finally fall back to a name (or path suffix) match anywhere in the vault,
       preferring the owning document's folder, then the shortest path

    Targets written without an extension also match "<target>.md".
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def _existing(self, path: str, files: Optional[AbstractSet[str]]) -> Optional[str]:
        if not path or path == ".." or path.startswith("../"):
            return None
        candidates = [path]
        if not split_extension(basename(path))[1]:
            candidates.append(f"{path}.md")
        for candidate in candidates:
            if files is not None:
                if candidate in files:
                    return candidate
            elif await self.store.is_file(candidate):
                return candidate
        return None

    async def _all_files(self) -> List[str]:
        return [path async for path in self.store.iter_files()]

    @staticmethod
    def _pick_closest(matches: Iterable[str], source_path: str) -> Optional[str]:
        matches = sorted(set(matches))
        if not matches:
            return None
        source_dir = dirname(source_path)
        same_folder = [m for m in matches if dirname(m) == source_dir]
        if same_folder:
            return same_folder[0]
        return min(matches, key=lambda m: (m.count("/"), len(m), m))

    async def resolve(
        self,
        target: str,
        source_path: str,
        files: Optional[AbstractSet[str]] = None,
        kind: LinkKind = LinkKind.WIKI,
    ) -> Optional[Resolution]:
        """Resolve a link target written in the document at source_path.

        Args:
            target: Target path as written, subpath and alias removed, escapes decoded
            source_path: Vault path the owning document resolves from
            files: Snapshot of all vault file paths, to avoid per-link store lookups
            kind: Syntax of the link (board links are always vault-absolute)
        """
        raw = target.strip()
        if not raw:
            return None

        if kind == LinkKind.BOARD:
            found = await self._existing(normalize_path(raw), files)
            return Resolution(found, LinkStyle.ABSOLUTE) if found else None

        if raw.startswith("/"):
            found = await self._existing(normalize_path(raw), files)
            return Resolution(found, LinkStyle.ABSOLUTE) if found else None

        relative_candidate = normalize_path(join(dirname(source_path), raw))
        explicit_relative = raw.startswith("./") or raw.startswith("../")
        found = await self._existing(relative_candidate, files)
        if found:
            if "/" in raw or kind == LinkKind.MARKDOWN:
                return Resolution(found, LinkStyle.RELATIVE)
            return Resolution(found, LinkStyle.SHORTEST)
        if explicit_relative:
            return None

        found = await self._existing(normalize_path(raw), files)
        if found:
            if "/" in raw:
                return Resolution(found, LinkStyle.ABSOLUTE)
            # a bare name at the root; markdown spells it relative to the document
            style = LinkStyle.RELATIVE if kind == LinkKind.MARKDOWN else LinkStyle.SHORTEST
            return Resolution(found, style)

        all_files = files if files is not None else set(await self._all_files())
        suffix = normalize_path(raw)
        names = {suffix} if split_extension(basename(suffix))[1] else {suffix, f"{suffix}.md"}
        matches = [f for f in all_files if any(f == n or f.endswith(f"/{n}") for n in names)]
        closest = self._pick_closest(matches, source_path)
        if closest:
            return Resolution(closest, LinkStyle.SHORTEST)

        logger.trace(f"Unresolved link target '{raw}' in {source_path}")
        return None

    async def resolve_link(
        self, link: Link, source_path: str, files: Optional[AbstractSet[str]] = None
    ) -> Optional[Resolution]:
        return await self.resolve(link.target, source_path, files=files, kind=link.kind)

    async def extract_target_path(
        self, link: Link, owning_path: str, files: Optional[AbstractSet[str]] = None
    ) -> Optional[str]:
        """Vault path a link points at when read from owning_path, or None if unresolved."""
        resolution = await self.resolve_link(link, owning_path, files=files)
        return resolution.path if resolution else None
