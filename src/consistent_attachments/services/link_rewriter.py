"""Rename-aware link rewriting.

Rewritten links keep the syntax, style and decorations of the original:
wiki vs markdown, embed marker, subpath, alias or link text, markdown title,
angle brackets, URL escaping, and whether the target was spelled relative to
the document, relative to the vault root, or as the shortest unique name.
"""

from typing import AbstractSet, List, Mapping, Optional
from urllib.parse import quote

from loguru import logger

from consistent_attachments.markdown.links import Link, LinkKind
from consistent_attachments.services.file_changes import (
    DEFAULT_RETRIES,
    FileChange,
    apply_file_changes,
)
from consistent_attachments.services.link_resolver import LinkResolver, LinkStyle
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import (
    basename,
    dirname,
    normalize_path,
    relative,
    split_extension,
)

RenameMap = Mapping[str, str]


def _text_style(link: Link) -> LinkStyle:
    """Style implied by the spelling alone, for links that no longer resolve."""
    raw = link.target
    if raw.startswith("/"):
        return LinkStyle.ABSOLUTE
    if raw.startswith("./") or raw.startswith("../") or link.kind == LinkKind.MARKDOWN:
        return LinkStyle.RELATIVE
    return LinkStyle.SHORTEST if "/" not in raw else LinkStyle.ABSOLUTE


def _drop_md(link: Link, path: str) -> str:
    """Drop a .md extension the original link did not spell out."""
    written_ext = split_extension(basename(link.target))[1]
    if not written_ext and path.endswith(".md"):
        return path[:-3]
    return path


def _escape_markdown_target(link: Link, path: str) -> str:
    if link.angle:
        return path
    if "%" in link.link:
        return quote(path, safe="/")
    return path.replace(" ", "%20").replace("(", "%28").replace(")", "%29")


def build_link_text(link: Link, target_text: str) -> str:
    """Render a link pointing at target_text with the original link's decorations."""
    embed = "!" if link.embed else ""
    if link.kind == LinkKind.WIKI:
        alias = f"|{link.display}" if link.display is not None else ""
        return f"{embed}[[{target_text}{link.subpath}{alias}]]"
    if link.kind == LinkKind.MARKDOWN:
        url = _escape_markdown_target(link, target_text) + link.subpath
        if link.angle:
            url = f"<{url}>"
        return f"{embed}[{link.display or ''}]({url}{link.title or ''})"
    return target_text


class LinkRewriter:
    """Computes new link text for moved targets and rewrites a document's own links."""

    def __init__(
        self,
        store: DocumentStore,
        metadata_cache: MetadataCache,
        link_resolver: Optional[LinkResolver] = None,
        retries: int = DEFAULT_RETRIES,
    ):
        self.store = store
        self.metadata_cache = metadata_cache
        self.link_resolver = link_resolver or metadata_cache.link_resolver
        self.retries = retries

    def format_target(
        self,
        link: Link,
        target: str,
        owning_path: str,
        style: LinkStyle,
        files: AbstractSet[str],
        vacated: Optional[str] = None,
    ) -> str:
        """Spell target as seen from the document at owning_path in the given style."""
        if link.kind == LinkKind.BOARD:
            return target

        if style == LinkStyle.ABSOLUTE:
            spelled = _drop_md(link, target)
            return f"/{spelled}" if link.target.startswith("/") else spelled

        if style == LinkStyle.RELATIVE:
            spelled = _drop_md(link, relative(dirname(owning_path), target))
            if link.target.startswith("./") and not spelled.startswith("../"):
                spelled = f"./{spelled}"
            return spelled

        # shortest: the bare name when no other file shares it
        name = basename(target)
        names = {name, f"{name}.md"} if not split_extension(name)[1] else {name}
        others = [
            f for f in files if f != target and f != vacated and basename(f) in names
        ]
        if others:
            return _drop_md(link, target)
        return _drop_md(link, name)

    async def needs_rewrite(
        self,
        link: Link,
        old_target: str,
        new_target: str,
        owning_path: str,
        rename_map: RenameMap,
        files: AbstractSet[str],
        target_remains: bool = False,
    ) -> bool:
        """Whether a link still aims at a moving target and would break without a rewrite.

        A link that resolves to the final target once the move is complete keeps
        its text, unless it only gets there through a name fallback it did not
        rely on before. With target_remains the old target stays in place (a copy).
        """
        current = await self.link_resolver.resolve_link(link, owning_path, files)
        if current is None or current.path not in (old_target, new_target):
            return False

        final_target = rename_map.get(new_target, new_target)
        after_files = files if target_remains else files - {old_target}
        after = await self.link_resolver.resolve_link(link, owning_path, after_files | {final_target})
        if after is None or after.path != final_target:
            return True
        return after.style == LinkStyle.SHORTEST and current.style != LinkStyle.SHORTEST

    async def rewrite_link(
        self,
        link: Link,
        old_target: str,
        new_target: str,
        owning_path: str,
        rename_map: RenameMap,
        files: Optional[AbstractSet[str]] = None,
        target_remains: bool = False,
    ) -> str:
        """New raw text for a link that points at old_target and must point at new_target.

        The rename map is consulted for a target that is itself moving again in
        the same operation.
        """
        files = files if files is not None else await self.metadata_cache.all_files()
        final_target = rename_map.get(new_target, new_target)

        resolution = await self.link_resolver.resolve_link(link, owning_path, files)
        if resolution is not None and resolution.path == old_target:
            style = resolution.style
        else:
            style = _text_style(link)

        target_text = self.format_target(
            link,
            final_target,
            owning_path,
            style,
            files | {final_target},
            vacated=None if target_remains else old_target,
        )
        return build_link_text(link, target_text)

    async def compute_internal_changes(
        self,
        content_path: str,
        old_path: str,
        rename_map: RenameMap,
        content: str,
    ) -> List[FileChange]:
        """Changes that keep a moved document's own links pointing at the right targets.

        Links are resolved from old_path (where the document used to live) and
        re-spelled from the document's new location.
        """
        new_location = rename_map.get(old_path, content_path)
        files = await self.metadata_cache.all_files()
        links = await self.metadata_cache.get_links(content_path)
        changes: List[FileChange] = []

        for link in links:
            if not link.has_position or content[link.start : link.end] != link.original:
                continue
            resolution = await self.link_resolver.resolve_link(link, old_path, files)
            if resolution is None:
                continue

            target = resolution.path
            final_target = new_location if target == old_path else rename_map.get(target, target)
            if final_target == target and dirname(new_location) == dirname(old_path):
                continue
            if final_target == target and resolution.style != LinkStyle.RELATIVE:
                continue

            target_text = self.format_target(
                link,
                final_target,
                new_location,
                resolution.style,
                files | {final_target},
                vacated=target,
            )
            new_text = build_link_text(link, target_text)
            if new_text != link.original:
                changes.append(FileChange(link.start, link.end, link.original, new_text))

        return changes

    async def rewrite_all_internal_links(
        self, path: str, old_path: str, rename_map: RenameMap
    ) -> bool:
        """Update the links of the document at path after it moved from old_path.

        Returns:
            True if the document changed
        """
        path = normalize_path(path)

        async def provider(content: str) -> List[FileChange]:
            return await self.compute_internal_changes(path, old_path, rename_map, content)

        changed = await apply_file_changes(self.store, path, provider, retries=self.retries)
        if changed:
            logger.info(f"Updated internal links of {path} (moved from {old_path})")
        return changed
