"""Backlinks of a path that may be in the middle of a move."""

from typing import Optional

from consistent_attachments.services.metadata_cache import Backlinks, MetadataCache


async def get_backlinks(
    metadata_cache: MetadataCache, old_path: str, new_path: Optional[str] = None
) -> Backlinks:
    """Referring documents of old_path and new_path combined.

    Both locations are consulted because a document's content and its
    physical location can be updated in either order. Link lists of a
    referrer found under both paths are concatenated, old_path's first.
    Duplicate links are kept: a document linking twice has two entries.
    """
    backlinks: Backlinks = {
        referrer: list(links) for referrer, links in (await metadata_cache.get_backlinks(old_path)).items()
    }
    if not new_path or new_path == old_path:
        return backlinks

    for referrer, links in (await metadata_cache.get_backlinks(new_path)).items():
        backlinks.setdefault(referrer, []).extend(links)
    return backlinks
