"""Race-checked content updates."""

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from consistent_attachments.services.exceptions import ContentRaceError
from consistent_attachments.store.base import DocumentStore

DEFAULT_RETRIES = 10


@dataclass(frozen=True)
class FileChange:
    """Replace content[start:end], which must still read old_content, by new_content."""

    start: int
    end: int
    old_content: str
    new_content: str


ChangeProvider = Callable[[str], Awaitable[List[FileChange]]]
ContentTransform = Callable[[str], Optional[str]]


def apply_changes(content: str, changes: List[FileChange]) -> Optional[str]:
    """Apply non-overlapping changes to content.

    Returns None if any change no longer matches the content it was computed
    against, or if two changes overlap.
    """
    ordered = sorted(changes, key=lambda change: change.start)
    last_end = 0
    for change in ordered:
        if change.start < last_end:
            return None
        if content[change.start : change.end] != change.old_content:
            return None
        last_end = change.end

    result = content
    for change in reversed(ordered):
        result = result[: change.start] + change.new_content + result[change.end :]
    return result


async def apply_file_changes(
    store: DocumentStore,
    path: str,
    changes_provider: ChangeProvider,
    retries: int = DEFAULT_RETRIES,
) -> bool:
    """Apply the changes computed for a document as one content update.

    The provider gets the freshly read content and returns changes anchored at
    offsets of that content. If the content moved on between computing and
    writing, the whole round is repeated against fresh content.

    Returns:
        True if the document was modified

    Raises:
        ContentRaceError: if no round succeeded within `retries` attempts
    """
    for attempt in range(1, retries + 1):
        content = await store.read(path)
        changes = await changes_provider(content)
        changes = [c for c in changes if c.old_content != c.new_content]
        if not changes:
            return False

        new_content = apply_changes(content, changes)
        if new_content is None:
            logger.debug(f"Stale link offsets in {path}, attempt={attempt}")
            continue

        # last check before writing, content may have changed while changes were computed
        if await store.read(path) != content:
            logger.debug(f"Content of {path} changed during rewrite, attempt={attempt}")
            continue

        await store.write(path, new_content)
        logger.debug(f"Applied {len(changes)} link changes to {path}")
        return True

    raise ContentRaceError(path, retries)


async def process_with_retry(
    store: DocumentStore,
    path: str,
    transform: ContentTransform,
    retries: int = DEFAULT_RETRIES,
) -> bool:
    """Rewrite a whole document through transform, retrying if it changes underneath.

    The transform returns the new content, or None to leave the document alone.
    """
    for attempt in range(1, retries + 1):
        content = await store.read(path)
        new_content = transform(content)
        if new_content is None or new_content == content:
            return False

        if await store.read(path) != content:
            logger.debug(f"Content of {path} changed during rewrite, attempt={attempt}")
            continue

        await store.write(path, new_content)
        return True

    raise ContentRaceError(path, retries)
