"""Attachment folder locations and collision-free path allocation."""

from typing import Collection

from consistent_attachments.services.exceptions import NameSpaceExhaustedError
from consistent_attachments.store.base import DocumentStore
from consistent_attachments.utils import basename, dirname, join, normalize_path, split_extension

FILENAME_TOKEN = "${filename}"
# stand-in sibling used to tell name-derived attachment folders from shared ones
DUMMY_FILE_NAME = "DUMMY_FILE.md"
MAX_COPY_SUFFIX = 100000


def get_attachment_folder_path(note_path: str, template: str) -> str:
    """Attachment folder of a note for an attachment folder template.

    Examples:
        >>> get_attachment_folder_path("notes/a.md", "./${filename}")
        'notes/a'
        >>> get_attachment_folder_path("notes/a.md", "./")
        'notes'
        >>> get_attachment_folder_path("notes/a.md", "assets")
        'assets'
        >>> get_attachment_folder_path("notes/a.md", "/")
        ''
    """
    note_name = split_extension(basename(note_path))[0]
    resolved = template.replace(FILENAME_TOKEN, note_name).strip()

    if resolved in ("", "/"):
        return ""
    if resolved == "." or resolved.startswith("./"):
        return join(dirname(note_path), resolved[2:])
    return normalize_path(resolved)


def get_reference_attachment_folder_path(note_path: str, template: str) -> str:
    """Attachment folder a different note in the same directory would get."""
    return get_attachment_folder_path(join(dirname(note_path), DUMMY_FILE_NAME), template)


def get_new_attachment_path(attachment_path: str, note_path: str, template: str) -> str:
    """Where an attachment belongs once collected into the note's attachment folder."""
    return join(get_attachment_folder_path(note_path, template), basename(attachment_path))


def numbered_variant(path: str, number: int) -> str:
    """'dir/name.ext' -> 'dir/name N.ext'."""
    stem, ext = split_extension(path)
    return f"{stem} {number}.{ext}" if ext else f"{stem} {number}"


async def get_available_path(
    store: DocumentStore,
    path: str,
    taken: Collection[str] = (),
    keep_original: bool = True,
) -> str:
    """Find a path no store entry and no entry of `taken` occupies.

    Tries the path itself first (unless keep_original is False), then
    "name 1.ext", "name 2.ext", ...

    Raises:
        NameSpaceExhaustedError: if every numbered variant is taken
    """
    path = normalize_path(path)
    if keep_original and path not in taken and not await store.exists(path):
        return path

    for number in range(1, MAX_COPY_SUFFIX):
        candidate = numbered_variant(path, number)
        if candidate not in taken and not await store.exists(candidate):
            return candidate

    raise NameSpaceExhaustedError(path, MAX_COPY_SUFFIX)
