"""Utility functions for consistent-attachments."""

import os
import posixpath
import sys
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger

DOCUMENT_EXTENSIONS = ("md", "canvas")
TEXT_DOCUMENT_EXTENSION = "md"
BOARD_DOCUMENT_EXTENSION = "canvas"


def normalize_path(path: str) -> str:
    """Normalize a vault path.

    Vault paths are slash separated, relative to the vault root and never start
    with "./" or "/". The root itself is represented by the empty string.

    Examples:
        >>> normalize_path("./notes//a.md")
        'notes/a.md'
        >>> normalize_path("notes\\\\sub\\\\..\\\\b.md")
        'notes/b.md'
        >>> normalize_path("/")
        ''
    """
    path = path.replace("\\", "/").strip()
    if not path:
        return ""
    normalized = posixpath.normpath(path)
    normalized = normalized.lstrip("/")
    if normalized == ".":
        return ""
    return normalized


def join(*parts: str) -> str:
    """Join vault path segments, skipping empty ones."""
    return normalize_path(posixpath.join(*[p for p in parts if p])) if any(parts) else ""


def dirname(path: str) -> str:
    """Parent directory of a vault path, "" for entries at the root."""
    return posixpath.dirname(normalize_path(path))


def basename(path: str, extension: Optional[str] = None) -> str:
    """File name of a vault path, optionally stripped of the given extension."""
    name = posixpath.basename(normalize_path(path))
    if extension and name.endswith(extension):
        return name[: -len(extension)]
    return name


def split_extension(path: str) -> Tuple[str, str]:
    """Split a path into (path without extension, extension without dot).

    Dot files such as ".hidden" are treated as having no extension.
    """
    stem, ext = posixpath.splitext(path)
    return stem, ext[1:] if ext else ""


def extension(path: str) -> str:
    """Lower-cased extension of a path without the leading dot."""
    return split_extension(path)[1].lower()


def relative(from_dir: str, to_path: str) -> str:
    """Path of `to_path` relative to the directory `from_dir`."""
    return posixpath.relpath(normalize_path(to_path) or ".", normalize_path(from_dir) or ".")


def is_within(path: str, folder: str) -> bool:
    """Whether a vault path lies inside folder (the folder itself excluded)."""
    folder = normalize_path(folder)
    path = normalize_path(path)
    if not folder:
        return bool(path)
    return path.startswith(f"{folder}/")


def is_document(path: str) -> bool:
    """Whether a path names a document (a note or a board) rather than an attachment."""
    return extension(path) in DOCUMENT_EXTENSIONS


def is_board(path: str) -> bool:
    return extension(path) == BOARD_DOCUMENT_EXTENSION


def is_text_document(path: str) -> bool:
    return extension(path) == TEXT_DOCUMENT_EXTENSION


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_to_stdout: bool = False,
    log_dir: Optional[Path] = None,
) -> None:  # pragma: no cover
    """Configure loguru sinks.

    Args:
        log_level: Minimum level for every sink
        log_to_file: Write a rotating log file under the data directory
        log_to_stdout: Write to stderr (stdout stays free for command output)
        log_dir: Override for the log directory
    """
    logger.remove()

    if log_to_file:
        if log_dir is None:
            config_dir = os.getenv("CONSISTENT_ATTACHMENTS_CONFIG_DIR")
            log_dir = (
                Path(config_dir) if config_dir else Path.home() / ".consistent-attachments"
            )
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "consistent-attachments.log"),
            level=log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    if log_to_stdout:
        logger.add(sys.stderr, level=log_level, backtrace=True, diagnose=False, colorize=True)

    logger.debug(f"Logging configured, level={log_level}, file={log_to_file}")
