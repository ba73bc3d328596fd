"""Document store backed by a local directory."""

import os
from pathlib import Path
from typing import AsyncIterator, Optional, Set, Tuple

import aiofiles
import aiofiles.os
from loguru import logger

from consistent_attachments.services.exceptions import StoreOperationError
from consistent_attachments.store.base import (
    DocumentStore,
    LinkUpdater,
    Listing,
    StoreEntry,
    StoreEvent,
)
from consistent_attachments.utils import dirname, join, normalize_path, split_extension

TRASH_FOLDER = ".trash"


class FileStore(DocumentStore):
    """Vault on the local filesystem.

    All paths are vault-relative. Hidden entries (names starting with ".")
    are invisible to listings, which keeps the trash folder and tool
    directories out of the engine's way.
    """

    def __init__(self, root: Path, link_updater: Optional[LinkUpdater] = None):
        super().__init__(link_updater=link_updater)
        self.root = Path(root)
        # paths mutated through this store, consumed by the watch service
        self._touched: Set[str] = set()

    def _abs(self, path: str) -> Path:
        path = normalize_path(path)
        if path == ".." or path.startswith("../"):
            raise StoreOperationError(f"Path escapes the vault root: {path}")
        return self.root / path if path else self.root

    def _touch(self, *paths: str) -> None:
        self._touched.update(normalize_path(p) for p in paths)

    def drain_touched_paths(self) -> Set[str]:
        """Return and forget the paths this store mutated since the last call."""
        touched, self._touched = self._touched, set()
        return touched

    async def exists(self, path: str) -> bool:
        return await aiofiles.os.path.exists(self._abs(path))

    async def get_entry(self, path: str) -> Optional[StoreEntry]:
        full_path = self._abs(path)
        if await aiofiles.os.path.isdir(full_path):
            return StoreEntry(path=normalize_path(path), is_folder=True)
        if await aiofiles.os.path.isfile(full_path):
            return StoreEntry(path=normalize_path(path), is_folder=False)
        return None

    async def list_directory(self, path: str) -> Listing:
        folder = normalize_path(path)
        try:
            entries = await aiofiles.os.scandir(self._abs(folder))
        except FileNotFoundError:
            return Listing()
        except NotADirectoryError as e:
            raise StoreOperationError(f"Not a folder: {folder}") from e
        except OSError as e:
            raise StoreOperationError(f"Failed to list {folder}: {e}") from e

        listing = Listing()
        with entries:
            for entry in entries:
                if entry.name.startswith("."):
                    continue
                if entry.is_dir(follow_symlinks=False):
                    listing.folders.append(join(folder, entry.name))
                elif entry.is_file(follow_symlinks=False):
                    listing.files.append(join(folder, entry.name))

        listing.files.sort()
        listing.folders.sort()
        return listing

    async def iter_files(self, folder: str = "") -> AsyncIterator[str]:
        listing = await self.list_directory(folder)
        for file_path in listing.files:
            yield file_path
        for subfolder in listing.folders:
            async for file_path in self.iter_files(subfolder):
                yield file_path

    async def signature(self, path: str) -> Optional[Tuple[int, int]]:
        try:
            stat = await aiofiles.os.stat(self._abs(path))
        except (FileNotFoundError, NotADirectoryError):
            return None
        return stat.st_mtime_ns, stat.st_size

    async def read(self, path: str) -> str:
        try:
            async with aiofiles.open(self._abs(path), mode="r", encoding="utf-8", newline="") as f:
                return await f.read()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StoreOperationError(f"Failed to read {path}: {e}") from e

    async def _write_atomic(self, path: str, content: str) -> None:
        full_path = self._abs(path)
        tmp_path = full_path.with_name(f"{full_path.name}.tmp")
        try:
            await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8", newline="") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, full_path)
        except OSError as e:
            raise StoreOperationError(f"Failed to write {path}: {e}") from e

    async def write(self, path: str, content: str) -> None:
        path = normalize_path(path)
        if not await aiofiles.os.path.isfile(self._abs(path)):
            raise FileNotFoundError(f"Cannot modify missing file: {path}")
        await self._write_atomic(path, content)
        self._touch(path)
        logger.debug(f"Modified file: {path}")
        await self.notify(StoreEvent(action="modify", path=path))

    async def create(self, path: str, content: str = "") -> StoreEntry:
        path = normalize_path(path)
        if await self.exists(path):
            raise StoreOperationError(f"Destination already exists: {path}")
        await self._write_atomic(path, content)
        self._touch(path)
        logger.debug(f"Created file: {path}")
        await self.notify(StoreEvent(action="create", path=path))
        return StoreEntry(path=path)

    async def copy(self, path: str, new_path: str) -> StoreEntry:
        path = normalize_path(path)
        new_path = normalize_path(new_path)
        if await self.exists(new_path):
            raise StoreOperationError(f"Destination already exists: {new_path}")
        target = self._abs(new_path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(self._abs(path), mode="rb") as src:
                data = await src.read()
            async with aiofiles.open(target, mode="wb") as dst:
                await dst.write(data)
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StoreOperationError(f"Failed to copy {path} -> {new_path}: {e}") from e
        self._touch(new_path)
        logger.debug(f"Copied file: {path} -> {new_path}")
        await self.notify(StoreEvent(action="create", path=new_path))
        return StoreEntry(path=new_path)

    async def rename(self, path: str, new_path: str) -> StoreEntry:
        path = normalize_path(path)
        new_path = normalize_path(new_path)
        if await self.exists(new_path):
            raise StoreOperationError(f"Destination already exists: {new_path}")
        source = self._abs(path)
        is_folder = await aiofiles.os.path.isdir(source)
        try:
            await aiofiles.os.makedirs(self._abs(new_path).parent, exist_ok=True)
            await aiofiles.os.rename(source, self._abs(new_path))
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StoreOperationError(f"Failed to rename {path} -> {new_path}: {e}") from e
        self._touch(path, new_path)
        logger.debug(f"Renamed: {path} -> {new_path}")
        await self.run_link_updater(path, new_path)
        await self.notify(
            StoreEvent(action="rename", path=new_path, old_path=path, is_folder=is_folder)
        )
        return StoreEntry(path=new_path, is_folder=is_folder)

    async def _trash_path(self, path: str) -> str:
        stem, ext = split_extension(join(TRASH_FOLDER, path))
        candidate = join(TRASH_FOLDER, path)
        suffix = 1
        while await self.exists(candidate):
            candidate = f"{stem} {suffix}.{ext}" if ext else f"{stem} {suffix}"
            suffix += 1
        return candidate

    async def delete(self, path: str, to_trash: bool = True) -> None:
        path = normalize_path(path)
        source = self._abs(path)
        is_folder = await aiofiles.os.path.isdir(source)
        try:
            if to_trash:
                trash_path = await self._trash_path(path)
                await aiofiles.os.makedirs(self._abs(dirname(trash_path)), exist_ok=True)
                await aiofiles.os.rename(source, self._abs(trash_path))
            elif is_folder:
                await aiofiles.os.rmdir(source)
            else:
                await aiofiles.os.remove(source)
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StoreOperationError(f"Failed to delete {path}: {e}") from e
        self._touch(path)
        logger.debug(f"Deleted: {path} (trash={to_trash})")
        await self.notify(StoreEvent(action="delete", path=path, is_folder=is_folder))

    async def create_folder(self, path: str) -> None:
        try:
            await aiofiles.os.makedirs(self._abs(path), exist_ok=True)
        except FileExistsError:
            # a file sits where the folder should be
            raise StoreOperationError(f"Cannot create folder over a file: {path}")
        except OSError as e:
            raise StoreOperationError(f"Failed to create folder {path}: {e}") from e

    async def remove_folder(self, path: str) -> None:
        full_path = self._abs(path)
        try:
            await aiofiles.os.rmdir(full_path)
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StoreOperationError(f"Failed to remove folder {path}: {e}") from e
        self._touch(path)
        logger.debug(f"Removed folder: {path}")

    def __repr__(self) -> str:  # pragma: no cover
        return f"FileStore(root={os.fspath(self.root)!r})"
