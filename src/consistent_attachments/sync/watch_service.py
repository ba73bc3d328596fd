"""Watch service for consistent-attachments."""

import asyncio
import hashlib
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set

import aiofiles
from loguru import logger
from pydantic import BaseModel, Field
from rich.console import Console
from watchfiles import awatch
from watchfiles.main import Change, FileChange

from consistent_attachments.config import WATCH_STATUS_JSON, ConsistentAttachmentsConfig
from consistent_attachments.services.rename_delete_handler import RenameDeleteHandler
from consistent_attachments.store.base import StoreEntry
from consistent_attachments.store.file_store import FileStore
from consistent_attachments.utils import is_document


class WatchEvent(BaseModel):
    timestamp: datetime
    path: str
    action: str  # moved, deleted, new, modified
    status: str  # success, error
    checksum: Optional[str]
    error: Optional[str] = None


class WatchServiceState(BaseModel):
    # Service status
    running: bool = False
    start_time: datetime = Field(default_factory=datetime.now)
    pid: int = Field(default_factory=os.getpid)

    # Stats
    error_count: int = 0
    last_error: Optional[datetime] = None
    last_scan: Optional[datetime] = None

    # File counts
    processed_files: int = 0

    # Recent activity
    recent_events: List[WatchEvent] = Field(default_factory=list)

    def add_event(
        self,
        path: str,
        action: str,
        status: str,
        checksum: Optional[str] = None,
        error: Optional[str] = None,
    ) -> WatchEvent:
        event = WatchEvent(
            timestamp=datetime.now(),
            path=path,
            action=action,
            status=status,
            checksum=checksum,
            error=error,
        )
        self.recent_events.insert(0, event)
        self.recent_events = self.recent_events[:100]  # Keep last 100
        return event

    def record_error(self, error: str):
        self.error_count += 1
        self.add_event(path="", action="sync", status="error", error=error)
        self.last_error = datetime.now()


class WatchService:
    """Feeds renames and deletes made outside the engine into the rename/delete handler.

    The filesystem reports a move as a delete plus an add; pairs whose content
    checksums match are treated as renames.
    """

    def __init__(
        self,
        app_config: ConsistentAttachmentsConfig,
        store: FileStore,
        handler: RenameDeleteHandler,
        quiet: bool = False,
    ):
        self.app_config = app_config
        self.store = store
        self.handler = handler
        self.metadata_cache = handler.metadata_cache
        self.state = WatchServiceState()
        self.status_path = app_config.data_dir_path / WATCH_STATUS_JSON
        self.status_path.parent.mkdir(parents=True, exist_ok=True)
        # last known checksum of every file, to recognize moves
        self.checksums: Dict[str, str] = {}

        # quiet mode keeps stdout clean when embedded
        self.console = Console(quiet=quiet)

    async def compute_checksum(self, path: str) -> str:
        """sha256 of a vault file's bytes."""
        hasher = hashlib.sha256()
        async with aiofiles.open(self.store.root / path, mode="rb") as f:
            hasher.update(await f.read())
        return hasher.hexdigest()

    async def scan(self) -> int:
        """Record checksums and links of every file in the vault."""
        self.checksums = {}
        async for path in self.store.iter_files():
            if self.app_config.is_path_ignored(path):
                continue
            self.checksums[path] = await self.compute_checksum(path)
        await self.metadata_cache.prime()
        self.state.last_scan = datetime.now()
        logger.info(f"Vault scanned, file_count={len(self.checksums)}")
        return len(self.checksums)

    async def refresh(self, paths: Set[str]) -> None:
        """Bring checksums of paths the engine changed up to date."""
        for path in paths:
            if await self.store.is_file(path):
                self.checksums[path] = await self.compute_checksum(path)
                await self.metadata_cache.get_links(path)
            else:
                self.checksums.pop(path, None)

    async def run(self):  # pragma: no cover
        """Watch the vault and propagate renames and deletes."""
        self.state.running = True
        self.state.start_time = datetime.now()
        await self.scan()
        await self.write_status()

        logger.info(
            "Watch service started, "
            f"vault={self.store.root} "
            f"debounce_ms={self.app_config.sync_delay} "
            f"pid={os.getpid()}"
        )

        try:
            async for changes in awatch(
                self.store.root,
                debounce=self.app_config.sync_delay,
                watch_filter=self.filter_changes,
                recursive=True,
            ):
                try:
                    await self.handle_changes(changes)
                except Exception as e:
                    logger.exception(f"Watch service error while handling changes: {e}")
                    self.state.record_error(str(e))
                    await self.write_status()

        except Exception as e:
            logger.exception(f"Watch service error: {e}")
            self.state.record_error(str(e))
            await self.write_status()
            raise

        finally:
            logger.info(
                "Watch service stopped, "
                f"runtime_seconds={int((datetime.now() - self.state.start_time).total_seconds())}"
            )

            self.state.running = False
            await self.write_status()

    def filter_changes(self, change: Change, path: str) -> bool:
        """Filter to only watch non-hidden files and directories.

        Returns:
            True if the file should be watched, False if it should be ignored
        """
        try:
            relative = Path(path).relative_to(self.store.root)
        except ValueError:
            relative = Path(path)

        # Skip hidden directories and files, the trash included
        for part in relative.parts:
            if part.startswith("."):
                return False

        # Skip temp files used in atomic operations
        if path.endswith(".tmp"):
            return False

        return not self.app_config.is_path_ignored(relative.as_posix())

    async def write_status(self):
        """Write current state to status file"""
        self.status_path.write_text(WatchServiceState.model_dump_json(self.state, indent=2))

    async def handle_changes(self, changes: Set[FileChange]) -> None:
        """Process a batch of file changes"""
        start_time = time.time()
        directory = self.store.root.resolve()
        # changes the engine made itself are already consistent
        own_changes = self.store.drain_touched_paths()

        adds: List[str] = []
        deletes: List[str] = []
        modifies: List[str] = []

        for change, path in changes:
            relative_path = Path(path).resolve().relative_to(directory).as_posix()
            if relative_path in own_changes:
                continue
            if change == Change.added:
                adds.append(relative_path)
            elif change == Change.deleted:
                deletes.append(relative_path)
            elif change == Change.modified:
                modifies.append(relative_path)

        logger.debug(
            f"Grouped file changes, added={len(adds)}, deleted={len(deletes)}, modified={len(modifies)}"
        )

        processed: Set[str] = set()

        # First handle potential moves
        for added_path in sorted(adds):
            if not await self.store.is_file(added_path):
                processed.add(added_path)
                continue
            added_checksum = await self.compute_checksum(added_path)

            for deleted_path in sorted(deletes):
                if deleted_path in processed or deleted_path == added_path:
                    continue
                if self.checksums.get(deleted_path) != added_checksum:
                    continue

                self.checksums.pop(deleted_path, None)
                self.checksums[added_path] = added_checksum
                await self.handler.on_rename(StoreEntry(path=added_path), deleted_path)
                self.state.add_event(
                    path=f"{deleted_path} -> {added_path}", action="moved", status="success"
                )
                self.console.print(f"[blue]→[/blue] {deleted_path} → {added_path}")
                logger.info(f"move: {deleted_path} -> {added_path}")
                processed.add(added_path)
                processed.add(deleted_path)
                break

        moved_count = len(processed & set(deletes))
        delete_count = 0
        add_count = 0
        modify_count = 0

        for path in deletes:
            if path in processed:
                continue
            processed.add(path)
            if await self.store.is_file(path):
                # atomic write by an editor, the file is still there
                modifies.append(path)
                continue
            if path not in self.checksums:
                # folders have no checksum
                logger.debug(f"Skipping deleted path with no checksum (likely a folder), path={path}")
                continue

            self.checksums.pop(path, None)
            self.metadata_cache.invalidate(path)
            await self.handler.on_delete(StoreEntry(path=path))
            self.state.add_event(path=path, action="deleted", status="success")
            self.console.print(f"[red]✕[/red] {path}")
            logger.info(f"deleted: {path}")
            delete_count += 1

        for path in adds + modifies:
            if path in processed and path not in modifies:
                continue
            processed.add(path)
            if not await self.store.is_file(path):
                continue
            checksum = await self.compute_checksum(path)
            is_new = path not in self.checksums
            self.checksums[path] = checksum
            if is_document(path):
                self.metadata_cache.invalidate(path)
                await self.metadata_cache.get_links(path)
            self.state.add_event(
                path=path, action="new" if is_new else "modified", status="success", checksum=checksum
            )
            if is_new:
                add_count += 1
            else:
                modify_count += 1

        # files the engine wrote before or while handling the batch
        await self.refresh(own_changes | self.store.drain_touched_paths())

        if processed:
            summary = []
            if add_count > 0:
                summary.append(f"[green]{add_count} added[/green]")
            if modify_count > 0:
                summary.append(f"[yellow]{modify_count} modified[/yellow]")
            if moved_count > 0:
                summary.append(f"[blue]{moved_count} moved[/blue]")
            if delete_count > 0:
                summary.append(f"[red]{delete_count} deleted[/red]")
            if summary:
                self.console.print(f"{', '.join(summary)}", style="dim")

        duration_ms = int((time.time() - start_time) * 1000)
        self.state.last_scan = datetime.now()
        self.state.processed_files += len(processed)

        logger.info(
            "File change processing completed, "
            f"processed_files={len(processed)}, "
            f"total_processed_files={self.state.processed_files}, "
            f"duration_ms={duration_ms}"
        )

        await self.write_status()
