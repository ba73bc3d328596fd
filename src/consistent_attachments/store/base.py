"""Document store abstraction consumed by the propagation engine."""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Literal, Optional, Tuple

from loguru import logger

from consistent_attachments.utils import basename, dirname, normalize_path, split_extension


@dataclass(frozen=True)
class StoreEntry:
    """A file or folder in the store, identified by its vault path."""

    path: str
    is_folder: bool = False

    @property
    def name(self) -> str:
        return basename(self.path)

    @property
    def basename(self) -> str:
        """Name without extension."""
        return split_extension(self.name)[0]

    @property
    def extension(self) -> str:
        return split_extension(self.name)[1]

    @property
    def parent(self) -> str:
        return dirname(self.path)


@dataclass
class Listing:
    """Direct children of a folder, as vault paths."""

    files: List[str] = field(default_factory=list)
    folders: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.files and not self.folders


StoreAction = Literal["create", "modify", "rename", "delete"]


@dataclass(frozen=True)
class StoreEvent:
    """Change notification emitted after a store mutation."""

    action: StoreAction
    path: str
    old_path: Optional[str] = None
    is_folder: bool = False


StoreListener = Callable[[StoreEvent], Awaitable[None]]
LinkUpdater = Callable[[str, str], Awaitable[None]]


class DocumentStore(ABC):
    """Raw read/write/list operations on a hierarchical document store.

    Subclasses implement the I/O; this base class carries the change
    notification channel and the switch for the host's own link updating.
    """

    def __init__(self, link_updater: Optional[LinkUpdater] = None):
        self._listeners: List[StoreListener] = []
        self._link_update_suspensions = 0
        # host-provided naive link updater run on every rename while enabled
        self.link_updater = link_updater

    # --- notifications ---

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def notify(self, event: StoreEvent) -> None:
        """Deliver an event to every listener, in subscription order, awaiting each."""
        for listener in list(self._listeners):
            await listener(event)

    # --- host link auto-update ---

    @property
    def link_updates_enabled(self) -> bool:
        return self._link_update_suspensions == 0

    @asynccontextmanager
    async def suspend_link_updates(self) -> AsyncIterator[None]:
        """Disable the host's own link updating for the duration of the block.

        Suspensions nest, the updater comes back when the last one exits.
        """
        self._link_update_suspensions += 1
        try:
            yield
        finally:
            self._link_update_suspensions -= 1
            if self._link_update_suspensions == 0:
                logger.debug("Host link updates restored")

    async def run_link_updater(self, old_path: str, new_path: str) -> None:
        if self.link_updater is not None and self.link_updates_enabled:
            await self.link_updater(old_path, new_path)

    # --- I/O ---

    @abstractmethod
    async def exists(self, path: str) -> bool: ...

    @abstractmethod
    async def get_entry(self, path: str) -> Optional[StoreEntry]: ...

    @abstractmethod
    async def list_directory(self, path: str) -> Listing: ...

    @abstractmethod
    def iter_files(self, folder: str = "") -> AsyncIterator[str]:
        """Yield every file path transitively inside folder."""

    @abstractmethod
    async def signature(self, path: str) -> Optional[Tuple[int, int]]:
        """Cheap change detector for a file, e.g. (mtime_ns, size); None if absent."""

    @abstractmethod
    async def read(self, path: str) -> str: ...

    @abstractmethod
    async def write(self, path: str, content: str) -> None: ...

    @abstractmethod
    async def create(self, path: str, content: str = "") -> StoreEntry: ...

    @abstractmethod
    async def copy(self, path: str, new_path: str) -> StoreEntry: ...

    @abstractmethod
    async def rename(self, path: str, new_path: str) -> StoreEntry: ...

    @abstractmethod
    async def delete(self, path: str, to_trash: bool = True) -> None: ...

    @abstractmethod
    async def create_folder(self, path: str) -> None:
        """Create a folder and its parents, doing nothing if it already exists."""

    @abstractmethod
    async def remove_folder(self, path: str) -> None:
        """Remove an empty folder."""

    async def is_folder(self, path: str) -> bool:
        entry = await self.get_entry(path)
        return entry is not None and entry.is_folder

    async def is_file(self, path: str) -> bool:
        entry = await self.get_entry(normalize_path(path))
        return entry is not None and not entry.is_folder
