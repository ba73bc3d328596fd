"""Document store implementations."""

from consistent_attachments.store.base import DocumentStore, Listing, StoreEntry, StoreEvent
from consistent_attachments.store.file_store import FileStore

__all__ = ["DocumentStore", "FileStore", "Listing", "StoreEntry", "StoreEvent"]
