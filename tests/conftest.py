"""Common test fixtures."""

from pathlib import Path
from typing import AsyncGenerator, Callable, Dict

import pytest
import pytest_asyncio

from consistent_attachments import config as config_module
from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services.attachment_mover import AttachmentMover
from consistent_attachments.services.folder_pruner import FolderPruner
from consistent_attachments.services.link_rewriter import LinkRewriter
from consistent_attachments.services.metadata_cache import MetadataCache
from consistent_attachments.services.rename_delete_handler import RenameDeleteHandler
from consistent_attachments.services.rename_propagator import RenamePropagator
from consistent_attachments.store.file_store import FileStore

VaultWriter = Callable[[Dict[str, str]], None]


@pytest.fixture
def config_home(tmp_path, monkeypatch) -> Path:
    """Isolated home and config directory, with the config cache reset."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("CONSISTENT_ATTACHMENTS_CONFIG_DIR", str(home / ".consistent-attachments"))
    monkeypatch.setattr(config_module, "_CONFIG_CACHE", None)
    return home


@pytest.fixture
def vault_path(tmp_path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def app_config(config_home, vault_path) -> ConsistentAttachmentsConfig:
    return ConsistentAttachmentsConfig(env="test", vault_path=str(vault_path))


@pytest.fixture
def write_vault(vault_path) -> VaultWriter:
    """Write {vault path: content} into the vault directory."""

    def write(files: Dict[str, str]) -> None:
        for path, content in files.items():
            full_path = vault_path / path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(content, encoding="utf-8")

    return write


@pytest.fixture
def read_vault(vault_path) -> Callable[[str], str]:
    def read(path: str) -> str:
        return (vault_path / path).read_text(encoding="utf-8")

    return read


@pytest.fixture
def store(vault_path) -> FileStore:
    return FileStore(vault_path)


@pytest_asyncio.fixture
async def metadata_cache(store) -> AsyncGenerator[MetadataCache, None]:
    cache = MetadataCache(store)
    yield cache
    cache.close()


@pytest.fixture
def folder_pruner(store, app_config) -> FolderPruner:
    return FolderPruner(store, app_config)


@pytest.fixture
def link_rewriter(store, metadata_cache) -> LinkRewriter:
    return LinkRewriter(store, metadata_cache)


@pytest.fixture
def attachment_mover(store, app_config, metadata_cache) -> AttachmentMover:
    return AttachmentMover(store, app_config, metadata_cache)


@pytest.fixture
def propagator(store, app_config, metadata_cache) -> RenamePropagator:
    return RenamePropagator(store, app_config, metadata_cache)


@pytest_asyncio.fixture
async def handler(store, app_config, metadata_cache) -> AsyncGenerator[RenameDeleteHandler, None]:
    """Handler subscribed to the store, so store renames and deletes propagate."""
    rename_delete_handler = RenameDeleteHandler(store, app_config, metadata_cache)
    yield rename_delete_handler
    rename_delete_handler.close()
