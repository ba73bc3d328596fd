"""Tests for working out which attachments follow a renamed document.

The renamed document already sits at its new path, as it does when the
store reports the rename.
"""

import pytest

from consistent_attachments.config import ConsistentAttachmentsConfig
from consistent_attachments.services import attachment_paths
from consistent_attachments.services.rename_map import RenameMapBuilder, RenamePlan
from consistent_attachments.store.base import StoreEntry


@pytest.fixture
def builder(store, app_config, metadata_cache) -> RenameMapBuilder:
    return RenameMapBuilder(store, app_config, metadata_cache)


@pytest.fixture
def shared_folder_builder(store, metadata_cache, vault_path, config_home) -> RenameMapBuilder:
    config = ConsistentAttachmentsConfig(
        env="test", vault_path=str(vault_path), attachment_folder_path="./assets"
    )
    return RenameMapBuilder(store, config, metadata_cache)


@pytest.mark.asyncio
async def test_name_derived_folder_moves_whole(builder, write_vault):
    write_vault(
        {
            "notes/b/a.md": "![[a/img.png]]",
            "notes/a/img.png": "x",
            "notes/a/sub/doc.pdf": "x",
            "notes/a/inner.md": "not an attachment",
        }
    )

    plan = await builder.fill_rename_map(StoreEntry("notes/b/a.md"), "notes/a.md", RenamePlan())

    assert plan.renames == {
        "notes/a.md": "notes/b/a.md",
        "notes/a/img.png": "notes/b/a/img.png",
        "notes/a/sub/doc.pdf": "notes/b/a/sub/doc.pdf",
    }
    assert list(plan.renames)[0] == "notes/a.md"
    assert plan.copies == {}


@pytest.mark.asyncio
async def test_attachments_linked_elsewhere_are_copied(builder, write_vault):
    write_vault(
        {
            "notes/b/a.md": "![[a/img.png]]",
            "notes/other.md": "![[a/img.png]]",
            "notes/a/img.png": "x",
        }
    )

    plan = await builder.fill_rename_map(StoreEntry("notes/b/a.md"), "notes/a.md", RenamePlan())

    assert plan.renames == {"notes/a.md": "notes/b/a.md"}
    assert plan.copies == {"notes/a/img.png": "notes/b/a/img.png"}


@pytest.mark.asyncio
async def test_occupied_destination_gets_suffix(builder, write_vault):
    write_vault(
        {
            "notes/b/a.md": "![[a/img.png]]",
            "notes/a/img.png": "x",
            "notes/b/a/img.png": "existing",
        }
    )

    plan = await builder.fill_rename_map(StoreEntry("notes/b/a.md"), "notes/a.md", RenamePlan())

    assert plan.renames["notes/a/img.png"] == "notes/b/a/img 1.png"


@pytest.mark.asyncio
async def test_shared_folder_only_takes_own_attachments(shared_folder_builder, write_vault):
    write_vault(
        {
            "other/a.md": "![[assets/img.png]] ![[assets/shared.png]]",
            "notes/c.md": "![[assets/shared.png]]",
            "notes/assets/img.png": "x",
            "notes/assets/shared.png": "x",
            "notes/assets/unrelated.png": "x",
        }
    )

    plan = await shared_folder_builder.fill_rename_map(
        StoreEntry("other/a.md"), "notes/a.md", RenamePlan()
    )

    assert plan.renames == {
        "notes/a.md": "other/a.md",
        "notes/assets/img.png": "other/assets/img.png",
    }
    assert plan.copies == {}


@pytest.mark.asyncio
async def test_same_attachment_folder_adds_nothing(shared_folder_builder, write_vault):
    write_vault({"notes/b.md": "![[assets/img.png]]", "notes/assets/img.png": "x"})

    plan = await shared_folder_builder.fill_rename_map(
        StoreEntry("notes/b.md"), "notes/a.md", RenamePlan()
    )

    assert plan.renames == {"notes/a.md": "notes/b.md"}


@pytest.mark.asyncio
async def test_attachment_rename_has_no_followers(builder, write_vault):
    write_vault({"notes/x.png": "x", "notes/a/img.png": "x"})

    plan = await builder.fill_rename_map(StoreEntry("notes/x.png"), "notes/a.png", RenamePlan())

    assert plan.renames == {"notes/a.png": "notes/x.png"}


@pytest.mark.asyncio
async def test_exhausted_name_leaves_attachment_behind(builder, write_vault, monkeypatch):
    monkeypatch.setattr(attachment_paths, "MAX_COPY_SUFFIX", 2)
    write_vault(
        {
            "notes/b/a.md": "x",
            "notes/a/img.png": "x",
            "notes/a/ok.png": "x",
            "notes/b/a/img.png": "taken",
            "notes/b/a/img 1.png": "taken",
        }
    )

    plan = await builder.fill_rename_map(StoreEntry("notes/b/a.md"), "notes/a.md", RenamePlan())

    assert plan.renames == {
        "notes/a.md": "notes/b/a.md",
        "notes/a/ok.png": "notes/b/a/ok.png",
    }
