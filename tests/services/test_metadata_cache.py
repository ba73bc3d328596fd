"""Tests for the link cache and backlink lookup."""

import pytest

from consistent_attachments.services.backlinks import get_backlinks


@pytest.mark.asyncio
async def test_get_links_is_fresh(metadata_cache, store, write_vault):
    write_vault({"a.md": "[[b]]"})
    assert [link.link for link in await metadata_cache.get_links("a.md")] == ["b"]

    # written outside the store, caught by the signature check
    write_vault({"a.md": "[[b]] and [[c]]"})
    assert [link.link for link in await metadata_cache.get_links("a.md")] == ["b", "c"]

    await store.write("a.md", "[[d]]")
    assert [link.link for link in await metadata_cache.get_links("a.md")] == ["d"]


@pytest.mark.asyncio
async def test_attachments_and_missing_files_have_no_links(metadata_cache, write_vault):
    write_vault({"img.png": "[[not parsed]]"})

    assert await metadata_cache.get_links("img.png") == []
    assert await metadata_cache.get_links("missing.md") == []


@pytest.mark.asyncio
async def test_last_known_links_survive_deletion(metadata_cache, store, write_vault):
    write_vault({"a.md": "![[img.png]]", "img.png": "x"})
    await metadata_cache.prime()

    await store.delete("a.md")

    assert await metadata_cache.get_links("a.md") == []
    assert [link.link for link in metadata_cache.last_known_links("a.md")] == ["img.png"]


@pytest.mark.asyncio
async def test_get_backlinks(metadata_cache, write_vault):
    write_vault(
        {
            "notes/a.md": "![[img.png]]",
            "notes/b.md": "[pic](img.png) and [[a]]",
            "notes/img.png": "x",
            "board.canvas": '{"nodes": [{"id": "1", "type": "file", "file": "notes/img.png"}]}',
        }
    )

    backlinks = await metadata_cache.get_backlinks("notes/img.png")

    assert list(backlinks) == ["board.canvas", "notes/a.md", "notes/b.md"]
    assert [link.original for link in backlinks["notes/b.md"]] == ["[pic](img.png)"]


@pytest.mark.asyncio
async def test_get_resolved_links_from_other_location(metadata_cache, write_vault):
    write_vault({"moved/a.md": "[[img.png]]", "notes/img.png": "x", "moved/img.png": "y"})

    resolved = await metadata_cache.get_resolved_links("moved/a.md", source_path="notes/a.md")

    assert [target for _, target in resolved] == ["notes/img.png"]


@pytest.mark.asyncio
async def test_backlinks_of_old_and_new_path(metadata_cache, write_vault):
    write_vault(
        {
            "a.md": "[[old.png]]",
            "b.md": "[[new.png]]",
            "c.md": "[[new.png]] [[old.png]]",
            "old.png": "x",
            "new.png": "x",
        }
    )

    backlinks = await get_backlinks(metadata_cache, "old.png", "new.png")

    assert set(backlinks) == {"a.md", "b.md", "c.md"}
    # old path's links first
    assert [link.link for link in backlinks["c.md"]] == ["old.png", "new.png"]


@pytest.mark.asyncio
async def test_backlinks_same_path_not_doubled(metadata_cache, write_vault):
    write_vault({"a.md": "[[img.png]]", "img.png": "x"})

    backlinks = await get_backlinks(metadata_cache, "img.png", "img.png")

    assert len(backlinks["a.md"]) == 1
