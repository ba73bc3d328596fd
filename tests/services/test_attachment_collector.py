"""Tests for collecting a note's attachments into its attachment folder."""

import pytest

from consistent_attachments.services.attachment_collector import AttachmentCollector
from consistent_attachments.services.attachment_mover import PathChange


@pytest.fixture
def collector(store, app_config, metadata_cache) -> AttachmentCollector:
    return AttachmentCollector(store, app_config, metadata_cache)


@pytest.mark.asyncio
async def test_collect_moves_and_copies(collector, vault_path, write_vault, read_vault):
    write_vault(
        {
            "notes/n.md": "![](../imgs/pic.png)\n![[shared.png]]\n![[missing.png]]\n",
            "imgs/pic.png": "pic",
            "shared.png": "shared",
            "o.md": "![[shared.png]]",
        }
    )

    result = await collector.collect_attachments("notes/n.md")

    assert result.moved_attachments == [
        PathChange("imgs/pic.png", "notes/n/pic.png"),
        PathChange("shared.png", "notes/n/shared.png"),
    ]
    assert read_vault("notes/n.md") == (
        "![](n/pic.png)\n![[notes/n/shared.png]]\n![[missing.png]]\n"
    )
    assert not (vault_path / "imgs").exists()
    # still used by o.md, so copied
    assert read_vault("shared.png") == "shared"
    assert read_vault("o.md") == "![[shared.png]]"


@pytest.mark.asyncio
async def test_collect_with_nothing_to_do(collector, write_vault, read_vault):
    write_vault({"notes/n.md": "![[n/pic.png]] [[other]]", "notes/n/pic.png": "x", "notes/other.md": "x"})

    result = await collector.collect_attachments("notes/n.md")

    assert result.moved_attachments == []
    assert read_vault("notes/n.md") == "![[n/pic.png]] [[other]]"


@pytest.mark.asyncio
async def test_collect_into_occupied_folder(collector, write_vault, read_vault):
    write_vault({"n.md": "![[pic.png]]", "pic.png": "new", "n/pic.png": "existing"})

    result = await collector.collect_attachments("n.md")

    assert result.renamed_files == [PathChange("n/pic.png", "n/pic 1.png")]
    assert read_vault("n.md") == "![[pic 1.png]]"
    assert read_vault("n/pic 1.png") == "new"


@pytest.mark.asyncio
async def test_collect_rejects_non_notes(collector, write_vault):
    write_vault({"board.canvas": "{}"})

    with pytest.raises(ValueError):
        await collector.collect_attachments("board.canvas")
    with pytest.raises(FileNotFoundError):
        await collector.collect_attachments("missing.md")


@pytest.mark.asyncio
async def test_collect_skips_ignored_notes(collector, write_vault):
    write_vault({"consistency-report.md": "![[pic.png]]", "pic.png": "x"})

    result = await collector.collect_attachments("consistency-report.md")

    assert result.moved_attachments == []
