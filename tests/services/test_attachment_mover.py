"""Tests for attachment relocation."""

import pytest

from consistent_attachments.config import DuplicatePolicy
from consistent_attachments.services.attachment_mover import (
    AttachmentAction,
    PathChange,
    decide_attachment_action,
)


@pytest.mark.parametrize(
    "other_referrers,occupied,policy,expected",
    [
        (0, False, DuplicatePolicy.KEEP_BOTH, AttachmentAction.MOVE),
        (0, False, DuplicatePolicy.OVERWRITE, AttachmentAction.MOVE),
        (0, True, DuplicatePolicy.KEEP_BOTH, AttachmentAction.MOVE_WITH_SUFFIX),
        (0, True, DuplicatePolicy.OVERWRITE, AttachmentAction.DELETE_SOURCE),
        (2, False, DuplicatePolicy.KEEP_BOTH, AttachmentAction.COPY),
        (1, False, DuplicatePolicy.OVERWRITE, AttachmentAction.COPY),
        (1, True, DuplicatePolicy.KEEP_BOTH, AttachmentAction.COPY_WITH_SUFFIX),
        (1, True, DuplicatePolicy.OVERWRITE, AttachmentAction.NOTHING),
    ],
)
def test_decide_attachment_action(other_referrers, occupied, policy, expected):
    assert decide_attachment_action(other_referrers, occupied, policy) == expected


@pytest.mark.asyncio
async def test_move(attachment_mover, vault_path, write_vault):
    write_vault({"notes/a.md": "![[a/img.png]]", "notes/a/img.png": "png"})

    result = await attachment_mover.move_attachment(
        "notes/a/img.png", "notes/b/a/img.png", ["notes/a.md"]
    )

    assert result.moved_attachments == [PathChange("notes/a/img.png", "notes/b/a/img.png")]
    assert result.renamed_files == []
    assert (vault_path / "notes/b/a/img.png").read_text() == "png"
    # the emptied folder is pruned
    assert not (vault_path / "notes/a").exists()


@pytest.mark.asyncio
async def test_copy_when_others_link_to_it(attachment_mover, vault_path, write_vault):
    write_vault(
        {
            "notes/a.md": "![[a/img.png]]",
            "notes/other.md": "![[a/img.png]]",
            "notes/a/img.png": "png",
        }
    )

    result = await attachment_mover.move_attachment(
        "notes/a/img.png", "notes/b/a/img.png", ["notes/a.md"]
    )

    assert result.moved_attachments == [PathChange("notes/a/img.png", "notes/b/a/img.png")]
    assert (vault_path / "notes/a/img.png").exists()
    assert (vault_path / "notes/b/a/img.png").exists()


@pytest.mark.asyncio
async def test_move_with_suffix(attachment_mover, vault_path, write_vault):
    write_vault(
        {
            "notes/a.md": "![[a/img.png]]",
            "notes/a/img.png": "new",
            "notes/b/a/img.png": "existing",
        }
    )

    result = await attachment_mover.move_attachment(
        "notes/a/img.png", "notes/b/a/img.png", ["notes/a.md"]
    )

    assert result.moved_attachments == [PathChange("notes/a/img.png", "notes/b/a/img 1.png")]
    assert result.renamed_files == [PathChange("notes/b/a/img.png", "notes/b/a/img 1.png")]
    assert (vault_path / "notes/b/a/img.png").read_text() == "existing"
    assert (vault_path / "notes/b/a/img 1.png").read_text() == "new"


@pytest.mark.asyncio
async def test_copy_with_suffix(attachment_mover, vault_path, write_vault):
    write_vault(
        {
            "a.md": "![[img.png]]",
            "other.md": "![[img.png]]",
            "img.png": "new",
            "dest/img.png": "existing",
        }
    )

    result = await attachment_mover.move_attachment("img.png", "dest/img.png", ["a.md"])

    assert result.moved_attachments == [PathChange("img.png", "dest/img 1.png")]
    assert (vault_path / "img.png").exists()
    assert (vault_path / "dest/img 1.png").read_text() == "new"


@pytest.mark.asyncio
async def test_existing_destination_wins_with_overwrite(attachment_mover, vault_path, write_vault):
    write_vault({"a.md": "![[src/img.png]]", "src/img.png": "new", "dest/img.png": "existing"})

    result = await attachment_mover.move_attachment(
        "src/img.png", "dest/img.png", ["a.md"], delete_existing_files=True
    )

    assert result.moved_attachments == [PathChange("src/img.png", "dest/img.png")]
    assert (vault_path / "dest/img.png").read_text() == "existing"
    assert not (vault_path / "src").exists()
    assert (vault_path / ".trash/src/img.png").read_text() == "new"


@pytest.mark.asyncio
async def test_shared_and_occupied_with_overwrite_does_nothing(
    attachment_mover, vault_path, write_vault
):
    write_vault(
        {
            "a.md": "![[img.png]]",
            "other.md": "![[img.png]]",
            "img.png": "new",
            "dest/img.png": "existing",
        }
    )

    result = await attachment_mover.move_attachment(
        "img.png", "dest/img.png", ["a.md"], delete_existing_files=True
    )

    assert result.moved_attachments == []
    assert (vault_path / "img.png").read_text() == "new"
    assert (vault_path / "dest/img.png").read_text() == "existing"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "source,destination",
    [
        ("note.md", "dest/note.md"),
        ("img.png", "img.png"),
        ("missing.png", "dest/missing.png"),
        ("consistency-report.md", "dest/consistency-report.md"),
    ],
)
async def test_skipped_moves(attachment_mover, vault_path, write_vault, source, destination):
    write_vault({"note.md": "x", "img.png": "x", "consistency-report.md": "x"})

    result = await attachment_mover.move_attachment(source, destination, [])

    assert result.moved_attachments == []
    assert not (vault_path / "dest").exists()
