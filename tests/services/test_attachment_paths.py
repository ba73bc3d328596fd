"""Tests for attachment folder locations and path allocation."""

import pytest

from consistent_attachments.services import attachment_paths
from consistent_attachments.services.attachment_paths import (
    get_attachment_folder_path,
    get_available_path,
    get_new_attachment_path,
    get_reference_attachment_folder_path,
    numbered_variant,
)
from consistent_attachments.services.exceptions import NameSpaceExhaustedError


@pytest.mark.parametrize(
    "template,expected",
    [
        ("./${filename}", "notes/a"),
        ("./", "notes"),
        ("./assets", "notes/assets"),
        ("./assets/${filename}", "notes/assets/a"),
        ("assets", "assets"),
        ("assets/${filename}", "assets/a"),
        ("/", ""),
        ("", ""),
    ],
)
def test_get_attachment_folder_path(template, expected):
    assert get_attachment_folder_path("notes/a.md", template) == expected


def test_reference_folder_tells_name_derived_from_shared():
    # name-derived: every note gets its own folder
    assert get_reference_attachment_folder_path("notes/a.md", "./${filename}") == "notes/DUMMY_FILE"
    assert get_attachment_folder_path("notes/a.md", "./${filename}") == "notes/a"
    # shared: every note of the directory uses the same folder
    assert get_reference_attachment_folder_path("notes/a.md", "./assets") == "notes/assets"


def test_get_new_attachment_path():
    assert get_new_attachment_path("imgs/pic.png", "notes/n.md", "./${filename}") == "notes/n/pic.png"
    assert get_new_attachment_path("imgs/pic.png", "n.md", "/") == "pic.png"


def test_numbered_variant():
    assert numbered_variant("a/img.png", 2) == "a/img 2.png"
    assert numbered_variant("a/README", 1) == "a/README 1"


@pytest.mark.asyncio
async def test_get_available_path(store, write_vault):
    write_vault({"a/img.png": "x", "a/img 1.png": "x"})

    assert await get_available_path(store, "a/other.png") == "a/other.png"
    assert await get_available_path(store, "a/img.png") == "a/img 2.png"
    assert await get_available_path(store, "a/img.png", taken=["a/img 2.png"]) == "a/img 3.png"
    assert await get_available_path(store, "a/other.png", keep_original=False) == "a/other 1.png"


@pytest.mark.asyncio
async def test_get_available_path_exhausted(store, write_vault, monkeypatch):
    write_vault({"img.png": "x", "img 1.png": "x", "img 2.png": "x"})
    monkeypatch.setattr(attachment_paths, "MAX_COPY_SUFFIX", 3)

    with pytest.raises(NameSpaceExhaustedError):
        await get_available_path(store, "img.png")
