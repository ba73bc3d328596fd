"""Tests for rename-aware link rewriting."""

import pytest

from consistent_attachments.markdown.links import parse_links
from consistent_attachments.services.link_rewriter import build_link_text


def _link(content: str):
    return parse_links(content)[0]


@pytest.mark.parametrize(
    "original,target,expected",
    [
        ("![[a/img.png|200]]", "b/img.png", "![[b/img.png|200]]"),
        ("[[a#Heading]]", "b", "[[b#Heading]]"),
        ('[t](a%20b.md "T")', "c d.md", '[t](c%20d.md "T")'),
        ("[t](a.md)", "new (1).md", "[t](new%20%281%29.md)"),
        ("![a](<x y.png>)", "dir/x y.png", "![a](<dir/x y.png>)"),
        ("[t](a.md#part)", "b.md", "[t](b.md#part)"),
    ],
)
def test_build_link_text(original, target, expected):
    assert build_link_text(_link(original), target) == expected


FILES = frozenset({"notes/a.md", "notes/c.md"})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "original,files,expected",
    [
        ("[to a](a.md)", FILES, "[to a](b/a.md)"),
        ("[to a](./a.md)", FILES, "[to a](./b/a.md)"),
        ("[to a](/notes/a.md)", FILES, "[to a](/notes/b/a.md)"),
        ("[[notes/a]]", FILES, "[[notes/b/a]]"),
        ("[[a]]", FILES, "[[a]]"),
        # another a.md exists, the bare name would be ambiguous
        ("[[a|A]]", FILES | {"other/a.md"}, "[[notes/b/a|A]]"),
    ],
)
async def test_rewrite_link(link_rewriter, original, files, expected):
    new_text = await link_rewriter.rewrite_link(
        _link(original), "notes/a.md", "notes/b/a.md", "notes/c.md", {}, files=files
    )
    assert new_text == expected


@pytest.mark.asyncio
async def test_rewrite_link_follows_pending_rename(link_rewriter):
    new_text = await link_rewriter.rewrite_link(
        _link("[to a](a.md)"),
        "notes/a.md",
        "notes/b/a.md",
        "notes/c.md",
        {"notes/b/a.md": "archive/a.md"},
        files=FILES,
    )
    assert new_text == "[to a](../archive/a.md)"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "original,expected",
    [
        # still found by name after the move
        ("[[a]]", False),
        # a relative path breaks
        ("[to a](a.md)", True),
        ("[[notes/a]]", True),
        # unrelated
        ("[[c]]", False),
        ("[[missing]]", False),
    ],
)
async def test_needs_rewrite(link_rewriter, original, expected):
    result = await link_rewriter.needs_rewrite(
        _link(original), "notes/a.md", "notes/b/a.md", "notes/c.md", {}, FILES
    )
    assert result is expected


@pytest.mark.asyncio
async def test_copied_target_needs_explicit_path(link_rewriter):
    files = frozenset({"shared.png", "notes/n.md"})
    link = _link("![[shared.png]]")

    assert await link_rewriter.needs_rewrite(
        link, "shared.png", "notes/n/shared.png", "notes/n.md", {}, files, target_remains=True
    )
    new_text = await link_rewriter.rewrite_link(
        link, "shared.png", "notes/n/shared.png", "notes/n.md", {}, files=files, target_remains=True
    )
    assert new_text == "![[notes/n/shared.png]]"


@pytest.mark.asyncio
async def test_rewrite_all_internal_links(link_rewriter, write_vault, read_vault):
    content = "![[a/img.png]]\n[other](other.md)\n[site](https://example.com)\n"
    write_vault({"notes/b/a.md": content, "notes/other.md": "x", "notes/a/img.png": "x"})
    rename_map = {"notes/a.md": "notes/b/a.md", "notes/a/img.png": "notes/b/a/img.png"}

    changed = await link_rewriter.rewrite_all_internal_links("notes/b/a.md", "notes/a.md", rename_map)

    assert changed
    assert read_vault("notes/b/a.md") == (
        "![[a/img.png]]\n[other](../other.md)\n[site](https://example.com)\n"
    )


@pytest.mark.asyncio
async def test_internal_links_unchanged_within_same_folder(link_rewriter, write_vault, read_vault):
    write_vault({"notes/b.md": "[other](other.md) [[other]]", "notes/other.md": "x"})

    changed = await link_rewriter.rewrite_all_internal_links(
        "notes/b.md", "notes/a.md", {"notes/a.md": "notes/b.md"}
    )

    assert not changed
    assert read_vault("notes/b.md") == "[other](other.md) [[other]]"
