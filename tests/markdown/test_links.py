"""Tests for link parsing."""

import json

from consistent_attachments.markdown.links import LinkKind, parse_board_links, parse_links


def test_wiki_link():
    content = "See [[a/img.png]] here"
    links = parse_links(content)

    assert len(links) == 1
    link = links[0]
    assert link.kind == LinkKind.WIKI
    assert link.link == "a/img.png"
    assert link.original == "[[a/img.png]]"
    assert content[link.start : link.end] == link.original
    assert not link.embed


def test_wiki_link_with_subpath_and_alias():
    links = parse_links("![[Note#Section|Alias]]")

    assert len(links) == 1
    link = links[0]
    assert link.embed
    assert link.link == "Note"
    assert link.subpath == "#Section"
    assert link.display == "Alias"


def test_markdown_link_with_title_and_escapes():
    content = '[text](path/to%20note.md "title")'
    links = parse_links(content)

    assert len(links) == 1
    link = links[0]
    assert link.kind == LinkKind.MARKDOWN
    assert link.link == "path/to%20note.md"
    assert link.target == "path/to note.md"
    assert link.display == "text"
    assert link.title == ' "title"'


def test_markdown_link_in_angle_brackets():
    links = parse_links("![alt](<img 1.png>)")

    assert len(links) == 1
    assert links[0].angle
    assert links[0].embed
    assert links[0].target == "img 1.png"


def test_markdown_link_with_heading():
    links = parse_links("[x](other.md#part)")

    assert links[0].link == "other.md"
    assert links[0].subpath == "#part"


def test_external_and_same_document_links_are_skipped():
    content = "[site](https://example.com) [top](#heading) [[#Heading]] [mail](mailto:a@b.c)"
    assert parse_links(content) == []


def test_links_in_code_are_skipped():
    content = "```\n[[hidden]]\n```\n`[[inline]]` and [[shown]]\n"
    links = parse_links(content)

    assert [link.link for link in links] == ["shown"]


def test_links_are_in_document_order():
    content = "[b](b.md) then [[a]] then ![c](c.png)"
    links = parse_links(content)

    assert [link.link for link in links] == ["b.md", "a", "c.png"]
    assert [link.kind for link in links] == [LinkKind.MARKDOWN, LinkKind.WIKI, LinkKind.MARKDOWN]


def test_board_links():
    board = {
        "nodes": [
            {"id": "1", "type": "file", "file": "notes/a.md"},
            {"id": "2", "type": "text", "text": "[[not a link]]"},
            {"id": "3", "type": "file", "file": "img/pic.png", "subpath": "#x"},
        ],
        "edges": [],
    }
    links = parse_board_links(json.dumps(board))

    assert [link.link for link in links] == ["notes/a.md", "img/pic.png"]
    assert [link.node_index for link in links] == [0, 2]
    assert links[1].subpath == "#x"
    assert all(link.kind == LinkKind.BOARD for link in links)
    assert not links[0].has_position


def test_invalid_board_has_no_links():
    assert parse_board_links("{not json") == []
    assert parse_board_links("") == []
