"""Parse links out of markdown notes and canvas boards.

Two link syntaxes are recognized in markdown:

  1) wiki links:      [[path/to/Note]], [[Note#Section|Alias]], ![[image.png]]
  2) markdown links:  [text](path/to/Note.md), ![alt](<img 1.png> "title")

Links inside fenced code blocks and inline code spans are ignored. Offsets are
character offsets into the note content.

Boards (`.canvas`) are JSON documents whose `file` nodes reference other
vault entries by absolute vault path.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import unquote

from loguru import logger

WIKI_LINK_RE = re.compile(r"(?P<embed>!?)\[\[(?P<inner>[^\[\]\n]+?)\]\]")
MARKDOWN_LINK_RE = re.compile(
    r"(?P<embed>!?)\[(?P<text>(?:[^\[\]\n]|\[[^\[\]\n]*\])*)\]"
    r"\(\s*(?P<url><[^<>\n]+>|[^()\s]+)(?P<title>\s+(?:\"[^\"\n]*\"|'[^'\n]*'))?\s*\)"
)
FENCE_RE = re.compile(r"^(?P<fence>`{3,}|~{3,})[^\n]*\n.*?(?:^(?P=fence)[ \t]*$|\Z)", re.M | re.S)
INLINE_CODE_RE = re.compile(r"(?P<ticks>`+)(?!`).+?(?<!`)(?P=ticks)(?!`)", re.S)
URL_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


class LinkKind(str, Enum):
    WIKI = "wiki"
    MARKDOWN = "markdown"
    BOARD = "board"


@dataclass(frozen=True)
class Link:
    """One link occurrence inside a document.

    Attributes:
        original: Raw text of the link as it appears in the document
        link: Target path as written, without subpath or alias
        kind: Link syntax
        start: Offset of the first character (text documents only)
        end: Offset after the last character (text documents only)
        embed: Whether the link is an embed (`![[...]]` / `![...](...)`)
        subpath: Heading or block qualifier including the leading "#"
        display: Alias of a wiki link or text of a markdown link
        title: Title of a markdown link including its quotes
        angle: Whether a markdown link target is wrapped in <...>
        node_index: Index of the owning node (board documents only)
    """

    original: str
    link: str
    kind: LinkKind
    start: Optional[int] = None
    end: Optional[int] = None
    embed: bool = False
    subpath: str = ""
    display: Optional[str] = None
    title: Optional[str] = None
    angle: bool = False
    node_index: Optional[int] = None

    @property
    def target(self) -> str:
        """Target path with URL escapes decoded (markdown links only carry escapes)."""
        if self.kind == LinkKind.MARKDOWN and not self.angle:
            return unquote(self.link)
        return self.link

    @property
    def has_position(self) -> bool:
        return self.start is not None and self.end is not None


def _code_ranges(content: str) -> List[Tuple[int, int]]:
    ranges = [(m.start(), m.end()) for m in FENCE_RE.finditer(content)]

    def in_fence(pos: int) -> bool:
        return any(start <= pos < end for start, end in ranges)

    inline = [
        (m.start(), m.end()) for m in INLINE_CODE_RE.finditer(content) if not in_fence(m.start())
    ]
    return ranges + inline


def _split_subpath(target: str) -> Tuple[str, str]:
    if "#" in target:
        path, sub = target.split("#", 1)
        return path, f"#{sub}"
    return target, ""


def _parse_wiki(match: re.Match) -> Optional[Link]:
    inner = match.group("inner")
    display = None
    target = inner
    if "|" in inner:
        target, display = inner.split("|", 1)
    path, subpath = _split_subpath(target)
    if not path.strip():
        # [[#Heading]] points into the same note
        return None
    return Link(
        original=match.group(0),
        link=path.strip(),
        kind=LinkKind.WIKI,
        start=match.start(),
        end=match.end(),
        embed=bool(match.group("embed")),
        subpath=subpath,
        display=display,
    )


def _parse_markdown(match: re.Match) -> Optional[Link]:
    url = match.group("url")
    angle = url.startswith("<") and url.endswith(">")
    if angle:
        url = url[1:-1]
    if url.startswith("#") or URL_SCHEME_RE.match(url):
        return None
    path, subpath = _split_subpath(url)
    if not path:
        return None
    return Link(
        original=match.group(0),
        link=path,
        kind=LinkKind.MARKDOWN,
        start=match.start(),
        end=match.end(),
        embed=bool(match.group("embed")),
        subpath=subpath,
        display=match.group("text"),
        title=match.group("title"),
        angle=angle,
    )


def parse_links(content: str) -> List[Link]:
    """Find every wiki and markdown link in note content, in document order."""
    code = _code_ranges(content)

    def in_code(pos: int) -> bool:
        return any(start <= pos < end for start, end in code)

    links: List[Link] = []
    wiki_spans: List[Tuple[int, int]] = []

    for match in WIKI_LINK_RE.finditer(content):
        if in_code(match.start()):
            continue
        wiki_spans.append((match.start(), match.end()))
        link = _parse_wiki(match)
        if link:
            links.append(link)

    for match in MARKDOWN_LINK_RE.finditer(content):
        if in_code(match.start()):
            continue
        if any(start <= match.start() < end for start, end in wiki_spans):
            continue
        link = _parse_markdown(match)
        if link:
            links.append(link)

    links.sort(key=lambda link: link.start or 0)
    return links


def parse_board_links(content: str) -> List[Link]:
    """Collect the `file` nodes of a canvas board."""
    if not content.strip():
        return []
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid board JSON, no links extracted: {e}")
        return []

    links: List[Link] = []
    for index, node in enumerate(data.get("nodes", []) if isinstance(data, dict) else []):
        if not isinstance(node, dict) or node.get("type") != "file" or not node.get("file"):
            continue
        links.append(
            Link(
                original=node["file"],
                link=node["file"],
                kind=LinkKind.BOARD,
                subpath=node.get("subpath", "") or "",
                node_index=index,
            )
        )
    return links
