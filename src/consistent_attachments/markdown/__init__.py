"""Link parsing for markdown notes and canvas boards."""

from consistent_attachments.markdown.links import Link, LinkKind, parse_board_links, parse_links

__all__ = ["Link", "LinkKind", "parse_board_links", "parse_links"]
