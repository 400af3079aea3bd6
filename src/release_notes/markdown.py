"""Reduce a markdown release body to merged, lightly marked-up text items.

The reduction runs in two passes:

1. classify() walks the syntax tree, carrying the parent node as context, and
   emits one Item per text run (plain, bold, italic, inline code, or link
   text) plus break markers at paragraph and list boundaries.
2. merge() joins consecutive items into one "text" item per paragraph or
   list, wrapping bold text in <b></b> and italic text in <i></i>.

Only the node kinds that show up in release notes are handled. Headings,
code blocks, tables, images and anything else produce nothing.

Usage:
    items = reduce_markdown("**Bold** and *italic* text.\\n")
    # [Item(category="text", text="<b>Bold</b> and <i>italic</i> text.")]
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import mistune

from release_notes.errors import MarkdownParseFailure
from release_notes.logging_config import get_logger
from release_notes.schemas import Category, Item

logger = get_logger(__name__)

# GitHub-flavoured extensions, so tables and task lists parse into nodes we
# can skip instead of leaking their raw syntax as text.
_markdown = mistune.create_markdown(
    renderer="ast",
    plugins=["strikethrough", "table", "url", "task_lists"],
)


# ---------------------------------------------------------------------------
# Syntax Tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Root:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Paragraph:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class List:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class ListItem:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Strong:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Emphasis:
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Link:
    url: str
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class InlineCode:
    value: str


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Image:
    url: str


@dataclass(frozen=True)
class Other:
    """Any node kind the reducer ignores, e.g. "heading" or "block_code"."""

    kind: str


Node = (
    Root
    | Paragraph
    | List
    | ListItem
    | Strong
    | Emphasis
    | Link
    | InlineCode
    | Text
    | Image
    | Other
)


def _join_text(nodes: Iterable[Node]) -> tuple[Node, ...]:
    """Merge runs of adjacent Text nodes into one.

    mistune splits a run of text at soft line breaks and some punctuation;
    joining keeps each run a single item, e.g. one <b></b> pair per run.
    """
    joined: list[Node] = []
    for node in nodes:
        if isinstance(node, Text) and joined and isinstance(joined[-1], Text):
            joined[-1] = Text(joined[-1].value + node.value)
        else:
            joined.append(node)
    return tuple(joined)


def _convert(token: dict[str, Any]) -> Node:
    """Convert one mistune AST token (and its children) into a Node."""
    kind = token.get("type", "")
    children = _join_text(_convert(child) for child in token.get("children") or ())
    attrs = token.get("attrs") or {}

    match kind:
        case "paragraph":
            return Paragraph(children)
        case "list":
            return List(children)
        # Tight list items wrap their inline content in block_text, which
        # behaves like the list item itself: no paragraph break.
        case "list_item" | "task_list_item" | "block_text":
            return ListItem(children)
        case "strong":
            return Strong(children)
        case "emphasis":
            return Emphasis(children)
        case "link":
            return Link(url=attrs.get("url", ""), children=children)
        case "image":
            return Image(url=attrs.get("url", ""))
        case "codespan":
            return InlineCode(token.get("raw", ""))
        case "text":
            return Text(token.get("raw", ""))
        case "softbreak":
            return Text("\n")
        case _:
            return Other(kind)


def parse(markdown: str) -> Root:
    """Parse markdown into a Root node.

    Raises:
        MarkdownParseFailure: If the parser fails or returns something other
            than a token list.
    """
    try:
        tokens = _markdown(markdown)
        if not isinstance(tokens, list):
            raise TypeError(f"expected a token list, got {type(tokens).__name__}")
        return Root(tuple(_convert(token) for token in tokens))
    except Exception as exc:
        raise MarkdownParseFailure(str(exc)) from exc


# ---------------------------------------------------------------------------
# Pass 1: Classification
# ---------------------------------------------------------------------------


def _item(category: str, text: str = "") -> Item:
    return Item(category=str(category), text=text)


def _text_category(context: Node | None) -> str:
    match context:
        case Strong():
            return Category.BOLD
        case Emphasis():
            return Category.ITALIC
        case Link(url=url):
            return url
        case _:
            return Category.TEXT


def _classify_children(children: Iterable[Node], parent: Node) -> list[Item]:
    items: list[Item] = []
    for child in children:
        items.extend(classify(child, parent))
    return items


def classify(node: Node, context: Node | None = None) -> list[Item]:
    """Flatten a syntax tree into classified items and break markers.

    Args:
        node: The node to visit
        context: The node's immediate parent, which decides how a text node
                 is classified

    Returns:
        Items in document order
    """
    match node:
        case Root(children=children):
            return _classify_children(children, node)
        case Paragraph(children=(Image(),)):
            # A paragraph holding only an image (usually a banner) is dropped.
            return []
        case Paragraph(children=children):
            return [*_classify_children(children, node), _item(Category.BREAK_PARAGRAPH)]
        case List(children=children):
            return [*_classify_children(children, node), _item(Category.BREAK_LIST)]
        case (
            ListItem(children=children)
            | Strong(children=children)
            | Emphasis(children=children)
            | Link(children=children)
        ):
            return _classify_children(children, node)
        case InlineCode(value=value):
            return [_item(Category.CODE, value)]
        case Text(value=value):
            return [_item(_text_category(context), value)]
        case Image() | Other():
            return []


# ---------------------------------------------------------------------------
# Pass 2: Merge
# ---------------------------------------------------------------------------


def merge(items: Sequence[Item]) -> list[Item]:
    """Merge classified items into one text item per break marker.

    Bold and italic text is wrapped in <b>/<i> tags. Inline code and link
    text are appended as-is. Text after the last break marker is dropped.
    """
    merged: list[Item] = []
    buffer: list[str] = []

    for item in items:
        match item.category:
            case Category.BREAK_PARAGRAPH | Category.BREAK_LIST:
                merged.append(_item(Category.TEXT, "".join(buffer)))
                buffer.clear()
            case Category.BOLD:
                buffer.append(f"<b>{item.text}</b>")
            case Category.ITALIC:
                buffer.append(f"<i>{item.text}</i>")
            case _:
                buffer.append(item.text)

    if buffer:
        logger.debug("markdown_trailing_text_dropped", fragments=len(buffer))
    return merged


def reduce_markdown(body: str | None) -> list[Item]:
    """Reduce a release body to merged text items.

    Returns an empty list for a missing or empty body, and for a body the
    parser cannot handle; parse failures are logged, not raised.
    """
    if not body:
        return []

    try:
        root = parse(body)
    except MarkdownParseFailure as exc:
        logger.warning("markdown_parse_failed", error=str(exc))
        return []

    return merge(classify(root))
