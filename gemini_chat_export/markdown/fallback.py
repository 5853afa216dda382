"""Fallback Markdown engine: a self-contained recursive tree walker.

The walker has a block renderer and an inline renderer. Each one owns a
handler table keyed by :class:`RenderKind` that covers every kind; a block
kind met in inline context (or the reverse) is handed to the other renderer.
"""

import logging
from typing import Callable, Iterable, Optional

from ..models import Node
from ..serializer import MarkdownSerializer
from .rules import (
    EDGE_SPACE_KINDS,
    HORIZONTAL_RULE,
    LINE_BREAK,
    MATH_ATTRIBUTE,
    TRANSPARENT_TAGS,
    RenderKind,
    classify,
    clean_cell,
    code_block,
    emphasis,
    format_list,
    format_table,
    heading,
    heading_level,
    inline_code,
    join_fragments,
    link,
    math_block,
    math_inline,
    normalize_whitespace,
    paragraph,
    quote_block,
    strips_whitespace_inside,
    strips_whitespace_outside,
    trim_edge_spaces,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Node], str]


class FallbackSerializer(MarkdownSerializer):
    """Renders the same Markdown as the primary engine without markdownify."""

    name = "fallback"

    def __init__(self) -> None:
        self.block_handlers: dict[RenderKind, Handler] = {
            RenderKind.TEXT: self._block_text,
            RenderKind.HEADING: self._heading,
            RenderKind.PARAGRAPH: self._paragraph,
            RenderKind.RULE: lambda node: HORIZONTAL_RULE,
            RenderKind.BLOCKQUOTE: self._blockquote,
            RenderKind.CODE_BLOCK: lambda node: code_block(node.text_content()),
            RenderKind.UNORDERED_LIST: self._list,
            RenderKind.ORDERED_LIST: self._list,
            RenderKind.TABLE: self._table,
            RenderKind.MATH_BLOCK: self._math_block,
            RenderKind.MATH_INLINE: self.render_inline,
            RenderKind.LINE_BREAK: self.render_inline,
            RenderKind.STRONG: self.render_inline,
            RenderKind.EMPHASIS: self.render_inline,
            RenderKind.INLINE_CODE: self.render_inline,
            RenderKind.LINK: self.render_inline,
            RenderKind.PASSTHROUGH: self._block_passthrough,
        }
        self.inline_handlers: dict[RenderKind, Handler] = {
            RenderKind.TEXT: lambda node: normalize_whitespace(node.text),
            RenderKind.HEADING: self.render_block,
            RenderKind.PARAGRAPH: self.render_block,
            RenderKind.RULE: self.render_block,
            RenderKind.BLOCKQUOTE: self.render_block,
            RenderKind.CODE_BLOCK: self.render_block,
            RenderKind.UNORDERED_LIST: self.render_block,
            RenderKind.ORDERED_LIST: self.render_block,
            RenderKind.TABLE: self.render_block,
            RenderKind.MATH_BLOCK: self.render_block,
            RenderKind.MATH_INLINE: self._math_inline,
            RenderKind.LINE_BREAK: lambda node: LINE_BREAK,
            RenderKind.STRONG: lambda node: emphasis(self.render_inlines(node), "**"),
            RenderKind.EMPHASIS: lambda node: emphasis(self.render_inlines(node), "*"),
            RenderKind.INLINE_CODE: lambda node: inline_code(node.text_content()),
            RenderKind.LINK: lambda node: link(
                self.render_inlines(node), node.get("href")
            ),
            RenderKind.PASSTHROUGH: self._inline_passthrough,
        }

    def render(self, node: Node) -> str:
        # The root is a document, not an element: its edges keep their text
        text = self._render_children(node, self.render_block, strip_inside=False)
        return text.lstrip("\n")

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def render_block(self, node: Node) -> str:
        return self.block_handlers[classify(node)](node)

    def render_inline(self, node: Node) -> str:
        return self.inline_handlers[classify(node)](node)

    def render_blocks(self, node: Node) -> str:
        return self._render_children(
            node, self.render_block, strips_whitespace_inside(node.tag)
        )

    def render_inlines(self, node: Node) -> str:
        return self._render_children(
            node, self.render_inline, strips_whitespace_inside(node.tag)
        )

    def _render_children(
        self, node: Node, render: Handler, strip_inside: bool
    ) -> str:
        """Render child nodes, applying whitespace rules that depend on siblings."""
        children = node.children
        fragments: list[str] = []
        for position, child in enumerate(children):
            previous = children[position - 1] if position > 0 else None
            following = children[position + 1] if position + 1 < len(children) else None
            if child.is_text:
                fragments.append(_sibling_text(child, previous, following, strip_inside))
                continue
            fragment = render(child)
            if classify(child) in EDGE_SPACE_KINDS:
                fragment = trim_edge_spaces(
                    fragment, _ends_with_space(previous), _starts_with_space(following)
                )
            fragments.append(fragment)
        return join_fragments(fragments)

    # -------------------------------------------------------------------------
    # Block handlers
    # -------------------------------------------------------------------------

    def _block_text(self, node: Node) -> str:
        return normalize_whitespace(node.text).strip()

    def _heading(self, node: Node) -> str:
        return heading(heading_level(node.tag), self.render_inlines(node))

    def _paragraph(self, node: Node) -> str:
        return paragraph(self.render_inlines(node))

    def _blockquote(self, node: Node) -> str:
        return quote_block(self.render_blocks(node))

    def _list(self, node: Node) -> str:
        items = [
            self.render_inlines(child)
            for child in node.children
            if child.is_element and child.tag == "li"
        ]
        return format_list(items, ordered=node.tag == "ol")

    def _table(self, node: Node) -> str:
        rows = [
            [clean_cell(self.render_inlines(cell)) for cell in _cells(row)]
            for row in node.find_all(lambda n: n.tag == "tr")
        ]
        return format_table(rows)

    def _math_block(self, node: Node) -> str:
        return math_block(node.get(MATH_ATTRIBUTE) or "")

    def _block_passthrough(self, node: Node) -> str:
        _log_gap(node)
        return self.render_blocks(node)

    # -------------------------------------------------------------------------
    # Inline handlers
    # -------------------------------------------------------------------------

    def _math_inline(self, node: Node) -> str:
        return math_inline(node.get(MATH_ATTRIBUTE) or "")

    def _inline_passthrough(self, node: Node) -> str:
        _log_gap(node)
        return self.render_inlines(node)


def _sibling_text(
    node: Node, previous: Optional[Node], following: Optional[Node], strip_inside: bool
) -> str:
    """Normalize a text node; whitespace next to block elements is dropped."""
    after_block = strips_whitespace_outside(previous.tag if previous else None)
    before_block = strips_whitespace_outside(following.tag if following else None)
    at_start = strip_inside and previous is None
    at_end = strip_inside and following is None
    if not node.text.strip() and (at_start or at_end or after_block or before_block):
        return ""
    text = normalize_whitespace(node.text)
    if after_block or at_start:
        text = text.lstrip(" \t\r\n")
    if before_block or at_end:
        text = text.rstrip()
    return text


def _ends_with_space(node: Optional[Node]) -> bool:
    return node is not None and node.is_text and node.text[-1:].isspace()


def _starts_with_space(node: Optional[Node]) -> bool:
    return node is not None and node.is_text and node.text[:1].isspace()


def _cells(row: Node) -> Iterable[Node]:
    return row.find_all(lambda n: n.tag in ("th", "td"))


def _log_gap(node: Node) -> None:
    if node.tag not in TRANSPARENT_TAGS:
        logger.debug("No rule for <%s>, rendering its children", node.tag)
