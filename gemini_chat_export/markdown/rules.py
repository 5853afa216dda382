"""Node kinds and the Markdown formats shared by both serialization engines.

Every helper here is used by the markdownify-based engine and by the
hand-written walker alike, so that the two produce identical text.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from ..models import Node


class RenderKind(str, Enum):
    """Closed set of node kinds understood by the serializers."""

    TEXT = "text"
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    RULE = "rule"
    BLOCKQUOTE = "blockquote"
    CODE_BLOCK = "code_block"
    UNORDERED_LIST = "unordered_list"
    ORDERED_LIST = "ordered_list"
    TABLE = "table"
    MATH_BLOCK = "math_block"
    MATH_INLINE = "math_inline"
    LINE_BREAK = "line_break"
    STRONG = "strong"
    EMPHASIS = "emphasis"
    INLINE_CODE = "inline_code"
    LINK = "link"
    PASSTHROUGH = "passthrough"


BLOCK_KINDS = frozenset(
    {
        RenderKind.HEADING,
        RenderKind.PARAGRAPH,
        RenderKind.RULE,
        RenderKind.BLOCKQUOTE,
        RenderKind.CODE_BLOCK,
        RenderKind.UNORDERED_LIST,
        RenderKind.ORDERED_LIST,
        RenderKind.TABLE,
        RenderKind.MATH_BLOCK,
    }
)

INLINE_KINDS = frozenset(
    {
        RenderKind.TEXT,
        RenderKind.MATH_INLINE,
        RenderKind.LINE_BREAK,
        RenderKind.STRONG,
        RenderKind.EMPHASIS,
        RenderKind.INLINE_CODE,
        RenderKind.LINK,
    }
)

TAG_KINDS: dict[str, RenderKind] = {
    "h1": RenderKind.HEADING,
    "h2": RenderKind.HEADING,
    "h3": RenderKind.HEADING,
    "h4": RenderKind.HEADING,
    "h5": RenderKind.HEADING,
    "h6": RenderKind.HEADING,
    "p": RenderKind.PARAGRAPH,
    "hr": RenderKind.RULE,
    "blockquote": RenderKind.BLOCKQUOTE,
    "pre": RenderKind.CODE_BLOCK,
    "ul": RenderKind.UNORDERED_LIST,
    "ol": RenderKind.ORDERED_LIST,
    "table": RenderKind.TABLE,
    "br": RenderKind.LINE_BREAK,
    "b": RenderKind.STRONG,
    "strong": RenderKind.STRONG,
    "i": RenderKind.EMPHASIS,
    "em": RenderKind.EMPHASIS,
    "code": RenderKind.INLINE_CODE,
    "a": RenderKind.LINK,
}

# Grouping elements that are transparent on purpose; any other unmapped tag
# is a serialization gap.
TRANSPARENT_TAGS = frozenset(
    {
        "#fragment",
        "[document]",
        "div",
        "section",
        "article",
        "span",
        "li",
        "thead",
        "tbody",
        "tfoot",
        "tr",
        "th",
        "td",
    }
)

# Inline kinds whose output keeps the edge spaces of their text
EDGE_SPACE_KINDS = frozenset(
    {
        RenderKind.STRONG,
        RenderKind.EMPHASIS,
        RenderKind.INLINE_CODE,
        RenderKind.LINK,
    }
)

# Elements whose inner edges and outer neighbours drop whitespace text,
# as markdownify treats them; headings are matched by pattern.
WHITESPACE_BLOCK_TAGS = frozenset(
    {
        "p",
        "blockquote",
        "article",
        "div",
        "section",
        "ol",
        "ul",
        "li",
        "dl",
        "dt",
        "dd",
        "table",
        "thead",
        "tbody",
        "tfoot",
        "tr",
        "td",
        "th",
    }
)

MATH_ATTRIBUTE = "data-math"
MATH_BLOCK_CLASS = "math-block"
MATH_INLINE_CLASS = "math-inline"

HORIZONTAL_RULE = "\n\n---\n\n"
LINE_BREAK = "  \n"

_NEWLINE_WHITESPACE = re.compile(r"[\t \r\n]*[\r\n][\t \r\n]*")
_WHITESPACE = re.compile(r"[\t ]+")
_EDGE_NEWLINES = re.compile(r"^(\n*)((?:.*[^\n])?)(\n*)$", flags=re.DOTALL)
_BACKTICK_RUNS = re.compile(r"`+")
_HEADING_TAG = re.compile(r"h(\d+)")


def math_kind(classes: Iterable[str], has_math: bool) -> Optional[RenderKind]:
    """Attribute-based kind of an element, if it carries raw math notation."""
    if not has_math:
        return None
    classes = list(classes)
    if MATH_BLOCK_CLASS in classes:
        return RenderKind.MATH_BLOCK
    if MATH_INLINE_CLASS in classes:
        return RenderKind.MATH_INLINE
    return None


def classify(node: Node) -> RenderKind:
    """Map a node to exactly one kind; math attributes win over the tag."""
    if node.is_text:
        return RenderKind.TEXT
    if kind := math_kind(node.classes, node.has_attr(MATH_ATTRIBUTE)):
        return kind
    return TAG_KINDS.get(node.tag, RenderKind.PASSTHROUGH)


def heading_level(tag: str) -> int:
    return max(1, min(6, int(tag[1:])))


# -----------------------------------------------------------------------------
# Text
# -----------------------------------------------------------------------------


def normalize_whitespace(text: str) -> str:
    """Collapse blank runs to one space and whitespace around newlines to one newline."""
    text = _NEWLINE_WHITESPACE.sub("\n", text)
    return _WHITESPACE.sub(" ", text)


def join_fragments(fragments: Iterable[str]) -> str:
    """Concatenate rendered siblings, merging newlines at their boundaries.

    When one fragment ends with newlines and the next starts with newlines,
    the larger of the two runs is kept, capped at two.
    """
    parts = [""]
    for fragment in fragments:
        if not fragment:
            continue
        match = _EDGE_NEWLINES.match(fragment)
        assert match is not None
        leading, content, trailing = match.groups()
        if parts[-1] and leading:
            previous = parts.pop()
            leading = "\n" * min(2, max(len(previous), len(leading)))
        parts.extend([leading, content, trailing])
    return "".join(parts)


def strips_whitespace_inside(tag: Optional[str]) -> bool:
    """Whether text at the inner edges of this element loses its edge whitespace."""
    if not tag:
        return False
    return bool(_HEADING_TAG.match(tag)) or tag in WHITESPACE_BLOCK_TAGS


def strips_whitespace_outside(tag: Optional[str]) -> bool:
    """Whether text right before or after this element loses that whitespace."""
    return strips_whitespace_inside(tag) or tag == "pre"


def trim_edge_spaces(rendered: str, space_before: bool, space_after: bool) -> str:
    """Drop the edge space of an inline element next to text that already has one."""
    if space_before and rendered.startswith(" "):
        rendered = rendered[1:]
    if space_after and rendered.endswith(" "):
        rendered = rendered[:-1]
    return rendered


def _chomp(text: str) -> tuple[str, str, str]:
    prefix = " " if text and text[0] == " " else ""
    suffix = " " if text and text[-1] == " " else ""
    return prefix, suffix, text.strip()


# -----------------------------------------------------------------------------
# Inline formats
# -----------------------------------------------------------------------------


def emphasis(text: str, marker: str) -> str:
    """Wrap text in an emphasis marker, keeping edge spaces outside it."""
    prefix, suffix, text = _chomp(text)
    if not text:
        return ""
    return f"{prefix}{marker}{text}{marker}{suffix}"


def inline_code(text: str) -> str:
    """Inline code span; the delimiter outgrows any backtick run in the text."""
    prefix, suffix, text = _chomp(text)
    if not text:
        return ""
    max_ticks = max((len(run) for run in _BACKTICK_RUNS.findall(text)), default=0)
    delimiter = "`" * (max_ticks + 1)
    if max_ticks:
        text = f" {text} "
    return f"{prefix}{delimiter}{text}{delimiter}{suffix}"


def link(text: str, href: Optional[str]) -> str:
    prefix, suffix, text = _chomp(text)
    if not text:
        return ""
    if not href:
        return f"{prefix}{text}{suffix}"
    return f"{prefix}[{text}]({href}){suffix}"


def math_inline(notation: str) -> str:
    return f"${notation}$"


# -----------------------------------------------------------------------------
# Block formats
# -----------------------------------------------------------------------------


def heading(level: int, text: str) -> str:
    text = text.strip()
    return f"\n\n{'#' * level} {text}\n\n" if text else ""


def paragraph(text: str) -> str:
    text = text.strip()
    return f"\n\n{text}\n\n" if text else ""


def math_block(notation: str) -> str:
    return f"\n\n$${notation}$$\n\n"


def code_fence(text: str, lang: str = "") -> str:
    """Wrap text in a fenced code block with adaptive delimiter.

    If the text contains backticks, uses a longer delimiter to avoid conflicts.
    """
    max_ticks = 2
    for match in _BACKTICK_RUNS.finditer(text):
        max_ticks = max(max_ticks, len(match.group()))
    fence = "`" * max(3, max_ticks + 1)
    return f"{fence}{lang}\n{text}\n{fence}"


def code_block(text: str) -> str:
    """Fenced block of literal code, without its surrounding blank lines."""
    text = text.strip("\n")
    return f"\n\n{code_fence(text)}\n\n" if text else ""


def quote_block(text: str) -> str:
    text = text.strip()
    if not text:
        return ""
    lines = [f"> {line}" if line else ">" for line in text.split("\n")]
    return "\n\n" + "\n".join(lines) + "\n\n"


def format_list(items: list[str], ordered: bool) -> str:
    """Render list items one per line; numbering is 1-based.

    Further lines of an item, such as a nested list, are indented to line up
    with the item's text.
    """
    if not items:
        return ""
    lines: list[str] = []
    for position, text in enumerate(items, start=1):
        marker = f"{position}." if ordered else "-"
        first, *rest = text.strip().split("\n")
        indent = " " * (len(marker) + 1)
        lines.append(f"{marker} {first}")
        lines.extend(f"{indent}{line}" if line else "" for line in rest)
    return "\n\n" + "\n".join(lines) + "\n\n"


def clean_cell(text: str) -> str:
    text = re.sub(r"\n+", " ", text)
    return text.replace("|", "\\|").strip()


def format_table(rows: list[list[str]]) -> str:
    """Pipe table: first row is the header, followed by one separator row."""
    if not rows:
        return ""
    header, *body = rows
    lines = [
        f"| {' | '.join(header)} |",
        f"| {' | '.join('---' for _ in header)} |",
    ]
    lines.extend(f"| {' | '.join(row)} |" for row in body)
    return "\n\n" + "\n".join(lines) + "\n\n"


# -----------------------------------------------------------------------------
# Rule table
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SerializationRule:
    """An element predicate paired with its renderer.

    ``render`` receives the converter, the element and the set of enclosing
    tag names, and returns the element's complete Markdown.
    """

    name: str
    matches: Callable[[Any], bool]
    render: Callable[[Any, Any, set[str]], str]
