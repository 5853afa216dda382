"""Primary Markdown engine: markdownify extended with a rule table."""

import logging
from typing import Iterable, Optional

from bs4 import NavigableString, Tag
from markdownify import ATX, LSTRIP, MarkdownConverter

from ..dom import inner_html
from ..models import Node
from ..serializer import MarkdownSerializer
from .rules import (
    HORIZONTAL_RULE,
    LINE_BREAK,
    MATH_ATTRIBUTE,
    TAG_KINDS,
    TRANSPARENT_TAGS,
    RenderKind,
    SerializationRule,
    clean_cell,
    code_block,
    emphasis,
    format_list,
    format_table,
    heading,
    inline_code,
    link,
    math_block,
    math_inline,
    math_kind,
    paragraph,
    quote_block,
    trim_edge_spaces,
)

logger = logging.getLogger(__name__)

# Root of the parsed markup; markdownify's own conversion applies strip_document
DOCUMENT_TAG = "[document]"


def _element_math_kind(el: Tag) -> Optional[RenderKind]:
    return math_kind(el.get("class") or [], el.has_attr(MATH_ATTRIBUTE))


def _trim_against_text(el: Tag, rendered: str) -> str:
    previous, following = el.previous_sibling, el.next_sibling
    return trim_edge_spaces(
        rendered,
        isinstance(previous, NavigableString) and previous[-1:].isspace(),
        isinstance(following, NavigableString) and following[:1].isspace(),
    )


def _render_table(
    converter: "GeminiMarkdownConverter", el: Tag, parent_tags: set[str]
) -> str:
    cell_tags = parent_tags | {el.name, "tr"}
    rows = [
        [
            clean_cell(converter.process_tag(cell, parent_tags=cell_tags))
            for cell in row.find_all(["th", "td"])
        ]
        for row in el.find_all("tr")
    ]
    return format_table(rows)


def _render_list(
    converter: "GeminiMarkdownConverter", el: Tag, parent_tags: set[str]
) -> str:
    item_tags = parent_tags | {el.name}
    items = [
        converter.process_tag(item, parent_tags=item_tags)
        for item in el.find_all("li", recursive=False)
    ]
    return format_list(items, ordered=el.name == "ol")


def default_rules() -> list[SerializationRule]:
    """The built-in rule table, most specific first."""
    return [
        SerializationRule(
            name="math_block",
            matches=lambda el: _element_math_kind(el) == RenderKind.MATH_BLOCK,
            render=lambda converter, el, parent_tags: math_block(
                el.get(MATH_ATTRIBUTE) or ""
            ),
        ),
        SerializationRule(
            name="math_inline",
            matches=lambda el: _element_math_kind(el) == RenderKind.MATH_INLINE,
            render=lambda converter, el, parent_tags: math_inline(
                el.get(MATH_ATTRIBUTE) or ""
            ),
        ),
        SerializationRule(
            name="table",
            matches=lambda el: el.name == "table",
            render=_render_table,
        ),
        SerializationRule(
            name="list",
            matches=lambda el: el.name in ("ul", "ol"),
            render=_render_list,
        ),
        SerializationRule(
            name="line_break",
            matches=lambda el: el.name == "br",
            render=lambda converter, el, parent_tags: LINE_BREAK,
        ),
    ]


class GeminiMarkdownConverter(MarkdownConverter):
    """markdownify converter whose output matches the fallback walker.

    Elements are first offered to the rule table. Unmatched elements use the
    per-tag ``convert_*`` methods below; tags without one are transparent.
    """

    class Options(MarkdownConverter.DefaultOptions):
        bullets = "-"
        escape_asterisks = False
        escape_underscores = False
        escape_misc = False
        heading_style = ATX
        strip_document = LSTRIP

    def __init__(self, rules: Optional[Iterable[SerializationRule]] = None, **options):
        super().__init__(**options)
        self.rules = list(rules) if rules is not None else default_rules()

    def add_rule(self, rule: SerializationRule) -> None:
        """Register a rule ahead of the existing ones."""
        self.rules.insert(0, rule)

    def process_tag(self, node, parent_tags=None):
        if parent_tags is None:
            parent_tags = set()
        for rule in self.rules:
            if rule.matches(node):
                return rule.render(self, node, parent_tags)
        return super().process_tag(node, parent_tags=parent_tags)

    def get_conv_fn(self, tag_name):
        tag_name = tag_name.lower()
        if tag_name not in TAG_KINDS and tag_name != DOCUMENT_TAG:
            if tag_name not in TRANSPARENT_TAGS:
                logger.debug("No rule for <%s>, rendering its children", tag_name)
            return self.convert_passthrough
        return super().get_conv_fn(tag_name)

    def convert_passthrough(self, el, text, parent_tags):
        return text

    def convert_hN(self, n, el, text, parent_tags):
        return heading(max(1, min(6, n)), text)

    def convert_p(self, el, text, parent_tags):
        return paragraph(text)

    def convert_hr(self, el, text, parent_tags):
        return HORIZONTAL_RULE

    def convert_blockquote(self, el, text, parent_tags):
        return quote_block(text)

    def convert_pre(self, el, text, parent_tags):
        return code_block(el.get_text())

    def convert_b(self, el, text, parent_tags):
        return _trim_against_text(el, emphasis(text, "**"))

    convert_strong = convert_b

    def convert_em(self, el, text, parent_tags):
        return _trim_against_text(el, emphasis(text, "*"))

    convert_i = convert_em

    def convert_code(self, el, text, parent_tags):
        return _trim_against_text(el, inline_code(el.get_text()))

    def convert_a(self, el, text, parent_tags):
        return _trim_against_text(el, link(text, el.get("href")))


class PrimarySerializer(MarkdownSerializer):
    """Serializer backed by :class:`GeminiMarkdownConverter`."""

    name = "primary"

    def __init__(self, rules: Optional[Iterable[SerializationRule]] = None):
        self.converter = GeminiMarkdownConverter(rules=rules)

    def render(self, node: Node) -> str:
        return self.converter.convert(inner_html(node))
