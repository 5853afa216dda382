"""Conversion between BeautifulSoup trees and immutable ``Node`` snapshots."""

import html
from typing import Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

from .models import Node

# Synthetic tag for the container returned by parse_fragment()
FRAGMENT_TAG = "#fragment"

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    }
)

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction, CData)


def _attr_value(value: object) -> str:
    # bs4 returns multi-valued attributes such as class as lists
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


def node_from_tag(tag: Tag) -> Node:
    """Snapshot a BeautifulSoup element (and its subtree) as a ``Node``."""
    children: list[Node] = []
    for child in tag.children:
        if isinstance(child, Tag):
            children.append(node_from_tag(child))
        elif isinstance(child, NavigableString) and not isinstance(
            child, _SKIPPED_STRINGS
        ):
            text = str(child)
            if children and children[-1].is_text:
                # Strings split by a skipped comment re-parse as one string
                children[-1] = Node.text_node(children[-1].text + text)
            elif text:
                children.append(Node.text_node(text))
    attrs = {name: _attr_value(value) for name, value in tag.attrs.items()}
    return Node.element(tag.name, attrs, children)


def parse_fragment(markup: str) -> Node:
    """Parse an HTML fragment into a synthetic container node.

    The container itself has no rendering of its own; its children are the
    top-level nodes of ``markup``.
    """
    soup = BeautifulSoup(markup, "html.parser")
    root = node_from_tag(soup)
    return Node.element(FRAGMENT_TAG, children=root.children)


def select_node(soup: BeautifulSoup | Tag, selector: str) -> Optional[Node]:
    """Return the first element matching a CSS selector as a ``Node``."""
    found = soup.select_one(selector)
    return node_from_tag(found) if found is not None else None


def to_html(node: Node) -> str:
    """Serialize a node back to HTML markup."""
    if node.is_text:
        return html.escape(node.text, quote=False)
    attrs = "".join(
        f' {name}="{html.escape(value, quote=True)}"' for name, value in node.attrs
    )
    if node.tag in VOID_ELEMENTS:
        return f"<{node.tag}{attrs}>"
    return f"<{node.tag}{attrs}>{inner_html(node)}</{node.tag}>"


def inner_html(node: Node) -> str:
    """Serialize only the children of a node."""
    return "".join(to_html(child) for child in node.children)
