"""Tests for dom.py: BeautifulSoup to Node conversion and back."""

from bs4 import BeautifulSoup

from gemini_chat_export.dom import (
    FRAGMENT_TAG,
    inner_html,
    node_from_tag,
    parse_fragment,
    select_node,
    to_html,
)
from gemini_chat_export.models import Node, NodeType


class TestParseFragment:
    """Tests for parse_fragment."""

    def test_wraps_top_level_nodes(self):
        root = parse_fragment("<p>one</p><p>two</p>")
        assert root.tag == FRAGMENT_TAG
        assert [child.tag for child in root.children] == ["p", "p"]

    def test_text_nodes_are_kept(self):
        root = parse_fragment("<p>Hello <b>world</b>!</p>")
        paragraph = root.children[0]
        assert paragraph.children[0] == Node.text_node("Hello ")
        assert paragraph.children[1].tag == "b"
        assert paragraph.children[2].text == "!"

    def test_comments_and_doctype_are_dropped(self):
        root = parse_fragment("<!DOCTYPE html><!-- note --><p>x</p>")
        assert len(root.children) == 1
        assert root.children[0].tag == "p"

    def test_strings_around_a_comment_are_merged(self):
        root = parse_fragment("<p>a <!-- note -->b</p>")
        assert root.children[0].children == (Node.text_node("a b"),)

    def test_class_list_is_joined(self):
        root = parse_fragment('<span class="math-inline  katex" data-math="x">x</span>')
        span = root.children[0]
        assert span.get("class") == "math-inline katex"
        assert span.has_class("math-inline")
        assert span.has_attr("data-math")

    def test_tags_are_lowercased(self):
        root = parse_fragment("<DIV><P>x</P></DIV>")
        assert root.children[0].tag == "div"
        assert root.children[0].children[0].tag == "p"


class TestNodeHelpers:
    """Tests for the Node query helpers."""

    def test_text_content_concatenates_descendants(self):
        root = parse_fragment("<div>a<span>b<i>c</i></span>d</div>")
        assert root.text_content() == "abcd"

    def test_find_all_is_document_order(self):
        root = parse_fragment("<ul><li>1<ul><li>2</li></ul></li><li>3</li></ul>")
        items = root.find_all(lambda n: n.tag == "li")
        assert [item.text_content() for item in items] == ["12", "2", "3"]

    def test_find_returns_none_when_missing(self):
        root = parse_fragment("<p>x</p>")
        assert root.find(lambda n: n.tag == "table") is None

    def test_text_node_type(self):
        node = Node.text_node("x")
        assert node.type == NodeType.TEXT
        assert node.is_text and not node.is_element


class TestToHtml:
    """Tests for serializing nodes back to markup."""

    def test_round_trip(self):
        markup = '<p class="a b">x &lt; y<br><a href="/q?a=1&amp;b=2">link</a></p>'
        assert inner_html(parse_fragment(markup)) == markup

    def test_void_elements_have_no_end_tag(self):
        root = parse_fragment('<hr><img src="x.png" alt="">')
        assert to_html(root.children[0]) == "<hr>"
        assert to_html(root.children[1]) == '<img src="x.png" alt="">'

    def test_attribute_quotes_escaped(self):
        node = Node.element("span", {"title": 'say "hi"'}, [Node.text_node("x")])
        assert to_html(node) == '<span title="say &quot;hi&quot;">x</span>'


class TestSelectNode:
    """Tests for select_node and node_from_tag."""

    def test_select_node(self):
        soup = BeautifulSoup("<div><user-query><p>q</p></user-query></div>", "html.parser")
        node = select_node(soup, "user-query")
        assert node is not None
        assert node.tag == "user-query"
        assert node.text_content() == "q"

    def test_select_node_missing(self):
        soup = BeautifulSoup("<div></div>", "html.parser")
        assert select_node(soup, "model-response") is None

    def test_node_from_tag_snapshot_is_independent(self):
        soup = BeautifulSoup("<p>before</p>", "html.parser")
        node = node_from_tag(soup.p)
        soup.p.string = "after"
        assert node.text_content() == "before"
