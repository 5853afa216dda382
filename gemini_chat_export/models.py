"""Data models for scraped Gemini transcripts and the exported document.

Content trees are captured as immutable ``Node`` values so that the rest of
the pipeline never holds on to live page objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional


class NodeType(str, Enum):
    """Kind of a content tree node."""

    TEXT = "text"
    ELEMENT = "element"


@dataclass(frozen=True)
class Node:
    """Read-only snapshot of one node of the page's content tree."""

    type: NodeType
    tag: str = ""
    attrs: tuple[tuple[str, str], ...] = ()
    children: tuple["Node", ...] = ()
    text: str = ""

    @classmethod
    def element(
        cls,
        tag: str,
        attrs: Optional[dict[str, str]] = None,
        children: Iterable["Node"] = (),
    ) -> "Node":
        return cls(
            type=NodeType.ELEMENT,
            tag=tag.lower(),
            attrs=tuple((attrs or {}).items()),
            children=tuple(children),
        )

    @classmethod
    def text_node(cls, text: str) -> "Node":
        return cls(type=NodeType.TEXT, text=text)

    @property
    def is_text(self) -> bool:
        return self.type == NodeType.TEXT

    @property
    def is_element(self) -> bool:
        return self.type == NodeType.ELEMENT

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        for key, value in self.attrs:
            if key == name:
                return value
        return default

    def has_attr(self, name: str) -> bool:
        return any(key == name for key, _ in self.attrs)

    @property
    def classes(self) -> list[str]:
        return (self.get("class") or "").split()

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def text_content(self) -> str:
        """Concatenated text of this node and all its descendants."""
        if self.is_text:
            return self.text
        return "".join(child.text_content() for child in self.children)

    def iter_descendants(self) -> Iterator["Node"]:
        """Yield descendants in document (pre-)order, excluding self."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def find_all(self, predicate: Callable[["Node"], bool]) -> list["Node"]:
        return [
            node
            for node in self.iter_descendants()
            if node.is_element and predicate(node)
        ]

    def find(self, predicate: Callable[["Node"], bool]) -> Optional["Node"]:
        for node in self.iter_descendants():
            if node.is_element and predicate(node):
                return node
        return None


# =============================================================================
# Transcript Models
# =============================================================================


class MessageSelection(str, Enum):
    """Which message sides are exported."""

    ALL = "all"
    AI = "ai"
    NONE = "none"
    CUSTOM = "custom"


@dataclass(frozen=True)
class TurnSelection:
    """Inclusion flags for the two sides of a turn."""

    user: bool = True
    model: bool = True

    @property
    def any_selected(self) -> bool:
        return self.user or self.model


@dataclass(frozen=True)
class Turn:
    """One exchange of the transcript, in scrape order.

    ``user_root`` is the ``user-query`` element and ``model_root`` the
    ``model-response`` element; either may be missing.
    """

    index: int
    user_root: Optional[Node] = None
    model_root: Optional[Node] = None
    included: TurnSelection = field(default_factory=TurnSelection)

    @property
    def has_user(self) -> bool:
        return self.user_root is not None

    @property
    def has_model(self) -> bool:
        return self.model_root is not None

    @property
    def is_empty(self) -> bool:
        return not self.has_user and not self.has_model


@dataclass(frozen=True)
class Transcript:
    """Result of one scrape pass."""

    turns: tuple[Turn, ...]
    title: str = ""
    page_title: str = ""
    base_url: str = ""


# =============================================================================
# Attachment Models
# =============================================================================


class AttachmentKind(str, Enum):
    IMAGE = "image"
    FILE = "file"


@dataclass(frozen=True)
class Attachment:
    """An uploaded image or file found on the user side of a turn.

    ``source`` is either a network address or an embedded ``data:`` payload.
    ``identity_key`` is used to drop duplicates within a single turn.
    """

    kind: AttachmentKind
    identity_key: str
    display_name: str
    source: str = ""

    @property
    def is_embedded(self) -> bool:
        return self.source.startswith("data:")


# =============================================================================
# Output Models
# =============================================================================


class ExportMode(str, Enum):
    FILE = "file"
    CLIPBOARD = "clipboard"


USER_LABEL = "👤 You"
ASSISTANT_LABEL = "🤖 Gemini"
DEFAULT_TITLE = "Gemini Chat Export"


@dataclass(frozen=True)
class TurnBlock:
    """Rendered sections of one turn; ``None`` means the section is omitted."""

    index: int
    user_markdown: Optional[str] = None
    assistant_markdown: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.user_markdown is None and self.assistant_markdown is None

    def render(self) -> str:
        parts: list[str] = []
        if self.user_markdown is not None:
            parts.append(f"## {USER_LABEL}\n\n{self.user_markdown}\n\n")
        if self.assistant_markdown is not None:
            parts.append(f"## {ASSISTANT_LABEL}\n\n{self.assistant_markdown}\n\n")
        parts.append("---\n\n")
        return "".join(parts)


@dataclass(frozen=True)
class MarkdownDocument:
    """The finished export: header plus turn blocks in transcript order."""

    title: str
    exported_at: str
    blocks: tuple[TurnBlock, ...] = ()

    def render_header(self) -> str:
        title = self.title or DEFAULT_TITLE
        return f"# {title}\n\n> Exported on: {self.exported_at}\n\n---\n\n"

    def render(self) -> str:
        return self.render_header() + "".join(block.render() for block in self.blocks)
