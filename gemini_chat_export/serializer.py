"""Markdown serializer interface and engine factory."""

import logging

from .models import Node

logger = logging.getLogger(__name__)

ENGINES = ("primary", "fallback")


class MarkdownSerializer:
    """Base class for content-tree to Markdown engines.

    ``render`` converts the children of a content root (the root element
    itself has no rendering of its own). Both engines must return the same
    text for any well-formed tree.
    """

    name = ""

    def render(self, node: Node) -> str:
        raise NotImplementedError


def get_serializer(engine: str = "primary") -> MarkdownSerializer:
    """Get a serializer instance for the specified engine.

    Args:
        engine: "primary" (markdownify rule engine) or "fallback" (tree walker).

    Returns:
        A MarkdownSerializer instance.

    Raises:
        ValueError: If the engine is not supported.
    """
    if engine == "primary":
        from .markdown.primary import PrimarySerializer

        return PrimarySerializer()
    if engine == "fallback":
        from .markdown.fallback import FallbackSerializer

        return FallbackSerializer()
    raise ValueError(f"Unsupported engine: {engine}")
