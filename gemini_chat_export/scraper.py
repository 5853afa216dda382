"""Document scraper: turns the loaded page into ordered ``Turn`` records."""

import logging
from typing import Optional

from bs4 import BeautifulSoup

from .dom import select_node
from .models import Node, Transcript, Turn, TurnSelection
from .source import SourceView

logger = logging.getLogger(__name__)

QUERY_TEXT_CLASS = "query-text"
QUERY_LINE_CLASS = "query-text-line"
QUERY_FALLBACK_CLASSES = ("query-text", "user-query-container")
RESPONSE_CONTENT_TAG = "message-content"
RESPONSE_MARKDOWN_CLASS = "markdown"


class DocumentScraper:
    """Reads a fully loaded view into a :class:`Transcript`.

    The page is re-read and re-parsed on every call; no node from an earlier
    pass is reused.
    """

    def __init__(self, view: SourceView):
        self.view = view
        self.selectors = view.selectors

    async def scrape(self) -> Transcript:
        soup = BeautifulSoup(await self.view.page_html(), "html.parser")

        turns: list[Turn] = []
        for index, container in enumerate(soup.select(self.selectors.turn)):
            user_root = select_node(container, self.selectors.user_query)
            model_root = select_node(container, self.selectors.model_response)
            turns.append(
                Turn(
                    index=index,
                    user_root=user_root,
                    model_root=model_root,
                    included=TurnSelection(
                        user=user_root is not None, model=model_root is not None
                    ),
                )
            )
            if user_root is None and model_root is None:
                logger.debug("Turn %d has neither a query nor a response", index + 1)

        title_tag = soup.select_one(self.selectors.title)
        page_title_tag = soup.find("title")
        transcript = Transcript(
            turns=tuple(turns),
            title=title_tag.get_text().strip() if title_tag else "",
            page_title=page_title_tag.get_text().strip() if page_title_tag else "",
            base_url=self.view.base_url,
        )
        logger.info("Scraped %d turns", len(transcript.turns))
        return transcript


def extract_user_query(user_root: Optional[Node]) -> str:
    """Plain text of a user query, one line per non-empty query line."""
    if user_root is None:
        return ""

    lines = [
        line
        for container in user_root.find_all(lambda n: n.has_class(QUERY_TEXT_CLASS))
        for line in container.find_all(lambda n: n.has_class(QUERY_LINE_CLASS))
    ]
    if not lines:
        query_text = user_root.find(
            lambda n: any(n.has_class(name) for name in QUERY_FALLBACK_CLASSES)
        )
        return query_text.text_content().strip() if query_text else ""

    texts = [line.text_content().strip() for line in _unique(lines)]
    return "\n".join(text for text in texts if text)


def find_response_content(model_root: Optional[Node]) -> Optional[Node]:
    """The rendered Markdown container inside a model response."""
    if model_root is None:
        return None
    for content in model_root.find_all(lambda n: n.tag == RESPONSE_CONTENT_TAG):
        if markdown := content.find(lambda n: n.has_class(RESPONSE_MARKDOWN_CLASS)):
            return markdown
    return None


def _unique(nodes: list[Node]) -> list[Node]:
    # Nested .query-text containers would otherwise yield the same line twice
    seen: set[int] = set()
    result: list[Node] = []
    for node in nodes:
        if id(node) not in seen:
            seen.add(id(node))
            result.append(node)
    return result

