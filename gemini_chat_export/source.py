"""Source views: the read-only window onto a rendered Gemini conversation."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from .exceptions import AttachmentFetchError


@dataclass(frozen=True)
class Selectors:
    """CSS selectors locating the parts of a Gemini conversation page."""

    container: str = '[data-test-id="chat-history-container"]'
    turn: str = "div.conversation-container"
    user_query: str = "user-query"
    model_response: str = "model-response"
    title: str = ".conversation-title"


class SourceView:
    """Base class for views the exporter reads a conversation from.

    Only the scroll position is ever changed; everything else is read.
    """

    base_url: str = ""

    def __init__(self, selectors: Optional[Selectors] = None):
        self.selectors = selectors or Selectors()

    async def has_container(self) -> bool:
        raise NotImplementedError

    async def turn_count(self) -> int:
        raise NotImplementedError

    async def scroll_to_top(self) -> None:
        raise NotImplementedError

    async def scroll_position(self) -> float:
        raise NotImplementedError

    async def page_html(self) -> str:
        raise NotImplementedError

    async def cookies(self) -> httpx.Cookies:
        """Cookies of the page's session, sent with attachment requests."""
        return httpx.Cookies()

    async def read_in_page(self, url: str) -> str:
        """Read a resource only the page itself can reach, as a ``data:`` URL.

        Raises:
            AttachmentFetchError: If the resource cannot be read.
        """
        raise AttachmentFetchError(f"{url} can only be read from the live page")


class HtmlSnapshotView(SourceView):
    """A saved copy of a conversation page; scrolling is a no-op."""

    def __init__(
        self,
        html: str,
        base_url: str = "",
        selectors: Optional[Selectors] = None,
    ):
        super().__init__(selectors)
        self.html = html
        self._soup = BeautifulSoup(html, "html.parser")
        # Saved pages usually keep the original address in <base href>
        base = self._soup.find("base", href=True)
        self.base_url = base_url or (str(base["href"]) if base else "")

    @classmethod
    def from_file(
        cls,
        path: Path,
        base_url: str = "",
        selectors: Optional[Selectors] = None,
    ) -> "HtmlSnapshotView":
        return cls(path.read_text(encoding="utf-8"), base_url, selectors)

    async def has_container(self) -> bool:
        return self._soup.select_one(self.selectors.container) is not None

    async def turn_count(self) -> int:
        return len(self._soup.select(self.selectors.turn))

    async def scroll_to_top(self) -> None:
        pass

    async def scroll_position(self) -> float:
        return 0

    async def page_html(self) -> str:
        return self.html
