"""Live Gemini pages driven through Playwright."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from .exceptions import AttachmentFetchError
from .source import Selectors, SourceView

logger = logging.getLogger(__name__)

# How long to wait for the chat history to appear after navigation (ms)
CONTAINER_TIMEOUT_MS = 15000

# Fetches a URL with the page's own session (blob: URLs included)
READ_AS_DATA_URL_JS = """
async (url) => {
  const response = await fetch(url);
  if (!response.ok) {
    throw new Error(`HTTP ${response.status}`);
  }
  const blob = await response.blob();
  return await new Promise((resolve, reject) => {
    const reader = new FileReader();
    reader.onloadend = () => resolve(reader.result);
    reader.onerror = () => reject(reader.error);
    reader.readAsDataURL(blob);
  });
}
"""


class PlaywrightSourceView(SourceView):
    """A conversation open in a Playwright page."""

    def __init__(self, page: Page, selectors: Optional[Selectors] = None):
        super().__init__(selectors)
        self.page = page

    @property
    def base_url(self) -> str:  # type: ignore[override]
        return self.page.url

    async def has_container(self) -> bool:
        return await self.page.query_selector(self.selectors.container) is not None

    async def turn_count(self) -> int:
        return len(await self.page.query_selector_all(self.selectors.turn))

    async def scroll_to_top(self) -> None:
        await self.page.eval_on_selector(
            self.selectors.container, "el => { el.scrollTop = 0; }"
        )

    async def scroll_position(self) -> float:
        return await self.page.eval_on_selector(
            self.selectors.container, "el => el.scrollTop"
        )

    async def page_html(self) -> str:
        return await self.page.content()

    async def cookies(self) -> httpx.Cookies:
        jar = httpx.Cookies()
        for cookie in await self.page.context.cookies():
            jar.set(
                cookie["name"],
                cookie["value"],
                domain=cookie.get("domain", ""),
                path=cookie.get("path", "/"),
            )
        return jar

    async def read_in_page(self, url: str) -> str:
        try:
            return await self.page.evaluate(READ_AS_DATA_URL_JS, url)
        except PlaywrightError as e:
            raise AttachmentFetchError(f"Could not read {url} in the page: {e}") from e


@asynccontextmanager
async def open_browser_page(
    url: str,
    user_data_dir: Optional[Path] = None,
    headless: bool = True,
    selectors: Optional[Selectors] = None,
) -> AsyncIterator[PlaywrightSourceView]:
    """Open ``url`` in Chromium and yield a view onto it.

    With ``user_data_dir`` a persistent profile is used, so a session that
    was signed in to Gemini once can be reused by later exports.
    """
    selectors = selectors or Selectors()
    async with async_playwright() as playwright:
        if user_data_dir is not None:
            context = await playwright.chromium.launch_persistent_context(
                str(user_data_dir), headless=headless
            )
            browser = None
        else:
            browser = await playwright.chromium.launch(headless=headless)
            context = await browser.new_context()

        try:
            page = await context.new_page()
            logger.info("Opening %s", url)
            await page.goto(url, wait_until="domcontentloaded")
            try:
                await page.wait_for_selector(
                    selectors.container, timeout=CONTAINER_TIMEOUT_MS
                )
            except PlaywrightError as e:
                # Reported as a missing container by the convergence detector
                logger.debug("Chat history container did not appear: %s", e)
            yield PlaywrightSourceView(page, selectors)
        finally:
            await context.close()
            if browser is not None:
                await browser.close()
