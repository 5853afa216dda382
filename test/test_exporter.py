#!/usr/bin/env python3
"""End-to-end export tests against the saved conversation fixture."""

from datetime import datetime
from pathlib import Path

import httpx
import pytest

from gemini_chat_export.convergence import ConvergenceOutcome, ScrollSettings
from gemini_chat_export.document import MISSING_RESPONSE_NOTE, build_document
from gemini_chat_export.exceptions import ContainerNotFoundError, EmptySelectionError
from gemini_chat_export.exporter import ExportOptions, _http_client, export_conversation
from gemini_chat_export.models import (
    ExportMode,
    MarkdownDocument,
    MessageSelection,
    Transcript,
    TurnBlock,
    TurnSelection,
)
from gemini_chat_export.scraper import DocumentScraper
from gemini_chat_export.serializer import ENGINES, get_serializer
from gemini_chat_export.sinks import OutputSink
from gemini_chat_export.source import HtmlSnapshotView

NOW = datetime(2024, 5, 1, 13, 45, 1)

EXPECTED_DOCUMENT = (
    "# Prime numbers\n\n"
    "> Exported on: 2024-05-01 13:45:01\n\n"
    "---\n\n"
    "## 👤 You\n\n"
    "Is 7 prime?\nExplain briefly.\n"
    "![sieve.png](data:image/png;base64,iVBORw0KGgo=)\n"
    "\n\n"
    "## 🤖 Gemini\n\n"
    "Yes, **7** is prime.\n\n"
    "- It has no divisors other than 1 and itself\n"
    "- The next prime is $11$\n\n"
    "---\n\n"
    "## 👤 You\n\n"
    "Thanks!\n\n"
    "## 🤖 Gemini\n\n"
    "[Note: Could not extract model response from message 2.]\n\n"
    "---\n\n"
)


class MemorySink(OutputSink):
    def __init__(self):
        self.delivered: list[tuple[str, str]] = []

    def deliver(self, text: str, base_name: str) -> str:
        self.delivered.append((text, base_name))
        return "memory"


async def no_sleep(delay: float) -> None:
    pass


def options(tmp_path: Path, **overrides) -> ExportOptions:
    overrides.setdefault("scroll", ScrollSettings(scroll_delay=0))
    return ExportOptions(output_dir=tmp_path, **overrides)


async def export(view, opts, **kwargs):
    return await export_conversation(view, opts, sleep=no_sleep, now=NOW, **kwargs)


class TestExportConversation:
    """Tests for export_conversation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("engine", ENGINES)
    async def test_full_export_to_file(self, conversation_html, tmp_path: Path, engine):
        """Both engines produce the same document for the fixture page."""
        result = await export(
            HtmlSnapshotView(conversation_html), options(tmp_path, engine=engine)
        )

        assert result.base_name == "Prime_numbers_2024-05-01_134501"
        assert result.convergence.outcome == ConvergenceOutcome.CONVERGED
        assert result.text == EXPECTED_DOCUMENT
        path = tmp_path / "Prime_numbers_2024-05-01_134501.md"
        assert result.destination == str(path)
        assert path.read_text(encoding="utf-8") == EXPECTED_DOCUMENT

    @pytest.mark.asyncio
    async def test_ai_only(self, conversation_html, tmp_path: Path):
        sink = MemorySink()
        result = await export(
            HtmlSnapshotView(conversation_html),
            options(tmp_path, selection=MessageSelection.AI),
            sink=sink,
        )

        text, base_name = sink.delivered[0]
        assert "## 👤 You" not in text
        assert text.count("## 🤖 Gemini") == 2
        assert base_name == result.base_name

    @pytest.mark.asyncio
    async def test_custom_pick(self, conversation_html, tmp_path: Path):
        sink = MemorySink()
        await export(
            HtmlSnapshotView(conversation_html),
            options(
                tmp_path,
                selection=MessageSelection.CUSTOM,
                picks={1: TurnSelection(user=True, model=False)},
                custom_filename="thanks.md",
            ),
            sink=sink,
        )

        text, base_name = sink.delivered[0]
        assert base_name == "thanks"
        assert text.endswith("---\n\n## 👤 You\n\nThanks!\n\n---\n\n")
        assert "Is 7 prime?" not in text

    @pytest.mark.asyncio
    async def test_without_attachments(self, conversation_html, tmp_path: Path):
        sink = MemorySink()
        await export(
            HtmlSnapshotView(conversation_html),
            options(tmp_path, include_attachments=False),
            sink=sink,
        )
        text, _ = sink.delivered[0]
        assert "![sieve.png]" not in text
        assert "Is 7 prime?\nExplain briefly.\n\n## 🤖 Gemini" in text

    @pytest.mark.asyncio
    async def test_caller_client_stays_open(self, conversation_html, tmp_path: Path):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(404))
        )
        await export(
            HtmlSnapshotView(conversation_html),
            options(tmp_path),
            client=client,
            sink=MemorySink(),
        )
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_clipboard_mode(self, conversation_html, tmp_path: Path, monkeypatch):
        import pyperclip

        copied: list[str] = []
        monkeypatch.setattr(pyperclip, "copy", copied.append)
        result = await export(
            HtmlSnapshotView(conversation_html),
            options(tmp_path, export_mode=ExportMode.CLIPBOARD),
        )
        assert result.destination == "clipboard"
        assert copied == [EXPECTED_DOCUMENT]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_container(self, tmp_path: Path):
        sink = MemorySink()
        with pytest.raises(ContainerNotFoundError):
            await export(HtmlSnapshotView("<p>Sign in</p>"), options(tmp_path), sink=sink)
        assert sink.delivered == []

    @pytest.mark.asyncio
    async def test_empty_selection(self, conversation_html, tmp_path: Path):
        sink = MemorySink()
        with pytest.raises(EmptySelectionError):
            await export(
                HtmlSnapshotView(conversation_html),
                options(tmp_path, selection=MessageSelection.NONE),
                sink=sink,
            )
        assert sink.delivered == []


class TestBuildDocument:
    """Tests for document assembly on scraped transcripts."""

    @pytest.mark.asyncio
    async def test_untitled_conversation(self):
        html = (
            '<div data-test-id="chat-history-container">'
            '<div class="conversation-container">'
            '<user-query><div class="query-text">Hi</div></user-query>'
            "</div></div>"
        )
        transcript = await DocumentScraper(HtmlSnapshotView(html)).scrape()
        document = await build_document(
            transcript, get_serializer(), None, "export", NOW
        )
        assert document.render() == (
            "# Gemini Chat Export\n\n"
            "> Exported on: 2024-05-01 13:45:01\n\n"
            "---\n\n"
            "## 👤 You\n\nHi\n\n---\n\n"
        )

    @pytest.mark.asyncio
    async def test_empty_user_query_is_omitted(self):
        html = (
            '<div data-test-id="chat-history-container">'
            '<div class="conversation-container">'
            "<user-query></user-query>"
            "<model-response><message-content>"
            '<div class="markdown"><p>Hello</p></div>'
            "</message-content></model-response>"
            "</div></div>"
        )
        transcript = await DocumentScraper(HtmlSnapshotView(html)).scrape()
        document = await build_document(transcript, get_serializer(), None, "x", NOW)
        assert [block.render() for block in document.blocks] == [
            "## 🤖 Gemini\n\nHello\n\n---\n\n"
        ]

    @pytest.mark.asyncio
    async def test_empty_transcript(self):
        document = await build_document(
            Transcript(turns=()), get_serializer(), None, "x", NOW
        )
        assert document.blocks == ()

    def test_missing_response_note(self):
        assert MISSING_RESPONSE_NOTE.format(number=3) == (
            "[Note: Could not extract model response from message 3.]"
        )

    def test_markdown_document_render(self):
        document = MarkdownDocument(
            title="T",
            exported_at="now",
            blocks=(TurnBlock(index=0, assistant_markdown="A"),),
        )
        assert document.render() == (
            "# T\n\n> Exported on: now\n\n---\n\n## 🤖 Gemini\n\nA\n\n---\n\n"
        )


SIGNED_IN_HTML = (
    '<div data-test-id="chat-history-container">'
    '<div class="conversation-container">'
    '<user-query><div class="query-text">Look</div>'
    '<img class="uploaded-image" src="https://gemini.google.com/upload/cat.png" alt="cat.png">'
    '<img class="uploaded-image" src="blob:https://gemini.google.com/4f2e" alt="paste.png">'
    "</user-query></div></div>"
)


class SignedInView(HtmlSnapshotView):
    """Saved page standing in for a live, signed-in browser session."""

    def __init__(self, html: str):
        super().__init__(html, base_url="https://gemini.google.com/app/abc")
        self.page_reads: list[str] = []

    async def cookies(self) -> httpx.Cookies:
        jar = httpx.Cookies()
        jar.set("SID", "secret", domain=".google.com", path="/")
        return jar

    async def read_in_page(self, url: str) -> str:
        self.page_reads.append(url)
        return "data:image/png;base64,QkxPQg=="


class TestSessionAttachments:
    """Attachments of a live page are read with the page's session."""

    @pytest.mark.asyncio
    async def test_owned_client_sends_session_cookies(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        cookie_headers: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            cookie_headers.append(request.headers.get("cookie", ""))
            return httpx.Response(
                200, content=b"png", headers={"content-type": "image/png"}
            )

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            httpx,
            "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        view = SignedInView(SIGNED_IN_HTML)
        sink = MemorySink()
        await export(view, options(tmp_path), sink=sink)

        text, _ = sink.delivered[0]
        assert cookie_headers == ["SID=secret"]
        assert view.page_reads == ["blob:https://gemini.google.com/4f2e"]
        assert "![cat.png](data:image/png;base64,cG5n)" in text
        assert "![paste.png](data:image/png;base64,QkxPQg==)" in text

    @pytest.mark.asyncio
    async def test_http_client_carries_cookies(self):
        jar = httpx.Cookies()
        jar.set("SID", "secret", domain=".google.com", path="/")
        async with _http_client(None, jar) as client:
            assert client.cookies.get("SID") == "secret"
        assert client.is_closed
