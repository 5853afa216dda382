"""Single-conversation export pipeline.

Convergence, scraping, selection, document assembly and delivery run as one
sequential async flow against a single source view.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx

from .attachments import AttachmentDownloader, AttachmentResolver
from .convergence import (
    ConvergenceResult,
    ScrollConvergenceDetector,
    ScrollSettings,
    Sleep,
)
from .document import build_document
from .models import ExportMode, MarkdownDocument, MessageSelection, TurnSelection
from .scraper import DocumentScraper
from .selection import apply_selection
from .serializer import get_serializer
from .sinks import OutputSink, get_sink
from .source import SourceView
from .timings import (
    DEBUG_TIMING,
    get_timing_var,
    log_timing,
    report_timing_statistics,
    set_timing_var,
)
from .utils import generate_export_basename

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 30.0


@dataclass
class ExportOptions:
    """Everything that shapes one export."""

    output_dir: Path = Path(".")
    export_mode: ExportMode = ExportMode.FILE
    include_attachments: bool = True
    custom_filename: str = ""
    selection: MessageSelection = MessageSelection.ALL
    picks: dict[int, TurnSelection] = field(default_factory=dict)
    engine: str = "primary"
    scroll: ScrollSettings = field(default_factory=ScrollSettings)


@dataclass(frozen=True)
class ExportResult:
    base_name: str
    destination: str
    document: MarkdownDocument
    convergence: ConvergenceResult

    @property
    def text(self) -> str:
        return self.document.render()


@asynccontextmanager
async def _http_client(
    client: Optional[httpx.AsyncClient],
    cookies: Optional[httpx.Cookies] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    # A caller-supplied client is left open for the caller to close
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, cookies=cookies) as owned:
        yield owned


async def export_conversation(
    view: SourceView,
    options: Optional[ExportOptions] = None,
    client: Optional[httpx.AsyncClient] = None,
    sink: Optional[OutputSink] = None,
    sleep: Sleep = asyncio.sleep,
    now: Optional[datetime] = None,
) -> ExportResult:
    """Export the conversation shown in ``view`` to Markdown.

    Args:
        view: Source of the conversation page.
        options: Export options; defaults export everything to the current directory.
        client: HTTP client for attachments. If omitted, one carrying the
            view's session cookies is created and closed.
        sink: Destination override; by default chosen from ``options.export_mode``.
        sleep: Awaitable used between scroll rounds.
        now: Clock override for the header timestamp and the filename.

    Raises:
        ContainerNotFoundError: If the page has no chat history.
        EmptySelectionError: If no message is selected.
        UnexpectedSinkError: If the document cannot be delivered.
    """
    options = options or ExportOptions()
    t_start = time.time()

    with log_timing("Scroll convergence", t_start):
        detector = ScrollConvergenceDetector(view, options.scroll, sleep)
        convergence = await detector.await_full_load()

    with log_timing("Scrape", t_start):
        transcript = await DocumentScraper(view).scrape()

    transcript = replace(
        transcript,
        turns=apply_selection(transcript.turns, options.selection, options.picks),
    )
    base_name = generate_export_basename(
        options.custom_filename, transcript.title, transcript.page_title, now
    )
    serializer = get_serializer(options.engine)
    set_timing_var("_serializer_timings", [])

    async with _http_client(client, await view.cookies()) as http:
        resolver = None
        if options.include_attachments:
            resolver = AttachmentResolver(
                http,
                AttachmentDownloader(
                    http, options.output_dir, read_in_page=view.read_in_page
                ),
                base_url=transcript.base_url,
                read_in_page=view.read_in_page,
            )
        with log_timing(
            lambda: f"Build document ({len(document.blocks)} blocks)", t_start
        ):
            document = await build_document(
                transcript, serializer, resolver, base_name, now
            )

    sink = sink or get_sink(options.export_mode, options.output_dir)
    with log_timing("Deliver", t_start):
        destination = sink.deliver(document.render(), base_name)

    if DEBUG_TIMING:
        report_timing_statistics(
            [("Serializer", get_timing_var("_serializer_timings", []))]
        )

    logger.info("Exported %d turns to %s", len(document.blocks), destination)
    return ExportResult(
        base_name=base_name,
        destination=destination,
        document=document,
        convergence=convergence,
    )
