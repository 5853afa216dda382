"""Document assembly: header plus one block per selected turn."""

import logging
from datetime import datetime
from typing import Optional

from .attachments import AttachmentResolver
from .models import MarkdownDocument, Transcript, Turn, TurnBlock
from .scraper import extract_user_query, find_response_content
from .serializer import MarkdownSerializer
from .timings import set_timing_var, timing_stat
from .utils import format_export_timestamp, strip_citations

logger = logging.getLogger(__name__)

MISSING_RESPONSE_NOTE = "[Note: Could not extract model response from message {number}.]"


def render_model_response(turn: Turn, serializer: MarkdownSerializer) -> str:
    """Serialized, citation-free assistant text of a turn ("" if there is none)."""
    content = find_response_content(turn.model_root)
    if content is None:
        return ""
    with timing_stat("_serializer_timings"):
        markdown = serializer.render(content)
    return strip_citations(markdown)


async def build_turn_block(
    turn: Turn,
    serializer: MarkdownSerializer,
    resolver: Optional[AttachmentResolver],
    export_base: str,
) -> TurnBlock:
    """Render the included sections of one turn.

    The user section is omitted when it has neither text nor attachments.
    An included assistant side always gets a section, falling back to a note
    when nothing could be extracted.
    """
    user_markdown = None
    if turn.included.user and turn.user_root is not None:
        text = extract_user_query(turn.user_root)
        fragments: list[str] = []
        if resolver is not None:
            fragments = await resolver.resolve(turn.user_root, export_base)
        if text or fragments:
            user_markdown = text + "".join(fragments)

    assistant_markdown = None
    if turn.included.model and turn.model_root is not None:
        assistant_markdown = render_model_response(turn, serializer)
        if not assistant_markdown:
            logger.warning("Could not extract the response of message %d", turn.index + 1)
            assistant_markdown = MISSING_RESPONSE_NOTE.format(number=turn.index + 1)

    return TurnBlock(
        index=turn.index,
        user_markdown=user_markdown,
        assistant_markdown=assistant_markdown,
    )


async def build_document(
    transcript: Transcript,
    serializer: MarkdownSerializer,
    resolver: Optional[AttachmentResolver],
    export_base: str,
    now: Optional[datetime] = None,
) -> MarkdownDocument:
    """Assemble the export from the selected turns, strictly in order.

    Each turn, attachments included, is finished before the next one starts.
    Pass ``resolver=None`` to leave attachments out.
    """
    blocks: list[TurnBlock] = []
    for turn in transcript.turns:
        if turn.is_empty or not turn.included.any_selected:
            continue
        set_timing_var("_current_msg_id", f"message {turn.index + 1}")
        block = await build_turn_block(turn, serializer, resolver, export_base)
        if not block.is_empty:
            blocks.append(block)

    return MarkdownDocument(
        title=transcript.title,
        exported_at=format_export_timestamp(now),
        blocks=tuple(blocks),
    )
