"""Utility functions for citation cleanup, filenames and timestamps."""

import re
from datetime import datetime
from typing import Optional

DEFAULT_FILENAME = "gemini_chat_export"

CITE_START_PATTERN = re.compile(r"\[cite_start\]")
CITE_INDEX_PATTERN = re.compile(r"\[cite:[\d,\s]+\]")
EXCESS_NEWLINES_PATTERN = re.compile(r"\n{3,}")


def strip_citations(text: str) -> str:
    """Remove Gemini citation markers from serialized assistant output.

    Drops ``[cite_start]`` tokens and ``[cite: 1, 2]`` index groups, then
    collapses three or more newlines into one blank line and trims.

    Fenced code is not exempt: literal markers inside code are removed too.
    """
    text = CITE_START_PATTERN.sub("", text)
    text = CITE_INDEX_PATTERN.sub("", text)
    text = EXCESS_NEWLINES_PATTERN.sub("\n\n", text)
    return text.strip()


def sanitize_filename(name: str) -> str:
    """Turn a conversation or page title into a filename stem."""
    name = re.sub(r'[\\/:*?"<>|.]', "", name)
    name = re.sub(r"\s+", "_", name)
    return name.strip("_")


def sanitize_custom_filename(name: str) -> str:
    """Normalize a user-supplied filename: drop the extension, keep [A-Za-z0-9_-]."""
    stem = re.sub(r"\.[^/.]+$", "", name.strip())
    return re.sub(r"[^a-zA-Z0-9_\-]", "_", stem)


def sanitize_attachment_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._\-]", "_", name)


def format_date_stamp(now: Optional[datetime] = None) -> str:
    """Filename date suffix, e.g. ``2024-05-01_134501``."""
    return (now or datetime.now()).strftime("%Y-%m-%d_%H%M%S")


def format_export_timestamp(now: Optional[datetime] = None) -> str:
    """Timestamp shown in the document header."""
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def generate_export_basename(
    custom_filename: str = "",
    conversation_title: str = "",
    page_title: str = "",
    now: Optional[datetime] = None,
) -> str:
    """Pick the export's base filename (without extension).

    Priority: custom name (no date stamp), then conversation title,
    then page title, then the default name. All but the custom name get a
    date stamp appended.
    """
    date_stamp = format_date_stamp(now)
    if custom_filename.strip():
        if custom := sanitize_custom_filename(custom_filename):
            return custom
        return f"{DEFAULT_FILENAME}_{date_stamp}"

    for title in (conversation_title, page_title):
        if title and (safe_title := sanitize_filename(title)):
            return f"{safe_title}_{date_stamp}"
    return f"{DEFAULT_FILENAME}_{date_stamp}"
