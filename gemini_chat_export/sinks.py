"""Output sinks for the finished Markdown document."""

import logging
from pathlib import Path

import pyperclip

from .exceptions import UnexpectedSinkError
from .models import ExportMode

logger = logging.getLogger(__name__)


class OutputSink:
    """Base class for document destinations."""

    def deliver(self, text: str, base_name: str) -> str:
        """Hand over the document; returns a description of where it went."""
        raise NotImplementedError


class FileSink(OutputSink):
    """Writes ``<output_dir>/<base_name>.md``."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def deliver(self, text: str, base_name: str) -> str:
        path = self.output_dir / f"{base_name}.md"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise UnexpectedSinkError(f"Could not write {path}: {e}") from e
        logger.info("Wrote %s", path)
        return str(path)


class ClipboardSink(OutputSink):
    """Copies the document to the system clipboard."""

    def deliver(self, text: str, base_name: str) -> str:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise UnexpectedSinkError(f"Could not copy to clipboard: {e}") from e
        return "clipboard"


def get_sink(mode: ExportMode, output_dir: Path) -> OutputSink:
    """Get the sink for an export mode.

    Raises:
        ValueError: If the mode is not supported.
    """
    if mode == ExportMode.FILE:
        return FileSink(output_dir)
    if mode == ExportMode.CLIPBOARD:
        return ClipboardSink()
    raise ValueError(f"Unsupported export mode: {mode}")
