"""Export Gemini chat conversations to Markdown."""

from .exporter import ExportOptions, ExportResult, export_conversation
from .serializer import get_serializer

__all__ = ["ExportOptions", "ExportResult", "export_conversation", "get_serializer"]
