"""Markdown serialization engines."""
