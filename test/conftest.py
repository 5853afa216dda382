"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest


@pytest.fixture
def test_data_dir() -> Path:
    """Return path to test data directory."""
    return Path(__file__).parent / "test_data"


@pytest.fixture
def conversation_html(test_data_dir: Path) -> str:
    """Saved Gemini page with two turns: text + image, then a missing response."""
    return (test_data_dir / "gemini_conversation.html").read_text(encoding="utf-8")


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep every test away from the real settings file."""
    settings_path = tmp_path / "settings.json"
    monkeypatch.setenv("GEMINI_CHAT_EXPORT_SETTINGS", str(settings_path))
    return settings_path
