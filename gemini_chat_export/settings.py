"""Persisted export preferences."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import ExportMode, MessageSelection

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path("~/.config/gemini-chat-export/settings.json")


class ExportSettings(BaseModel):
    """User preferences remembered between exports.

    Stored with the same camelCase keys the browser extension uses. The
    custom filename and message picks belong to a single export and are
    not kept.
    """

    model_config = ConfigDict(populate_by_name=True)

    export_mode: ExportMode = Field(default=ExportMode.FILE, alias="exportMode")
    include_attachments: bool = Field(default=True, alias="includeAttachments")
    message_selection: MessageSelection = Field(
        default=MessageSelection.ALL, alias="messageSelection"
    )


def get_settings_path() -> Path:
    """Settings file location, respecting GEMINI_CHAT_EXPORT_SETTINGS.

    Priority: GEMINI_CHAT_EXPORT_SETTINGS env var > default location.
    """
    env_path = os.getenv("GEMINI_CHAT_EXPORT_SETTINGS")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_SETTINGS_PATH.expanduser()


class SettingsStore:
    """JSON-file backed settings; loading and saving never raise."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or get_settings_path()

    def load(self) -> ExportSettings:
        """Saved settings, or defaults when the file is missing or unreadable."""
        if not self.path.exists():
            return ExportSettings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return ExportSettings.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring invalid settings file %s: %s", self.path, e)
            return ExportSettings()

    def save(self, settings: ExportSettings) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(settings.model_dump(mode="json", by_alias=True), indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("Failed to save settings to %s: %s", self.path, e)
