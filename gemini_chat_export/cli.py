#!/usr/bin/env python3
"""CLI interface for gemini-chat-export."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from .browser import open_browser_page
from .convergence import ScrollSettings
from .exceptions import ExportError
from .exporter import ExportOptions, ExportResult, export_conversation
from .models import ExportMode, MessageSelection, TurnSelection
from .selection import parse_picks
from .serializer import ENGINES
from .settings import ExportSettings, SettingsStore
from .source import HtmlSnapshotView


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _parse_picks_option(
    ctx: click.Context, param: click.Parameter, value: tuple[str, ...]
) -> dict[int, TurnSelection]:
    try:
        return parse_picks(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _default_selection(saved: MessageSelection, has_picks: bool) -> str:
    """Selection mode used when --select is not given.

    Picks are never saved, so a saved custom selection means all messages.
    """
    if has_picks:
        return MessageSelection.CUSTOM.value
    if saved == MessageSelection.CUSTOM:
        return MessageSelection.ALL.value
    return saved.value


async def _run_export(
    source: str,
    options: ExportOptions,
    user_data_dir: Optional[Path],
    headed: bool,
) -> ExportResult:
    if is_url(source):
        async with open_browser_page(
            source, user_data_dir=user_data_dir, headless=not headed
        ) as view:
            return await export_conversation(view, options)

    path = Path(source)
    if not path.is_file():
        raise FileNotFoundError(f"Source not found: {source}")
    return await export_conversation(HtmlSnapshotView.from_file(path), options)


@click.command()
@click.argument("source", type=str)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=Path("."),
    show_default=True,
    help="Directory for the Markdown file and the attachments folder",
)
@click.option(
    "--filename",
    type=str,
    default=None,
    help="Custom base filename (no date stamp is added). Default: conversation title plus date",
)
@click.option(
    "--mode",
    "export_mode",
    type=click.Choice([mode.value for mode in ExportMode]),
    default=None,
    help="Write a .md file or copy to the clipboard (default: saved setting, else file)",
)
@click.option(
    "--attachments/--no-attachments",
    "include_attachments",
    default=None,
    help="Embed uploaded images and save uploaded files (default: saved setting, else on)",
)
@click.option(
    "--select",
    "message_selection",
    type=click.Choice([selection.value for selection in MessageSelection]),
    default=None,
    help="Which messages to export: all, ai (responses only), none, or custom (see --pick)",
)
@click.option(
    "--pick",
    "picks",
    multiple=True,
    callback=_parse_picks_option,
    metavar="N[:user|:model]",
    help="Export message N (1-based), optionally one side only. Repeatable; implies --select custom",
)
@click.option(
    "--engine",
    type=click.Choice(list(ENGINES)),
    default="primary",
    show_default=True,
    help="Markdown engine: primary (markdownify rules) or fallback (built-in walker)",
)
@click.option(
    "--scroll-delay",
    type=float,
    default=None,
    help="Seconds to wait after each scroll (default: 2.0 for URLs, 0 for saved pages)",
)
@click.option(
    "--max-scroll-attempts",
    type=click.IntRange(min=1),
    default=ScrollSettings.max_attempts,
    show_default=True,
    help="Upper bound on scroll rounds",
)
@click.option(
    "--stable-rounds",
    type=click.IntRange(min=1),
    default=ScrollSettings.stable_rounds,
    show_default=True,
    help="Consecutive unchanged rounds that mean the conversation is fully loaded",
)
@click.option(
    "--user-data-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Chromium profile directory, to reuse a signed-in Gemini session",
)
@click.option(
    "--headed",
    is_flag=True,
    help="Show the browser window (useful to sign in on first use)",
)
@click.option(
    "--settings-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Settings file (default: $GEMINI_CHAT_EXPORT_SETTINGS or ~/.config/gemini-chat-export/settings.json)",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug logging and show full traceback on errors.",
)
def main(
    source: str,
    output_dir: Path,
    filename: Optional[str],
    export_mode: Optional[str],
    include_attachments: Optional[bool],
    message_selection: Optional[str],
    picks: dict[int, TurnSelection],
    engine: str,
    scroll_delay: Optional[float],
    max_scroll_attempts: int,
    stable_rounds: int,
    user_data_dir: Optional[Path],
    headed: bool,
    settings_file: Optional[Path],
    debug: bool,
) -> None:
    """Export a Gemini chat conversation to Markdown.

    SOURCE: URL of a Gemini conversation (opened in Chromium) or a saved HTML copy of one.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    store = SettingsStore(settings_file)
    saved = store.load()

    if message_selection is None:
        message_selection = _default_selection(saved.message_selection, bool(picks))
    if scroll_delay is None:
        scroll_delay = ScrollSettings.scroll_delay if is_url(source) else 0.0

    settings = ExportSettings(
        export_mode=ExportMode(export_mode) if export_mode else saved.export_mode,
        include_attachments=(
            saved.include_attachments
            if include_attachments is None
            else include_attachments
        ),
        message_selection=MessageSelection(message_selection),
    )
    options = ExportOptions(
        output_dir=output_dir,
        export_mode=settings.export_mode,
        include_attachments=settings.include_attachments,
        custom_filename=filename or "",
        selection=settings.message_selection,
        picks=picks,
        engine=engine,
        scroll=ScrollSettings(
            scroll_delay=scroll_delay,
            max_attempts=max_scroll_attempts,
            stable_rounds=stable_rounds,
        ),
    )

    try:
        result = asyncio.run(_run_export(source, options, user_data_dir, headed))
    except (ExportError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        if debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error exporting conversation: {e}", err=True)
        if debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    store.save(settings)

    if settings.export_mode == ExportMode.CLIPBOARD:
        click.echo(f"Copied {len(result.document.blocks)} messages to the clipboard")
    else:
        click.echo(
            f"Exported {len(result.document.blocks)} messages to {result.destination}"
        )


if __name__ == "__main__":
    main()
