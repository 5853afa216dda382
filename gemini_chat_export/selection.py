"""Explicit message-selection state applied to scraped turns."""

import re
from dataclasses import replace
from typing import Iterable, Mapping, Optional

from .exceptions import EmptySelectionError
from .models import MessageSelection, Turn, TurnSelection

PICK_PATTERN = re.compile(r"^\s*(\d+)\s*(?::\s*(user|model|both))?\s*$", re.IGNORECASE)


def parse_picks(values: Iterable[str]) -> dict[int, TurnSelection]:
    """Parse ``--pick`` values such as ``3``, ``2:user`` or ``4:model``.

    Turn numbers are 1-based, as shown to the user. Repeated picks for the
    same turn are merged.

    Raises:
        ValueError: If a value is not of the form ``N[:user|:model]``.
    """
    picks: dict[int, TurnSelection] = {}
    for value in values:
        match = PICK_PATTERN.match(value)
        if not match or int(match.group(1)) < 1:
            raise ValueError(f"Invalid message pick: {value!r}")
        index = int(match.group(1)) - 1
        side = (match.group(2) or "both").lower()
        picked = TurnSelection(user=side != "model", model=side != "user")
        previous = picks.get(index, TurnSelection(user=False, model=False))
        picks[index] = TurnSelection(
            user=previous.user or picked.user, model=previous.model or picked.model
        )
    return picks


def _selection_for(
    turn: Turn,
    mode: MessageSelection,
    picks: Mapping[int, TurnSelection],
) -> TurnSelection:
    if mode == MessageSelection.ALL:
        wanted = TurnSelection(user=True, model=True)
    elif mode == MessageSelection.AI:
        wanted = TurnSelection(user=False, model=True)
    elif mode == MessageSelection.NONE:
        wanted = TurnSelection(user=False, model=False)
    else:
        wanted = picks.get(turn.index, TurnSelection(user=False, model=False))
    # Sides that were not scraped can never be selected
    return TurnSelection(
        user=wanted.user and turn.has_user, model=wanted.model and turn.has_model
    )


def apply_selection(
    turns: Iterable[Turn],
    mode: MessageSelection,
    picks: Optional[Mapping[int, TurnSelection]] = None,
) -> tuple[Turn, ...]:
    """Return the turns with their ``included`` flags set for ``mode``.

    Turns keep their order and are never dropped here; document assembly
    skips turns with nothing included.

    Raises:
        EmptySelectionError: If no side of any turn ends up selected.
    """
    picks = picks or {}
    selected = tuple(
        replace(turn, included=_selection_for(turn, mode, picks)) for turn in turns
    )
    if not any(turn.included.any_selected for turn in selected):
        raise EmptySelectionError()
    return selected
