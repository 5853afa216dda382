"""Scroll convergence: drive a virtualized chat view until every turn is loaded.

The page gives no "fully loaded" signal, so loading is detected from two
observable values, the turn count and the scroll position, polled to a fixed
point under a bounded number of rounds.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from .exceptions import ContainerNotFoundError
from .source import SourceView

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ConvergenceOutcome(str, Enum):
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ScrollSettings:
    """Polling parameters; ``scroll_delay`` is in seconds."""

    scroll_delay: float = 2.0
    max_attempts: int = 60
    stable_rounds: int = 4


@dataclass(frozen=True)
class PollingState:
    stable_count: int = 0
    attempt: int = 0
    last_scroll_top: Optional[float] = None


@dataclass(frozen=True)
class ConvergenceResult:
    outcome: ConvergenceOutcome
    rounds: int = 0
    turn_count: int = 0

    @property
    def is_complete(self) -> bool:
        return self.outcome == ConvergenceOutcome.CONVERGED


def advance_state(
    state: PollingState,
    previous_count: int,
    current_count: int,
    scroll_top: float,
) -> PollingState:
    """Fold one polling round into the state.

    A round is stable when the turn count did not change and the scroll
    position either did not move or sits at the top boundary (0). Any other
    round resets the stable count.
    """
    position_settled = scroll_top == state.last_scroll_top or scroll_top == 0
    stable = current_count == previous_count and position_settled
    return PollingState(
        stable_count=state.stable_count + 1 if stable else 0,
        attempt=state.attempt + 1,
        last_scroll_top=scroll_top,
    )


def outcome_for(
    state: PollingState, settings: ScrollSettings
) -> Optional[ConvergenceOutcome]:
    """Terminal outcome for ``state``, or None while polling should go on."""
    if state.stable_count >= settings.stable_rounds:
        return ConvergenceOutcome.CONVERGED
    if state.attempt >= settings.max_attempts:
        return ConvergenceOutcome.EXHAUSTED
    return None


class ScrollConvergenceDetector:
    """Repeatedly scrolls a source view to the top until its turn list settles."""

    def __init__(
        self,
        view: SourceView,
        settings: Optional[ScrollSettings] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.view = view
        self.settings = settings or ScrollSettings()
        self.sleep = sleep

    async def poll(self) -> ConvergenceResult:
        """Run the polling loop and report how it ended, without raising."""
        if not await self.view.has_container():
            return ConvergenceResult(ConvergenceOutcome.NOT_FOUND)

        state = PollingState()
        current_count = await self.view.turn_count()
        while (outcome := outcome_for(state, self.settings)) is None:
            previous_count = await self.view.turn_count()
            await self.view.scroll_to_top()
            await self.sleep(self.settings.scroll_delay)
            current_count = await self.view.turn_count()
            scroll_top = await self.view.scroll_position()
            state = advance_state(state, previous_count, current_count, scroll_top)
            logger.debug(
                "Scroll round %d: %d -> %d turns, scrollTop=%s, stable=%d",
                state.attempt,
                previous_count,
                current_count,
                scroll_top,
                state.stable_count,
            )

        return ConvergenceResult(outcome, rounds=state.attempt, turn_count=current_count)

    async def await_full_load(self) -> ConvergenceResult:
        """Load every turn of the conversation.

        Hitting the round cap is not an error: whatever has loaded so far is
        exported.

        Raises:
            ContainerNotFoundError: If the chat history container is missing.
        """
        result = await self.poll()
        if result.outcome == ConvergenceOutcome.NOT_FOUND:
            raise ContainerNotFoundError(self.view.selectors.container)
        if result.outcome == ConvergenceOutcome.EXHAUSTED:
            logger.warning(
                "Conversation did not settle after %d scroll rounds; "
                "exporting the %d turns loaded so far",
                result.rounds,
                result.turn_count,
            )
        else:
            logger.info(
                "Conversation fully loaded: %d turns after %d rounds",
                result.turn_count,
                result.rounds,
            )
        return result
