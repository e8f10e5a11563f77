from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

from deckserver.core.commands import (
    GotoSlide,
    NavigationCommand,
    Next,
    Prev,
    ToggleNotes,
    ToggleOverview,
)
from deckserver.core.deck import Deck, SlideDescriptor
from deckserver.core.errors import InvalidIndex
from deckserver.core.fragments import FragmentTracker, StayOnSlide

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    PRESENT = "present"
    OVERVIEW = "overview"
    NOTES_VISIBLE = "notes"


@dataclass(frozen=True)
class Position:
    slide_index: int
    fragment_index: int = 0
    mode: Mode = Mode.PRESENT


class DeckStore:
    """
    Single source of truth for the deck position.

    The store resolves commands against the fixed slide sequence and swaps in
    the resulting position as one immutable value, so readers never observe a
    fragment index belonging to another slide.
    """

    def __init__(self, deck: Deck, initial: Position | None = None) -> None:
        self.deck = deck
        self.tracker = FragmentTracker(deck)
        self._position = Position(0, 0, Mode.PRESENT)
        if initial is not None:
            self.restore(initial)

    def current_position(self) -> Position:
        return self._position

    @property
    def current_slide(self) -> SlideDescriptor:
        return self.deck[self._position.slide_index]

    def resolve(self, command: NavigationCommand) -> Position:
        """Compute the position [command] leads to without applying it."""
        current = self._position

        if isinstance(command, ToggleOverview):
            mode = Mode.PRESENT if current.mode is Mode.OVERVIEW else Mode.OVERVIEW
            return replace(current, mode=mode)

        if isinstance(command, ToggleNotes):
            mode = Mode.PRESENT if current.mode is Mode.NOTES_VISIBLE else Mode.NOTES_VISIBLE
            return replace(current, mode=mode)

        if isinstance(command, GotoSlide):
            return self._resolve_goto(command)

        slides_only = current.mode is Mode.OVERVIEW
        if isinstance(command, Next):
            step = self.tracker.step_forward(
                current.slide_index, current.fragment_index, slides_only=slides_only
            )
        elif isinstance(command, Prev):
            step = self.tracker.step_backward(
                current.slide_index, current.fragment_index, slides_only=slides_only
            )
        else:
            raise TypeError(f"Unsupported navigation command: {command!r}")

        if isinstance(step, StayOnSlide):
            return replace(current, fragment_index=step.fragment_index)
        return replace(current, slide_index=step.slide_index, fragment_index=step.fragment_index)

    def _resolve_goto(self, command: GotoSlide) -> Position:
        current = self._position
        target = command.index
        if not 0 <= target < len(self.deck):
            raise InvalidIndex(target, len(self.deck))

        if command.fragment is not None:
            fragment = self.tracker.clamp(target, command.fragment)
        elif target > current.slide_index:
            fragment = 0
        elif target < current.slide_index:
            fragment = self.deck.fragment_count(target)
        else:
            return current
        return replace(current, slide_index=target, fragment_index=fragment)

    def apply(self, command: NavigationCommand) -> Position:
        """Apply [command]; raises InvalidIndex and leaves the state untouched."""
        try:
            position = self.resolve(command)
        except InvalidIndex as exc:
            logger.info("Rejected %r: %s", command, exc)
            raise
        self._position = position
        return position

    def restore(self, position: Position) -> Position:
        """Jump straight to [position], e.g. a decoded location on load."""
        if not 0 <= position.slide_index < len(self.deck):
            raise InvalidIndex(position.slide_index, len(self.deck))
        fragment = self.tracker.clamp(position.slide_index, position.fragment_index)
        if fragment != position.fragment_index:
            logger.info(
                "Clamped fragment %d to %d on slide %d",
                position.fragment_index,
                fragment,
                position.slide_index,
            )
        self._position = Position(position.slide_index, fragment, Mode(position.mode))
        return self._position

    def step_index(self, position: Position | None = None) -> int:
        position = position or self._position
        return self.tracker.step_index(position.slide_index, position.fragment_index)
