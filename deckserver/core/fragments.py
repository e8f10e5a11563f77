from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from deckserver.core.deck import Deck


@dataclass(frozen=True)
class StayOnSlide:
    fragment_index: int


@dataclass(frozen=True)
class AdvanceToSlide:
    slide_index: int
    fragment_index: int = 0


@dataclass(frozen=True)
class RetreatToSlide:
    slide_index: int
    fragment_index: int


RevealStep = Union[StayOnSlide, AdvanceToSlide, RetreatToSlide]


class FragmentTracker:
    """
    Orders every (slide, fragment) pair of a deck on a single line.

    Stepping forward from the very start and backward from the very end walk
    the same sequence in opposite directions. Fragment indices above a slide's
    fragment count are treated as "all revealed".
    """

    def __init__(self, deck: Deck) -> None:
        self._deck = deck
        offsets = []
        total = 0
        for slide in deck:
            offsets.append(total)
            total += slide.fragment_count + 1
        self._offsets = offsets
        self._total_steps = total

    @property
    def total_steps(self) -> int:
        return self._total_steps

    def clamp(self, slide_index: int, fragment_index: int) -> int:
        return max(0, min(fragment_index, self._deck.fragment_count(slide_index)))

    def step_forward(
        self, slide_index: int, fragment_index: int, *, slides_only: bool = False
    ) -> RevealStep:
        fragment_index = self.clamp(slide_index, fragment_index)
        if not slides_only and fragment_index < self._deck.fragment_count(slide_index):
            return StayOnSlide(fragment_index + 1)
        if slide_index >= len(self._deck) - 1:
            return StayOnSlide(fragment_index)
        return AdvanceToSlide(slide_index + 1, 0)

    def step_backward(
        self, slide_index: int, fragment_index: int, *, slides_only: bool = False
    ) -> RevealStep:
        fragment_index = self.clamp(slide_index, fragment_index)
        if not slides_only and fragment_index > 0:
            return StayOnSlide(fragment_index - 1)
        if slide_index == 0:
            return StayOnSlide(fragment_index)
        previous = slide_index - 1
        return RetreatToSlide(previous, self._deck.fragment_count(previous))

    def step_index(self, slide_index: int, fragment_index: int) -> int:
        """Position of (slide, fragment) on the linear reveal order."""
        return self._offsets[slide_index] + self.clamp(slide_index, fragment_index)
