from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class Prev:
    pass


@dataclass(frozen=True)
class GotoSlide:
    index: int
    # Explicit fragment for URL/history navigation; clamped to the slide.
    fragment: Optional[int] = None


@dataclass(frozen=True)
class ToggleOverview:
    pass


@dataclass(frozen=True)
class ToggleNotes:
    pass


NavigationCommand = Union[Next, Prev, GotoSlide, ToggleOverview, ToggleNotes]

_SIMPLE_COMMANDS = {
    "next": Next,
    "prev": Prev,
    "toggle_overview": ToggleOverview,
    "toggle_notes": ToggleNotes,
}


def parse_command(spec: str) -> NavigationCommand:
    """
    Parse a binding-table command name.

    Recognized forms are ``next``, ``prev``, ``toggle_overview``,
    ``toggle_notes`` and ``goto:<index>``.
    """
    name = spec.strip().lower()
    if name in _SIMPLE_COMMANDS:
        return _SIMPLE_COMMANDS[name]()
    if name.startswith("goto:"):
        raw_index = name.removeprefix("goto:")
        try:
            return GotoSlide(int(raw_index))
        except ValueError as exc:
            raise ValueError(f"Invalid slide index in command {spec!r}.") from exc
    raise ValueError(f"Unknown navigation command {spec!r}.")


def command_name(command: NavigationCommand) -> str:
    if isinstance(command, GotoSlide):
        return f"goto:{command.index}"
    for name, kind in _SIMPLE_COMMANDS.items():
        if isinstance(command, kind):
            return name
    raise TypeError(f"Not a navigation command: {command!r}")
