from __future__ import annotations

import logging
import re
from typing import Callable, List, NamedTuple, Optional, Union

from deckserver.core.errors import ParseFailure
from deckserver.core.state import Position

logger = logging.getLogger(__name__)

LOCATION_PATTERN = re.compile(r"^#/(?P<slide>\d+)(?:/(?P<fragment>\d+))?/?$")
DEFAULT_LOCATION = "#/0/0"


class Location(NamedTuple):
    slide_index: int
    fragment_index: int = 0


def encode(position: Union[Position, Location]) -> str:
    """Encode a position as ``#/<slide>/<fragment>``."""
    return f"#/{position.slide_index}/{position.fragment_index}"


def decode(location: Optional[str]) -> Location:
    """
    Decode a location string into a raw (slide, fragment) pair.

    The fragment index is returned as written; clamping to the slide's fragment
    count is left to the deck state.
    """
    if not location:
        raise ParseFailure(location, "empty location")
    match = LOCATION_PATTERN.match(location.strip())
    if match is None:
        raise ParseFailure(location)

    fragment = match.group("fragment")
    return Location(
        slide_index=int(match.group("slide")),
        fragment_index=int(fragment) if fragment is not None else 0,
    )


def decode_or_default(location: Optional[str]) -> Location:
    try:
        return decode(location)
    except ParseFailure as exc:
        logger.warning("%s; falling back to %s", exc, DEFAULT_LOCATION)
        return Location(0, 0)


class NavigationHistory:
    """
    Browsable list of committed locations with a cursor.

    Pushing after stepping back discards the forward entries; pushing the
    location already under the cursor is ignored.
    """

    def __init__(
        self,
        *,
        limit: int = 200,
        on_push: Optional[Callable[[str], None]] = None,
        entries: Optional[List[str]] = None,
    ) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1.")
        self._limit = limit
        self._on_push = on_push
        self._entries: List[str] = list(entries or [])[-limit:]
        self._cursor = len(self._entries) - 1

    def attach(self, on_push: Optional[Callable[[str], None]]) -> None:
        self._on_push = on_push

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Optional[str]:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    def push(self, location: str) -> bool:
        if self.current == location:
            return False
        del self._entries[self._cursor + 1 :]
        self._entries.append(location)
        if len(self._entries) > self._limit:
            del self._entries[: len(self._entries) - self._limit]
        self._cursor = len(self._entries) - 1

        if self._on_push is not None:
            try:
                self._on_push(location)
            except OSError as exc:
                logger.error("Failed to persist location %s: %s", location, exc)
        return True

    def push_position(self, position: Position) -> bool:
        return self.push(encode(position))

    def back(self) -> Optional[str]:
        if self._cursor <= 0:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def forward(self) -> Optional[str]:
        if self._cursor >= len(self._entries) - 1:
            return None
        self._cursor += 1
        return self._entries[self._cursor]

    def seek(self, cursor: int) -> None:
        """Move the cursor back onto an existing entry without touching the list."""
        if not -1 <= cursor < len(self._entries):
            raise IndexError(f"History cursor {cursor} out of range")
        self._cursor = cursor
