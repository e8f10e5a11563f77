from __future__ import annotations

from typing import Optional


class DeckError(Exception):
    """Base class for deck engine errors."""


class ManifestError(DeckError):
    """Raised when a deck manifest or binding table cannot be loaded."""


class InvalidIndex(DeckError, IndexError):
    """Raised when a slide index falls outside the deck."""

    def __init__(self, index: int, size: int) -> None:
        super().__init__(f"Slide index {index} is outside [0, {size}).")
        self.index = index
        self.size = size


class ParseFailure(DeckError, ValueError):
    """Raised when a location string cannot be decoded."""

    def __init__(self, location: Optional[str], reason: str = "malformed location") -> None:
        super().__init__(f"Cannot decode location {location!r}: {reason}")
        self.location = location
        self.reason = reason


class ChannelDeliveryFailure(DeckError):
    """Raised when a presenter message cannot be delivered to a listener."""
