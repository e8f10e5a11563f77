"""Navigation engine: deck state, reveal tracking, transitions and sync."""

from .commands import (
    GotoSlide,
    NavigationCommand,
    Next,
    Prev,
    ToggleNotes,
    ToggleOverview,
    parse_command,
)
from .deck import Deck, SlideDescriptor, load_deck
from .errors import (
    ChannelDeliveryFailure,
    DeckError,
    InvalidIndex,
    ManifestError,
    ParseFailure,
)
from .state import DeckStore, Mode, Position

__all__ = [
    "ChannelDeliveryFailure",
    "Deck",
    "DeckError",
    "DeckStore",
    "GotoSlide",
    "InvalidIndex",
    "ManifestError",
    "Mode",
    "NavigationCommand",
    "Next",
    "ParseFailure",
    "Position",
    "Prev",
    "SlideDescriptor",
    "ToggleNotes",
    "ToggleOverview",
    "load_deck",
    "parse_command",
]
