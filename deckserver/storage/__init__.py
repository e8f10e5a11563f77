"""Storage helpers for persisting deck locations and history."""

from .manager import (
    DeckSnapshot,
    append_location_history,
    load_last_position,
    load_location_history,
    reset_location_history,
    save_last_position,
)

__all__ = [
    "DeckSnapshot",
    "append_location_history",
    "load_last_position",
    "load_location_history",
    "reset_location_history",
    "save_last_position",
]
