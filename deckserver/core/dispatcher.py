from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import ValidationError

from deckserver.core.commands import GotoSlide, NavigationCommand, parse_command
from deckserver.core.errors import ManifestError, ParseFailure
from deckserver.core.location import decode
from deckserver.models.deck_schema import BindingManifest

logger = logging.getLogger(__name__)

DEFAULT_KEY_BINDINGS = {
    "arrowright": "next",
    "arrowdown": "next",
    "pagedown": "next",
    "space": "next",
    "enter": "next",
    "arrowleft": "prev",
    "arrowup": "prev",
    "pageup": "prev",
    "backspace": "prev",
    "shift+space": "prev",
    "home": "goto:0",
    "o": "toggle_overview",
    "n": "toggle_notes",
}
DEFAULT_SWIPE_BINDINGS = {
    "left": "next",
    "right": "prev",
}
DEFAULT_CLICK_ZONE_BINDINGS = {
    "left": "prev",
    "right": "next",
}

_KEY_ALIASES = {
    " ": "space",
    "spacebar": "space",
    "return": "enter",
    "left": "arrowleft",
    "right": "arrowright",
    "up": "arrowup",
    "down": "arrowdown",
}


@dataclass(frozen=True)
class KeyEvent:
    key: str
    shift: bool = False


@dataclass(frozen=True)
class SwipeEvent:
    direction: str


@dataclass(frozen=True)
class ClickEvent:
    # Normalized viewport coordinates in [0, 1].
    x: float
    y: float = 0.5


@dataclass(frozen=True)
class LocationEvent:
    location: str


InputEvent = Union[KeyEvent, SwipeEvent, ClickEvent, LocationEvent]


def normalize_key(key: str, *, shift: bool = False) -> str:
    name = key if key == " " else key.strip()
    name = _KEY_ALIASES.get(name.lower(), name.lower())
    if shift and not name.startswith("shift+"):
        name = f"shift+{name}"
    return name


def _parse_table(table: Dict[str, str], kind: str, *, keys: bool = False) -> Dict[str, NavigationCommand]:
    parsed: Dict[str, NavigationCommand] = {}
    for raw_input, spec in table.items():
        try:
            command = parse_command(spec)
        except ValueError as exc:
            raise ManifestError(f"Invalid {kind} binding {raw_input!r}: {exc}") from exc
        name = normalize_key(raw_input) if keys else raw_input.strip().lower()
        parsed[name] = command
    return parsed


@dataclass
class BindingConfig:
    keys: Dict[str, NavigationCommand] = field(default_factory=dict)
    swipes: Dict[str, NavigationCommand] = field(default_factory=dict)
    click_zones: Dict[str, NavigationCommand] = field(default_factory=dict)

    @classmethod
    def from_tables(
        cls,
        *,
        keys: Optional[Dict[str, str]] = None,
        swipes: Optional[Dict[str, str]] = None,
        click_zones: Optional[Dict[str, str]] = None,
    ) -> "BindingConfig":
        return cls(
            keys=_parse_table(keys or {}, "key", keys=True),
            swipes=_parse_table(swipes or {}, "swipe"),
            click_zones=_parse_table(click_zones or {}, "click zone"),
        )

    @classmethod
    def defaults(cls) -> "BindingConfig":
        return cls.from_tables(
            keys=DEFAULT_KEY_BINDINGS,
            swipes=DEFAULT_SWIPE_BINDINGS,
            click_zones=DEFAULT_CLICK_ZONE_BINDINGS,
        )


def load_bindings(path: Path) -> BindingConfig:
    """
    Load a JSON binding table.

    Each section given in the file replaces the matching default section;
    omitted sections keep the defaults.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ManifestError(f"Cannot read binding table {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Binding table {path} is not valid JSON: {exc}") from exc

    try:
        manifest = BindingManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid binding table {path}: {exc}") from exc

    provided = manifest.model_fields_set
    return BindingConfig.from_tables(
        keys=manifest.keys if "keys" in provided else DEFAULT_KEY_BINDINGS,
        swipes=manifest.swipes if "swipes" in provided else DEFAULT_SWIPE_BINDINGS,
        click_zones=(
            manifest.click_zones if "click_zones" in provided else DEFAULT_CLICK_ZONE_BINDINGS
        ),
    )


def click_zone(x: float) -> str:
    if x < 1 / 3:
        return "left"
    if x > 2 / 3:
        return "right"
    return "center"


class InputDispatcher:
    """Turns raw input events into navigation commands; unknown input maps to None."""

    def __init__(self, bindings: Optional[BindingConfig] = None) -> None:
        self.bindings = bindings or BindingConfig.defaults()

    def normalize(self, event: InputEvent) -> Optional[NavigationCommand]:
        if isinstance(event, KeyEvent):
            command = self.bindings.keys.get(normalize_key(event.key, shift=event.shift))
            if command is None and event.shift:
                command = self.bindings.keys.get(normalize_key(event.key))
        elif isinstance(event, SwipeEvent):
            command = self.bindings.swipes.get(event.direction.strip().lower())
        elif isinstance(event, ClickEvent):
            command = self.bindings.click_zones.get(click_zone(event.x))
        elif isinstance(event, LocationEvent):
            command = self._from_location(event.location)
        else:
            command = None

        if command is None:
            logger.debug("Ignoring unbound input %r", event)
        return command

    def _from_location(self, location: str) -> Optional[NavigationCommand]:
        try:
            target = decode(location)
        except ParseFailure as exc:
            logger.warning("Ignoring location input: %s", exc)
            return None
        return GotoSlide(target.slide_index, fragment=target.fragment_index)
