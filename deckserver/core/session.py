from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from deckserver.core.commands import GotoSlide, NavigationCommand
from deckserver.core.config import EngineConfig
from deckserver.core.deck import Deck, load_deck, placeholder_deck
from deckserver.core.dispatcher import BindingConfig, InputDispatcher, InputEvent, LocationEvent, load_bindings
from deckserver.core.errors import InvalidIndex, ParseFailure
from deckserver.core.location import DEFAULT_LOCATION, NavigationHistory, decode, encode
from deckserver.core.orchestrator import FrameScheduler, TransitionOrchestrator, TransitionRecord
from deckserver.core.presenter import PresenterChannel
from deckserver.core.render import RenderCollaborator, SnapshotRenderer
from deckserver.core.state import DeckStore, Mode, Position
from deckserver.storage import (
    append_location_history,
    load_last_position,
    load_location_history,
    save_last_position,
)

logger = logging.getLogger(__name__)


class DeckSession:
    """One running presentation: the deck plus every component wired around it."""

    def __init__(
        self,
        deck: Deck,
        *,
        bindings: Optional[BindingConfig] = None,
        renderer: Optional[RenderCollaborator] = None,
        channel: Optional[PresenterChannel] = None,
        history: Optional[NavigationHistory] = None,
        scheduler: Optional[FrameScheduler] = None,
        initial_location: Optional[str] = None,
        initial_mode: Optional[str] = None,
    ) -> None:
        self.deck = deck
        self.store = DeckStore(deck)
        self.dispatcher = InputDispatcher(bindings)
        self.renderer = renderer or SnapshotRenderer()
        self.channel = channel or PresenterChannel(deck)
        self.history = history or NavigationHistory()
        self.orchestrator = TransitionOrchestrator(
            self.store,
            renderer=self.renderer,
            history=self.history,
            channel=self.channel,
            scheduler=scheduler,
        )
        self._load(initial_location, initial_mode)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        *,
        deck: Optional[Deck] = None,
        renderer: Optional[RenderCollaborator] = None,
    ) -> "DeckSession":
        defaults = {
            "transition": config.transition,
            "transition_duration_ms": config.transition_duration_ms,
        }
        if deck is None:
            if config.manifest_path is not None:
                deck = load_deck(config.manifest_path, **defaults)
            else:
                logger.warning("No deck manifest configured; using a placeholder deck.")
                deck = placeholder_deck()

        bindings = load_bindings(config.bindings_path) if config.bindings_path else None

        initial_location = config.initial_location
        initial_mode = None
        stored_entries = []
        if config.persist_history:
            snapshot = load_last_position(config.storage_dir)
            if initial_location is None:
                initial_location = snapshot.location
                initial_mode = snapshot.mode
            stored_entries = [
                entry["location"]
                for entry in load_location_history(config.history_limit, config.storage_dir)
                if isinstance(entry, dict) and isinstance(entry.get("location"), str)
            ]

        history = NavigationHistory(limit=config.history_limit, entries=stored_entries)
        session = cls(
            deck,
            bindings=bindings,
            renderer=renderer,
            history=history,
            scheduler=FrameScheduler(config.frame_rate),
            initial_location=initial_location,
            initial_mode=initial_mode,
        )

        if config.persist_history:
            session._attach_storage(config)
        return session

    def _attach_storage(self, config: EngineConfig) -> None:
        def log_location(location: str) -> None:
            append_location_history(
                {
                    "location": location,
                    "mode": self.store.current_position().mode.value,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
                limit=config.history_limit,
                storage_dir=config.storage_dir,
            )

        def save_position(position: Position) -> None:
            save_last_position(
                encode(position), mode=position.mode.value, storage_dir=config.storage_dir
            )

        self.history.attach(log_location)
        self.orchestrator.commit_listeners.append(save_position)

    def _load(self, location: Optional[str], mode: Optional[str]) -> None:
        position = Position(0, 0)
        if location is not None:
            try:
                target = decode(location)
            except ParseFailure as exc:
                logger.warning("%s; starting at %s", exc, DEFAULT_LOCATION)
            else:
                if target.slide_index < len(self.deck):
                    position = Position(target.slide_index, target.fragment_index)
                else:
                    logger.warning(
                        "Location %s points past the last slide; starting at %s",
                        location,
                        DEFAULT_LOCATION,
                    )
        if mode:
            try:
                position = Position(position.slide_index, position.fragment_index, Mode(mode))
            except ValueError:
                logger.warning("Ignoring unknown stored mode %r", mode)
        self.store.restore(position)
        self.orchestrator.commit_current()

    @property
    def position(self) -> Position:
        return self.store.current_position()

    @property
    def location(self) -> str:
        return encode(self.position)

    def navigate(self, command: NavigationCommand) -> Optional[TransitionRecord]:
        return self.orchestrator.submit(command)

    def handle_input(self, event: InputEvent) -> Tuple[Optional[NavigationCommand], Optional[TransitionRecord]]:
        command = self.dispatcher.normalize(event)
        if command is None:
            return None, None
        return command, self.orchestrator.submit(command)

    def go_to_location(self, location: str) -> Optional[TransitionRecord]:
        """Navigate to a location string; raises ParseFailure or InvalidIndex."""
        target = decode(location)
        return self.orchestrator.submit(GotoSlide(target.slide_index, fragment=target.fragment_index))

    def history_back(self) -> Optional[TransitionRecord]:
        previous = self.history.cursor
        location = self.history.back()
        if location is None:
            return None
        return self._follow_history(location, previous)

    def history_forward(self) -> Optional[TransitionRecord]:
        previous = self.history.cursor
        location = self.history.forward()
        if location is None:
            return None
        return self._follow_history(location, previous)

    def _follow_history(self, location: str, previous: int) -> Optional[TransitionRecord]:
        # Browser history arrives as a location change, so it goes through the dispatcher.
        try:
            command, record = self.handle_input(LocationEvent(location))
        except InvalidIndex as exc:
            command, record = None, None
            logger.warning("Skipping history entry %s: %s", location, exc)
        if command is None:
            self.history.seek(previous)
        return record

    def close(self) -> None:
        self.orchestrator.shutdown()
        self.channel.close()
