from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from deckserver.core.commands import NavigationCommand
from deckserver.core.location import NavigationHistory
from deckserver.core.presenter import NullPresenterChannel, PresenterChannel
from deckserver.core.render import RenderCollaborator
from deckserver.core.state import DeckStore, Position

logger = logging.getLogger(__name__)

DEFAULT_FRAME_RATE = 60


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


class OrchestratorState(str, Enum):
    IDLE = "idle"
    TRANSITIONING = "transitioning"


@dataclass
class TransitionRecord:
    from_slide_index: int
    to_slide_index: int
    direction: Direction
    started_at: float
    from_fragment_index: int = 0
    to_fragment_index: int = 0
    transition: str = "slide"
    duration_ms: int = 0
    cancelled: bool = False
    frames_rendered: int = 0


def derive_direction(source: Position, target: Position) -> Direction:
    if target.slide_index != source.slide_index:
        return Direction.FORWARD if target.slide_index > source.slide_index else Direction.BACKWARD
    if target.fragment_index < source.fragment_index:
        return Direction.BACKWARD
    return Direction.FORWARD


class FrameScheduler:
    """Cooperative frame ticks on the running event loop."""

    def __init__(self, frame_rate: int = DEFAULT_FRAME_RATE) -> None:
        if frame_rate <= 0:
            raise ValueError("Frame rate must be positive.")
        self.frame_rate = frame_rate

    @property
    def interval(self) -> float:
        return 1.0 / self.frame_rate

    def frames_for(self, duration_ms: int) -> int:
        return max(1, round(duration_ms / 1000.0 * self.frame_rate))

    async def next_frame(self) -> None:
        await asyncio.sleep(self.interval)


class TransitionOrchestrator:
    """
    Sole mutator of the deck state.

    Commands are applied to the store as soon as they arrive, so a burst ends
    on the same position as applying each command in turn. Only the visual
    animation is superseded: the in-flight record is cancelled and a new one
    starts from the already-moved position. History and presenter views are
    updated when a transition settles.
    """

    def __init__(
        self,
        store: DeckStore,
        *,
        renderer: Optional[RenderCollaborator] = None,
        history: Optional[NavigationHistory] = None,
        channel: Optional[PresenterChannel] = None,
        scheduler: Optional[FrameScheduler] = None,
    ) -> None:
        self.store = store
        self.renderer = renderer or RenderCollaborator()
        self.history = history or NavigationHistory()
        self.channel = channel or NullPresenterChannel()
        self.scheduler = scheduler or FrameScheduler()
        self._active: Optional[TransitionRecord] = None
        self._task: Optional[asyncio.Task] = None
        self.last_transition: Optional[TransitionRecord] = None
        self.commit_listeners: List[Callable[[Position], None]] = []

    @property
    def state(self) -> OrchestratorState:
        return OrchestratorState.TRANSITIONING if self._active is not None else OrchestratorState.IDLE

    @property
    def active(self) -> Optional[TransitionRecord]:
        return self._active

    def submit(self, command: NavigationCommand) -> Optional[TransitionRecord]:
        """
        Apply [command] and start animating towards the new position.

        Returns None when the command leaves the position unchanged. Raises
        InvalidIndex for an out-of-range GotoSlide, with the state untouched.
        """
        source = self.store.current_position()
        target = self.store.apply(command)
        if target == source:
            logger.debug("Command %r is a no-op at %s", command, source)
            return None

        if self._active is not None:
            self._supersede(self._active)

        name, duration_ms = self.store.deck.transition_for(target.slide_index)
        record = TransitionRecord(
            from_slide_index=source.slide_index,
            to_slide_index=target.slide_index,
            direction=derive_direction(source, target),
            started_at=time.monotonic(),
            from_fragment_index=source.fragment_index,
            to_fragment_index=target.fragment_index,
            transition=name,
            duration_ms=duration_ms,
        )
        self._active = record
        self.last_transition = record
        self._call_hook("will_exit", record)
        self._call_hook("will_enter", record)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if duration_ms <= 0 or loop is None:
            self._render(record, 1.0)
            self._complete(record)
        else:
            self._task = loop.create_task(self._animate(record))
        return record

    async def settle(self) -> Position:
        """Wait until no transition is in flight and return the committed position."""
        while self._task is not None:
            task = self._task
            if not task.done():
                await asyncio.wait({task})
            if self._task is task:
                # Cancelled before its first frame, so nothing committed the record.
                self._task = None
                if self._active is not None:
                    self._complete(self._active)
        return self.store.current_position()

    def commit_current(self) -> Position:
        """Render, record and broadcast the current position without animating."""
        position = self.store.current_position()
        self._render(None, 1.0)
        self.history.push_position(position)
        self.channel.broadcast(position)
        self._notify_commit(position)
        return position

    def shutdown(self) -> None:
        if self._active is not None:
            self._supersede(self._active)

    def _supersede(self, record: TransitionRecord) -> None:
        record.cancelled = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._active = None
        logger.debug(
            "Superseded transition %d -> %d after %d frames",
            record.from_slide_index,
            record.to_slide_index,
            record.frames_rendered,
        )
        self._call_hook("did_exit", record)
        self._call_hook("did_enter", record)

    async def _animate(self, record: TransitionRecord) -> None:
        try:
            await self._run_frames(record)
        except asyncio.CancelledError:
            # Cancelled from outside (loop shutdown): the store already moved, so commit it.
            if self._active is record:
                record.cancelled = True
                self._complete(record)
            raise
        except Exception:  # noqa: BLE001 - a broken scheduler must not stall the deck
            logger.exception("Animation failed; committing transition immediately")
        if not record.cancelled:
            self._complete(record)

    async def _run_frames(self, record: TransitionRecord) -> None:
        frames = self.scheduler.frames_for(record.duration_ms)
        for frame in range(1, frames + 1):
            await self.scheduler.next_frame()
            if record.cancelled:
                return
            self._render(record, frame / frames)

    def _complete(self, record: TransitionRecord) -> None:
        self._active = None
        self._task = None
        self._call_hook("did_exit", record)
        self._call_hook("did_enter", record)

        position = self.store.current_position()
        self.history.push_position(position)
        self.channel.broadcast(position)
        self._notify_commit(position)
        logger.info(
            "Committed slide %d fragment %d (%s)",
            position.slide_index,
            position.fragment_index,
            position.mode.value,
        )

    def _notify_commit(self, position: Position) -> None:
        for listener in list(self.commit_listeners):
            try:
                listener(position)
            except OSError as exc:
                logger.error("Commit listener failed at %s: %s", position, exc)

    def _render(self, record: Optional[TransitionRecord], progress: float) -> None:
        position = self.store.current_position()
        slide = self.store.deck[position.slide_index]
        try:
            self.renderer.render(
                slide.id,
                position.fragment_index,
                position.mode,
                transition=record,
                progress=progress,
            )
        except Exception:  # noqa: BLE001 - rendering problems skip the frame
            logger.exception("Render collaborator failed for slide %s", slide.id)
            return
        if record is not None:
            record.frames_rendered += 1

    def _call_hook(self, name: str, record: TransitionRecord) -> None:
        try:
            getattr(self.renderer, name)(record)
        except Exception:  # noqa: BLE001
            logger.exception("Render collaborator hook %s failed", name)
