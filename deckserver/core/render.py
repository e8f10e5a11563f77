from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional

from deckserver.core.state import Mode

if TYPE_CHECKING:
    from deckserver.core.orchestrator import TransitionRecord


class RenderCollaborator:
    """
    Visual side of the deck.

    The engine calls [render] for every animation frame and for every committed
    position; the lifecycle hooks bracket each transition. All methods are
    no-ops here so collaborators only override what they need.
    """

    def render(
        self,
        slide_id: str,
        revealed_fragment_count: int,
        mode: Mode,
        *,
        transition: Optional["TransitionRecord"] = None,
        progress: float = 1.0,
    ) -> Any:
        return None

    def will_exit(self, record: "TransitionRecord") -> None:
        pass

    def will_enter(self, record: "TransitionRecord") -> None:
        pass

    def did_exit(self, record: "TransitionRecord") -> None:
        pass

    def did_enter(self, record: "TransitionRecord") -> None:
        pass


@dataclass(frozen=True)
class RenderedFrame:
    slide_id: str
    revealed_fragment_count: int
    mode: Mode
    direction: Optional[str]
    transition: Optional[str]
    progress: float


class SnapshotRenderer(RenderCollaborator):
    """Keeps the most recent frames so the HTTP surface can report them."""

    def __init__(self, keep: int = 32) -> None:
        self.keep = keep
        self.frames: List[RenderedFrame] = []
        self.events: List[tuple[str, int, int]] = []

    @property
    def last_frame(self) -> Optional[RenderedFrame]:
        return self.frames[-1] if self.frames else None

    def render(self, slide_id, revealed_fragment_count, mode, *, transition=None, progress=1.0):
        frame = RenderedFrame(
            slide_id=slide_id,
            revealed_fragment_count=revealed_fragment_count,
            mode=mode,
            direction=transition.direction.value if transition is not None else None,
            transition=transition.transition if transition is not None else None,
            progress=progress,
        )
        self.frames.append(frame)
        del self.frames[: -self.keep]
        return frame

    def _record(self, name: str, record: "TransitionRecord") -> None:
        self.events.append((name, record.from_slide_index, record.to_slide_index))
        del self.events[: -self.keep]

    def will_exit(self, record):
        self._record("will_exit", record)

    def will_enter(self, record):
        self._record("will_enter", record)

    def did_exit(self, record):
        self._record("did_exit", record)

    def did_enter(self, record):
        self._record("did_enter", record)
