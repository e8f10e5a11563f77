"""
Tests for the transition orchestrator.
"""

import asyncio

import pytest

from deckserver.core.commands import GotoSlide, Next, Prev, ToggleOverview
from deckserver.core.deck import Deck
from deckserver.core.errors import InvalidIndex
from deckserver.core.location import NavigationHistory
from deckserver.core.orchestrator import (
    Direction,
    FrameScheduler,
    OrchestratorState,
    TransitionOrchestrator,
    derive_direction,
)
from deckserver.core.presenter import PresenterChannel
from deckserver.core.render import RenderCollaborator, SnapshotRenderer
from deckserver.core.state import DeckStore, Position


def _build(deck, scheduler):
    store = DeckStore(deck)
    renderer = SnapshotRenderer(keep=500)
    history = NavigationHistory()
    channel = PresenterChannel(deck)
    messages = []
    channel.subscribe(messages.append)
    orchestrator = TransitionOrchestrator(
        store,
        renderer=renderer,
        history=history,
        channel=channel,
        scheduler=scheduler,
    )
    return orchestrator, renderer, history, messages


class TestDirection:
    """Tests for deriving the transition direction."""

    def test_slide_change(self):
        assert derive_direction(Position(0, 0), Position(2, 0)) is Direction.FORWARD
        assert derive_direction(Position(2, 0), Position(1, 2)) is Direction.BACKWARD

    def test_fragment_change(self):
        assert derive_direction(Position(1, 1), Position(1, 2)) is Direction.FORWARD
        assert derive_direction(Position(1, 2), Position(1, 1)) is Direction.BACKWARD


class TestFrameScheduler:
    """Tests for frame counting."""

    def test_frames_for_duration(self):
        """Test durations convert to whole frames, at least one."""
        scheduler = FrameScheduler(frame_rate=60)
        assert scheduler.frames_for(500) == 30
        assert scheduler.frames_for(1) == 1

    def test_invalid_frame_rate(self):
        with pytest.raises(ValueError):
            FrameScheduler(frame_rate=0)


class TestTransitionLifecycle:
    """Tests for a single transition."""

    @pytest.mark.asyncio
    async def test_transition_runs_to_idle(self, small_deck, step_scheduler):
        """Test Idle -> Transitioning -> Idle with frames, hooks and commit."""
        orchestrator, renderer, history, messages = _build(small_deck, step_scheduler)
        assert orchestrator.state is OrchestratorState.IDLE

        record = orchestrator.submit(Next())

        assert orchestrator.state is OrchestratorState.TRANSITIONING
        assert record.direction is Direction.FORWARD
        assert (record.from_slide_index, record.to_slide_index) == (0, 1)
        assert orchestrator.store.current_position() == Position(1, 0)
        assert history.entries == []

        await orchestrator.settle()

        assert orchestrator.state is OrchestratorState.IDLE
        assert not record.cancelled
        assert record.frames_rendered == 5
        assert [frame.progress for frame in renderer.frames] == [0.2, 0.4, 0.6, 0.8, 1.0]
        assert renderer.last_frame.slide_id == "slide-1"
        assert renderer.last_frame.direction == "forward"
        assert [name for name, _, _ in renderer.events] == [
            "will_exit",
            "will_enter",
            "did_exit",
            "did_enter",
        ]
        assert history.entries == ["#/1/0"]
        assert [message.slide_ordinal for message in messages] == [1]

    @pytest.mark.asyncio
    async def test_noop_command_starts_nothing(self, small_deck, step_scheduler):
        """Test a command that does not move returns None."""
        orchestrator, renderer, history, messages = _build(small_deck, step_scheduler)
        assert orchestrator.submit(Prev()) is None
        assert orchestrator.state is OrchestratorState.IDLE
        assert renderer.frames == []
        assert messages == []

    @pytest.mark.asyncio
    async def test_invalid_goto_leaves_transition_alone(self, small_deck, step_scheduler):
        """Test InvalidIndex surfaces and the running transition continues."""
        orchestrator, _, history, _ = _build(small_deck, step_scheduler)
        record = orchestrator.submit(Next())

        with pytest.raises(InvalidIndex):
            orchestrator.submit(GotoSlide(9))

        assert orchestrator.active is record
        await orchestrator.settle()
        assert not record.cancelled
        assert history.entries == ["#/1/0"]

    @pytest.mark.asyncio
    async def test_zero_duration_commits_immediately(self, step_scheduler):
        """Test a slide without animation commits in submit."""
        deck = Deck.from_counts([0, 0], transition_duration_ms=0)
        orchestrator, renderer, history, _ = _build(deck, step_scheduler)

        record = orchestrator.submit(Next())

        assert orchestrator.state is OrchestratorState.IDLE
        assert record.frames_rendered == 1
        assert history.entries == ["#/1/0"]
        assert step_scheduler.ticks == 0

    def test_submit_without_event_loop_commits(self, small_deck):
        """Test synchronous callers get an immediate commit."""
        orchestrator, _, history, _ = _build(small_deck, FrameScheduler())
        orchestrator.submit(Next())
        assert orchestrator.state is OrchestratorState.IDLE
        assert history.entries == ["#/1/0"]

    @pytest.mark.asyncio
    async def test_mode_toggle_is_a_transition(self, small_deck, step_scheduler):
        """Test mode changes commit like any other change."""
        orchestrator, _, history, messages = _build(small_deck, step_scheduler)
        orchestrator.submit(ToggleOverview())
        await orchestrator.settle()
        assert messages[-1].mode == "overview"
        assert history.entries == ["#/0/0"]

    def test_commit_current(self, small_deck):
        """Test the load-time commit renders, records and broadcasts."""
        orchestrator, renderer, history, messages = _build(small_deck, FrameScheduler())
        orchestrator.commit_current()
        assert renderer.last_frame.progress == 1.0
        assert history.entries == ["#/0/0"]
        assert len(messages) == 1


class TestSupersede:
    """Tests for commands arriving during a transition."""

    @pytest.mark.asyncio
    async def test_new_command_cancels_in_flight_record(self, small_deck, step_scheduler):
        """Test the old record is cancelled and the new one starts from the moved state."""
        orchestrator, renderer, history, messages = _build(small_deck, step_scheduler)

        first = orchestrator.submit(Next())
        second = orchestrator.submit(Next())

        assert first.cancelled
        assert not second.cancelled
        assert (second.from_slide_index, second.from_fragment_index) == (1, 0)
        assert (second.to_slide_index, second.to_fragment_index) == (1, 1)
        assert orchestrator.active is second

        await orchestrator.settle()

        assert first.frames_rendered == 0
        assert second.frames_rendered == 5
        assert history.entries == ["#/1/1"]
        assert len(messages) == 1
        names = [name for name, _, _ in renderer.events]
        assert names == [
            "will_exit",
            "will_enter",
            "did_exit",
            "did_enter",
            "will_exit",
            "will_enter",
            "did_exit",
            "did_enter",
        ]

    @pytest.mark.asyncio
    async def test_cancelled_record_stops_rendering(self, small_deck, step_scheduler):
        """Test a record superseded mid-animation renders no more frames."""
        orchestrator, _, _, _ = _build(small_deck, step_scheduler)
        first = orchestrator.submit(Next())
        for _ in range(3):
            await asyncio.sleep(0)
        rendered = first.frames_rendered
        assert 0 < rendered < 5

        orchestrator.submit(Next())
        await orchestrator.settle()
        assert first.frames_rendered == rendered

    @pytest.mark.asyncio
    async def test_burst_matches_settled_sequence(self, step_scheduler):
        """Test five Next commands during a transition equal five settled steps."""
        deck = Deck.from_counts([1, 0, 3, 2])

        burst, _, burst_history, _ = _build(deck, step_scheduler)
        burst.submit(Next())
        await asyncio.sleep(0)
        for _ in range(5):
            burst.submit(Next())
        await burst.settle()

        settled, _, _, _ = _build(deck, step_scheduler)
        for _ in range(6):
            settled.submit(Next())
            await settled.settle()

        assert burst.store.current_position() == settled.store.current_position()
        assert burst.store.current_position() == Position(2, 3)
        assert burst_history.entries == ["#/2/3"]

    @pytest.mark.asyncio
    async def test_direction_follows_latest_target(self, small_deck, step_scheduler):
        """Test a reversal during a transition animates backwards."""
        orchestrator, _, history, _ = _build(small_deck, step_scheduler)
        orchestrator.submit(Next())
        record = orchestrator.submit(Prev())
        assert record.direction is Direction.BACKWARD
        await orchestrator.settle()
        assert orchestrator.store.current_position() == Position(0, 0)
        assert history.entries == ["#/0/0"]

    @pytest.mark.asyncio
    async def test_shutdown_cancels(self, small_deck, step_scheduler):
        """Test shutdown cancels the running transition."""
        orchestrator, _, history, _ = _build(small_deck, step_scheduler)
        record = orchestrator.submit(Next())
        orchestrator.shutdown()
        await orchestrator.settle()
        assert record.cancelled
        assert orchestrator.state is OrchestratorState.IDLE
        assert history.entries == []

    @pytest.mark.asyncio
    async def test_external_cancel_commits_and_settles(self, small_deck, step_scheduler):
        """Test a transition cancelled from outside still commits and settle returns."""
        orchestrator, _, history, _ = _build(small_deck, step_scheduler)
        orchestrator.submit(Next())
        await asyncio.sleep(0)
        orchestrator._task.cancel()

        position = await asyncio.wait_for(orchestrator.settle(), 1)
        assert position == Position(1, 0)
        assert orchestrator.state is OrchestratorState.IDLE
        assert history.entries == ["#/1/0"]

    @pytest.mark.asyncio
    async def test_cancel_before_first_frame_commits(self, small_deck, step_scheduler):
        """Test a transition cancelled before it ever ran is committed by settle."""
        orchestrator, _, history, _ = _build(small_deck, step_scheduler)
        orchestrator.submit(Next())
        orchestrator._task.cancel()

        await asyncio.wait_for(orchestrator.settle(), 1)
        assert orchestrator.state is OrchestratorState.IDLE
        assert history.entries == ["#/1/0"]


class TestCollaboratorFailures:
    """Tests for misbehaving render collaborators."""

    class ExplodingRenderer(RenderCollaborator):
        def render(self, *args, **kwargs):
            raise RuntimeError("canvas lost")

        def did_enter(self, record):
            raise RuntimeError("hook failed")

    @pytest.mark.asyncio
    async def test_render_errors_do_not_stop_navigation(self, small_deck, step_scheduler):
        """Test the deck still commits when rendering fails."""
        store = DeckStore(small_deck)
        history = NavigationHistory()
        orchestrator = TransitionOrchestrator(
            store,
            renderer=self.ExplodingRenderer(),
            history=history,
            scheduler=step_scheduler,
        )
        record = orchestrator.submit(Next())
        await orchestrator.settle()
        assert record.frames_rendered == 0
        assert history.entries == ["#/1/0"]
