"""
Tests for the presenter-notes channel.
"""

import asyncio

import pytest

from deckserver.core.presenter import (
    NullPresenterChannel,
    PresenterChannel,
    PresenterMessage,
    PresenterView,
)
from deckserver.core.state import Mode, Position


class TestPresenterChannel:
    """Tests for broadcasting positions."""

    def test_broadcast_reaches_subscribers(self, noted_deck):
        """Test every subscriber receives the full position."""
        channel = PresenterChannel(noted_deck)
        received = []
        channel.subscribe(received.append)

        channel.broadcast(Position(1, 2, Mode.NOTES_VISIBLE))

        assert len(received) == 1
        message = received[0]
        assert message.slide_ordinal == 1
        assert message.fragment_index == 2
        assert message.mode == "notes"
        assert message.slide_id == "agenda"
        assert message.notes == "Three parts."

    def test_sequence_numbers_increase(self, noted_deck):
        """Test each broadcast gets a larger sequence number."""
        channel = PresenterChannel(noted_deck)
        first = channel.broadcast(Position(0, 0))
        second = channel.broadcast(Position(1, 0))
        assert second.sequence_number == first.sequence_number + 1

    def test_unsubscribe(self, noted_deck):
        """Test unsubscribed listeners stop receiving messages."""
        channel = PresenterChannel(noted_deck)
        received = []
        unsubscribe = channel.subscribe(received.append)
        unsubscribe()
        channel.broadcast(Position(0, 0))
        assert received == []
        assert channel.subscriber_count == 0

    def test_failing_listener_does_not_block_others(self, noted_deck):
        """Test a broken listener is skipped without raising."""
        channel = PresenterChannel(noted_deck)
        received = []

        def broken(message):
            raise ConnectionError("presenter window closed")

        channel.subscribe(broken)
        channel.subscribe(received.append)
        channel.broadcast(Position(3, 0))
        assert [message.slide_ordinal for message in received] == [3]

    @pytest.mark.asyncio
    async def test_async_listeners_do_not_block(self, noted_deck):
        """Test slow asynchronous listeners are delivered in the background."""
        channel = PresenterChannel(noted_deck)
        gate = asyncio.Event()
        received = []

        async def slow(message):
            await gate.wait()
            received.append(message)

        async def failing(message):
            raise ConnectionError("gone")

        channel.subscribe(slow)
        channel.subscribe(failing)
        channel.broadcast(Position(2, 1))
        assert received == []

        gate.set()
        await channel.drain()
        assert [message.slide_ordinal for message in received] == [2]

    def test_async_listener_without_loop_is_dropped(self, noted_deck):
        """Test coroutine listeners are skipped when no loop is running."""
        channel = PresenterChannel(noted_deck)

        async def listener(message):
            raise AssertionError("should not run")

        channel.subscribe(listener)
        message = channel.broadcast(Position(0, 0))
        assert message.sequence_number == 1

    def test_null_channel(self, noted_deck):
        """Test the no-op channel accepts calls and keeps counting."""
        channel = NullPresenterChannel(noted_deck)
        received = []
        channel.subscribe(received.append)
        assert channel.broadcast(Position(1, 0)).sequence_number == 1
        assert received == []


class TestPresenterView:
    """Tests for last-write-wins on the receiving side."""

    def _message(self, sequence, slide=0, fragment=0):
        return PresenterMessage(
            slide_ordinal=slide,
            fragment_index=fragment,
            mode="present",
            sequence_number=sequence,
        )

    def test_stale_messages_are_discarded(self, noted_deck):
        """Test reordered deliveries cannot move the view backwards."""
        view = PresenterView(noted_deck)
        assert view.receive(self._message(2, slide=2))
        assert not view.receive(self._message(1, slide=1))
        assert not view.receive(self._message(2, slide=1))
        assert view.position == Position(2, 0)
        assert view.discarded == 2

    def test_notes_and_next_slide(self, noted_deck):
        """Test the view exposes the current notes and the upcoming slide."""
        view = PresenterView(noted_deck)
        assert view.position is None
        view.receive(self._message(1, slide=0))
        assert view.notes == "Welcome everyone."
        assert view.next_slide_id == "agenda"
        view.receive(self._message(2, slide=3))
        assert view.next_slide_id is None

    def test_duplicate_delivery_is_harmless(self, noted_deck):
        """Test at-least-once delivery of the same message is ignored."""
        view = PresenterView(noted_deck)
        message = self._message(5, slide=1, fragment=1)
        assert view.receive(message)
        assert not view.receive(message)
        assert view.position == Position(1, 1)
