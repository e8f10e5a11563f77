from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from deckserver.core.deck import Deck
from deckserver.core.errors import ChannelDeliveryFailure
from deckserver.core.state import Mode, Position

logger = logging.getLogger(__name__)

PresenterCallback = Callable[["PresenterMessage"], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class PresenterMessage:
    slide_ordinal: int
    fragment_index: int
    mode: str
    sequence_number: int
    slide_id: str = ""
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PresenterChannel:
    """
    Fire-and-forget broadcast of the full deck position to presenter views.

    Every message carries a strictly increasing sequence number so receivers
    can drop stale or reordered deliveries. Listener failures are dropped;
    the next position change sends the complete state again.
    """

    def __init__(self, deck: Optional[Deck] = None) -> None:
        self._deck = deck
        self._subscribers: Dict[int, PresenterCallback] = {}
        self._ids = itertools.count(1)
        self._sequence = 0
        self._pending: Set[asyncio.Task] = set()

    @property
    def sequence_number(self) -> int:
        return self._sequence

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: PresenterCallback) -> Callable[[], None]:
        token = next(self._ids)
        self._subscribers[token] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    def message_for(self, position: Position, sequence_number: Optional[int] = None) -> PresenterMessage:
        slide_id = ""
        notes = ""
        if self._deck is not None:
            slide = self._deck[position.slide_index]
            slide_id = slide.id
            notes = slide.notes
        return PresenterMessage(
            slide_ordinal=position.slide_index,
            fragment_index=position.fragment_index,
            mode=Mode(position.mode).value,
            sequence_number=self._sequence if sequence_number is None else sequence_number,
            slide_id=slide_id,
            notes=notes,
        )

    def broadcast(self, position: Position) -> PresenterMessage:
        self._sequence += 1
        message = self.message_for(position, self._sequence)
        for token, callback in list(self._subscribers.items()):
            try:
                result = callback(message)
            except Exception as exc:  # noqa: BLE001 - listeners are untrusted
                self._drop(token, message, exc)
                continue
            if inspect.isawaitable(result):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError as exc:
                    if inspect.iscoroutine(result):
                        result.close()
                    self._drop(token, message, exc)
                    continue
                task = asyncio.ensure_future(result, loop=loop)
                self._pending.add(task)
                task.add_done_callback(
                    lambda done, token=token: self._finish_delivery(done, token, message)
                )
        return message

    def _finish_delivery(self, task: asyncio.Task, token: int, message: PresenterMessage) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._drop(token, message, exc)

    def _drop(self, token: int, message: PresenterMessage, exc: BaseException) -> None:
        failure = ChannelDeliveryFailure(
            f"Listener {token} missed message {message.sequence_number}: {exc}"
        )
        logger.debug("%s", failure)

    async def drain(self) -> None:
        """Wait for in-flight asynchronous deliveries."""
        if self._pending:
            await asyncio.wait(set(self._pending))

    def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._subscribers.clear()


class NullPresenterChannel(PresenterChannel):
    """Channel for environments without a secondary view."""

    def subscribe(self, callback: PresenterCallback) -> Callable[[], None]:
        return lambda: None

    def broadcast(self, position: Position) -> PresenterMessage:
        self._sequence += 1
        return self.message_for(position, self._sequence)


class PresenterView:
    """Receiving side: applies messages last-write-wins by sequence number."""

    def __init__(self, deck: Optional[Deck] = None) -> None:
        self._deck = deck
        self.last_sequence = 0
        self.message: Optional[PresenterMessage] = None
        self.discarded = 0

    def receive(self, message: PresenterMessage) -> bool:
        if message.sequence_number <= self.last_sequence:
            self.discarded += 1
            return False
        self.last_sequence = message.sequence_number
        self.message = message
        return True

    @property
    def position(self) -> Optional[Position]:
        if self.message is None:
            return None
        return Position(self.message.slide_ordinal, self.message.fragment_index, Mode(self.message.mode))

    @property
    def notes(self) -> str:
        if self.message is None:
            return ""
        if self.message.notes or self._deck is None:
            return self.message.notes
        return self._deck[self.message.slide_ordinal].notes

    @property
    def next_slide_id(self) -> Optional[str]:
        if self.message is None or self._deck is None:
            return None
        following = self.message.slide_ordinal + 1
        if following >= len(self._deck):
            return None
        return self._deck[following].id
