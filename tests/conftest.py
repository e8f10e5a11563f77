"""
Pytest configuration and shared fixtures.
"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Importing deckserver.main builds the default app; keep it off the real storage.
_DEFAULT_TMP = tempfile.mkdtemp(prefix="deck-navigator-")
os.environ.setdefault("DECK_PERSIST_HISTORY", "0")
os.environ.setdefault("DECK_LOG_DIR", str(Path(_DEFAULT_TMP) / "logs"))
os.environ.setdefault("DECK_STORAGE_DIR", str(Path(_DEFAULT_TMP) / "storage"))

from deckserver.core.deck import Deck, SlideDescriptor  # noqa: E402
from deckserver.core.orchestrator import FrameScheduler  # noqa: E402


class StepScheduler(FrameScheduler):
    """Frame ticks that only yield to the event loop, so tests run instantly."""

    def __init__(self) -> None:
        super().__init__(frame_rate=10)
        self.ticks = 0

    async def next_frame(self) -> None:
        self.ticks += 1
        await asyncio.sleep(0)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def small_deck() -> Deck:
    """Three slides with fragment counts [0, 2, 1]."""
    return Deck.from_counts([0, 2, 1])


@pytest.fixture
def noted_deck() -> Deck:
    slides = [
        SlideDescriptor(id="title", ordinal=0, notes="Welcome everyone."),
        SlideDescriptor(id="agenda", ordinal=1, fragment_count=2, notes="Three parts."),
        SlideDescriptor(id="demo", ordinal=2, fragment_count=1, transition="fade", transition_duration_ms=200),
        SlideDescriptor(id="questions", ordinal=3),
    ]
    return Deck(slides, title="Talk")


@pytest.fixture
def step_scheduler() -> StepScheduler:
    return StepScheduler()


@pytest.fixture
def manifest_data() -> dict:
    return {
        "title": "Sample talk",
        "transition": "slide",
        "transition_duration_ms": 500,
        "slides": [
            {"id": "intro", "notes": "Say hello."},
            {"id": "body", "fragments": 2},
            {"id": "outro", "fragments": 1, "transition": "fade", "transition_duration_ms": 250},
        ],
    }
