from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple

from pydantic import ValidationError

from deckserver.core.errors import InvalidIndex, ManifestError
from deckserver.models.deck_schema import DeckManifest

logger = logging.getLogger(__name__)

DEFAULT_TRANSITION = "slide"
DEFAULT_TRANSITION_DURATION_MS = 500


@dataclass(frozen=True)
class SlideDescriptor:
    id: str
    ordinal: int
    fragment_count: int = 0
    notes: str = ""
    transition: Optional[str] = None
    transition_duration_ms: Optional[int] = None


class Deck:
    """Ordered, immutable slide sequence plus deck-level transition defaults."""

    def __init__(
        self,
        slides: Sequence[SlideDescriptor],
        *,
        title: str = "",
        transition: str = DEFAULT_TRANSITION,
        transition_duration_ms: int = DEFAULT_TRANSITION_DURATION_MS,
    ) -> None:
        if not slides:
            raise ManifestError("A deck needs at least one slide.")
        for expected, slide in enumerate(slides):
            if slide.ordinal != expected:
                raise ManifestError(
                    f"Slide {slide.id!r} has ordinal {slide.ordinal}, expected {expected}."
                )
            if slide.fragment_count < 0:
                raise ManifestError(f"Slide {slide.id!r} has a negative fragment count.")
        self._slides: Tuple[SlideDescriptor, ...] = tuple(slides)
        self.title = title
        self.transition = transition
        self.transition_duration_ms = transition_duration_ms

    @property
    def slides(self) -> Tuple[SlideDescriptor, ...]:
        return self._slides

    def __len__(self) -> int:
        return len(self._slides)

    def __iter__(self) -> Iterator[SlideDescriptor]:
        return iter(self._slides)

    def __getitem__(self, index: int) -> SlideDescriptor:
        if not 0 <= index < len(self._slides):
            raise InvalidIndex(index, len(self._slides))
        return self._slides[index]

    def fragment_count(self, index: int) -> int:
        return self[index].fragment_count

    def transition_for(self, index: int) -> Tuple[str, int]:
        """Return the (name, duration in ms) used when entering slide [index]."""
        slide = self[index]
        name = slide.transition or self.transition
        duration = slide.transition_duration_ms
        if duration is None:
            duration = self.transition_duration_ms
        return name, duration

    @classmethod
    def from_counts(cls, fragment_counts: Sequence[int], **kwargs: Any) -> "Deck":
        slides = [
            SlideDescriptor(id=f"slide-{ordinal}", ordinal=ordinal, fragment_count=count)
            for ordinal, count in enumerate(fragment_counts)
        ]
        return cls(slides, **kwargs)

    @classmethod
    def from_manifest(
        cls,
        data: Dict[str, Any],
        *,
        transition: str = DEFAULT_TRANSITION,
        transition_duration_ms: int = DEFAULT_TRANSITION_DURATION_MS,
    ) -> "Deck":
        try:
            manifest = DeckManifest.model_validate(data)
        except ValidationError as exc:
            raise ManifestError(f"Invalid deck manifest: {exc}") from exc

        seen: set[str] = set()
        slides = []
        for ordinal, entry in enumerate(manifest.slides):
            if entry.id in seen:
                raise ManifestError(f"Duplicate slide id {entry.id!r}.")
            seen.add(entry.id)
            slides.append(
                SlideDescriptor(
                    id=entry.id,
                    ordinal=ordinal,
                    fragment_count=entry.fragments,
                    notes=entry.notes,
                    transition=entry.transition,
                    transition_duration_ms=entry.transition_duration_ms,
                )
            )

        return cls(
            slides,
            title=manifest.title,
            transition=manifest.transition or transition,
            transition_duration_ms=(
                manifest.transition_duration_ms
                if manifest.transition_duration_ms is not None
                else transition_duration_ms
            ),
        )


def placeholder_deck() -> Deck:
    return Deck([SlideDescriptor(id="title", ordinal=0)], title="Untitled deck")


def load_deck(path: Path, **defaults: Any) -> Deck:
    """Load and validate a JSON deck manifest."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ManifestError(f"Cannot read deck manifest {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Deck manifest {path} is not valid JSON: {exc}") from exc

    deck = Deck.from_manifest(data, **defaults)
    logger.info("Loaded deck %r with %d slides from %s", deck.title, len(deck), path)
    return deck
