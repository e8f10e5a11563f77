from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SlideManifest(BaseModel):
    id: str = Field(min_length=1)
    fragments: int = Field(default=0, ge=0)
    notes: str = ""
    transition: Optional[str] = None
    transition_duration_ms: Optional[int] = Field(default=None, ge=0)

    class Config:
        populate_by_name = True
        extra = "ignore"


class DeckManifest(BaseModel):
    title: str = ""
    transition: Optional[str] = None
    transition_duration_ms: Optional[int] = Field(default=None, ge=0)
    slides: List[SlideManifest] = Field(min_length=1)

    class Config:
        populate_by_name = True
        extra = "ignore"


class BindingManifest(BaseModel):
    keys: dict[str, str] = Field(default_factory=dict)
    swipes: dict[str, str] = Field(default_factory=dict)
    click_zones: dict[str, str] = Field(default_factory=dict)


class SlideSummary(BaseModel):
    id: str
    ordinal: int
    fragment_count: int
    has_notes: bool = False


class DeckSummary(BaseModel):
    title: str
    transition: str
    transition_duration_ms: int
    total_steps: int
    slides: List[SlideSummary]


class TransitionSummary(BaseModel):
    from_slide_index: int
    to_slide_index: int
    direction: str
    transition: str
    cancelled: bool


class PositionResponse(BaseModel):
    slide_index: int
    slide_id: str
    fragment_index: int
    fragment_count: int
    mode: str
    location: str
    step_index: int
    total_steps: int
    transitioning: bool = False
    transition: Optional[TransitionSummary] = None


class CommandRequest(BaseModel):
    command: Literal["next", "prev", "goto", "toggle_overview", "toggle_notes"]
    index: Optional[int] = None
    fragment: Optional[int] = Field(default=None, ge=0)


class InputEventRequest(BaseModel):
    kind: Literal["key", "swipe", "click", "location"]
    key: Optional[str] = None
    shift: bool = False
    direction: Optional[str] = None
    x: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    y: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    location: Optional[str] = None


class InputEventResponse(BaseModel):
    handled: bool
    command: Optional[str] = None
    position: PositionResponse


class LocationRequest(BaseModel):
    location: str


class LocationResponse(BaseModel):
    location: str


class HistoryResponse(BaseModel):
    entries: List[str]
    cursor: int


class NotesResponse(BaseModel):
    slide_id: str
    slide_ordinal: int
    fragment_index: int
    mode: str
    notes: str
    next_slide_id: Optional[str] = None
