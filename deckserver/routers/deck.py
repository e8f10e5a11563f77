from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect, status

from deckserver.core.commands import (
    GotoSlide,
    NavigationCommand,
    Next,
    Prev,
    ToggleNotes,
    ToggleOverview,
    command_name,
)
from deckserver.core.dispatcher import ClickEvent, InputEvent, KeyEvent, LocationEvent, SwipeEvent
from deckserver.core.errors import InvalidIndex, ParseFailure
from deckserver.core.location import encode
from deckserver.core.orchestrator import TransitionRecord
from deckserver.core.presenter import PresenterMessage
from deckserver.core.session import DeckSession
from deckserver.models.deck_schema import (
    CommandRequest,
    DeckSummary,
    HistoryResponse,
    InputEventRequest,
    InputEventResponse,
    LocationRequest,
    LocationResponse,
    NotesResponse,
    PositionResponse,
    SlideSummary,
    TransitionSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deck", tags=["deck"])


def get_session(request: Request) -> DeckSession:
    return request.app.state.session


def _transition_summary(record: Optional[TransitionRecord]) -> Optional[TransitionSummary]:
    if record is None:
        return None
    return TransitionSummary(
        from_slide_index=record.from_slide_index,
        to_slide_index=record.to_slide_index,
        direction=record.direction.value,
        transition=record.transition,
        cancelled=record.cancelled,
    )


def _position_response(
    session: DeckSession, record: Optional[TransitionRecord] = None
) -> PositionResponse:
    position = session.position
    slide = session.deck[position.slide_index]
    return PositionResponse(
        slide_index=position.slide_index,
        slide_id=slide.id,
        fragment_index=position.fragment_index,
        fragment_count=slide.fragment_count,
        mode=position.mode.value,
        location=encode(position),
        step_index=session.store.step_index(),
        total_steps=session.store.tracker.total_steps,
        transitioning=session.orchestrator.active is not None,
        transition=_transition_summary(record),
    )


def _to_command(payload: CommandRequest) -> NavigationCommand:
    if payload.command == "goto":
        if payload.index is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="The goto command requires an index.",
            )
        return GotoSlide(payload.index, fragment=payload.fragment)
    return {
        "next": Next,
        "prev": Prev,
        "toggle_overview": ToggleOverview,
        "toggle_notes": ToggleNotes,
    }[payload.command]()


def _to_event(payload: InputEventRequest) -> Optional[InputEvent]:
    if payload.kind == "key" and payload.key is not None:
        return KeyEvent(payload.key, shift=payload.shift)
    if payload.kind == "swipe" and payload.direction is not None:
        return SwipeEvent(payload.direction)
    if payload.kind == "click" and payload.x is not None:
        return ClickEvent(payload.x, payload.y if payload.y is not None else 0.5)
    if payload.kind == "location" and payload.location is not None:
        return LocationEvent(payload.location)
    return None


def _submit(session: DeckSession, command: NavigationCommand) -> Optional[TransitionRecord]:
    try:
        return session.navigate(command)
    except InvalidIndex as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


@router.get("", response_model=DeckSummary, summary="Describe the loaded deck.")
async def describe_deck(session: DeckSession = Depends(get_session)) -> DeckSummary:
    deck = session.deck
    return DeckSummary(
        title=deck.title,
        transition=deck.transition,
        transition_duration_ms=deck.transition_duration_ms,
        total_steps=session.store.tracker.total_steps,
        slides=[
            SlideSummary(
                id=slide.id,
                ordinal=slide.ordinal,
                fragment_count=slide.fragment_count,
                has_notes=bool(slide.notes),
            )
            for slide in deck
        ],
    )


@router.get("/position", response_model=PositionResponse, summary="Current slide, fragment and mode.")
async def current_position(session: DeckSession = Depends(get_session)) -> PositionResponse:
    return _position_response(session, session.orchestrator.active)


@router.post(
    "/commands",
    response_model=PositionResponse,
    summary="Apply a navigation command.",
)
async def apply_command(
    payload: CommandRequest,
    settle: bool = False,
    session: DeckSession = Depends(get_session),
) -> PositionResponse:
    record = _submit(session, _to_command(payload))
    if settle:
        await session.orchestrator.settle()
    return _position_response(session, record)


@router.post(
    "/input",
    response_model=InputEventResponse,
    summary="Normalize a raw input event and apply the bound command, if any.",
)
async def handle_input(
    payload: InputEventRequest,
    settle: bool = False,
    session: DeckSession = Depends(get_session),
) -> InputEventResponse:
    event = _to_event(payload)
    command = session.dispatcher.normalize(event) if event is not None else None
    if command is None:
        return InputEventResponse(handled=False, position=_position_response(session))

    record = _submit(session, command)
    if settle:
        await session.orchestrator.settle()
    return InputEventResponse(
        handled=True,
        command=command_name(command),
        position=_position_response(session, record),
    )


@router.get("/location", response_model=LocationResponse, summary="Encoded location of the current position.")
async def current_location(session: DeckSession = Depends(get_session)) -> LocationResponse:
    return LocationResponse(location=session.location)


@router.post("/location", response_model=PositionResponse, summary="Navigate to an encoded location.")
async def navigate_to_location(
    payload: LocationRequest,
    settle: bool = False,
    session: DeckSession = Depends(get_session),
) -> PositionResponse:
    try:
        record = session.go_to_location(payload.location)
    except ParseFailure as exc:
        logger.warning("Rejected location %r: %s", payload.location, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except InvalidIndex as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    if settle:
        await session.orchestrator.settle()
    return _position_response(session, record)


@router.get("/history", response_model=HistoryResponse, summary="Navigable location history.")
async def location_history(session: DeckSession = Depends(get_session)) -> HistoryResponse:
    return HistoryResponse(entries=session.history.entries, cursor=session.history.cursor)


@router.post("/history/back", response_model=PositionResponse, summary="Step back through the history.")
async def history_back(
    settle: bool = False, session: DeckSession = Depends(get_session)
) -> PositionResponse:
    record = session.history_back()
    if settle:
        await session.orchestrator.settle()
    return _position_response(session, record)


@router.post("/history/forward", response_model=PositionResponse, summary="Step forward through the history.")
async def history_forward(
    settle: bool = False, session: DeckSession = Depends(get_session)
) -> PositionResponse:
    record = session.history_forward()
    if settle:
        await session.orchestrator.settle()
    return _position_response(session, record)


@router.get("/notes", response_model=NotesResponse, summary="Presenter view data for the current slide.")
async def presenter_notes(session: DeckSession = Depends(get_session)) -> NotesResponse:
    position = session.position
    slide = session.deck[position.slide_index]
    following = position.slide_index + 1
    return NotesResponse(
        slide_id=slide.id,
        slide_ordinal=slide.ordinal,
        fragment_index=position.fragment_index,
        mode=position.mode.value,
        notes=slide.notes,
        next_slide_id=session.deck[following].id if following < len(session.deck) else None,
    )


@router.websocket("/presenter")
async def presenter_channel(websocket: WebSocket) -> None:
    session: DeckSession = websocket.app.state.session
    await websocket.accept()

    async def forward(message: PresenterMessage) -> None:
        await websocket.send_json(message.to_dict())

    unsubscribe = session.channel.subscribe(forward)
    try:
        await websocket.send_json(session.channel.message_for(session.position).to_dict())
        while True:
            # Presenter views only listen; inbound frames are ignored.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Presenter view disconnected")
    finally:
        unsubscribe()
