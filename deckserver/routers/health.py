from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/")
async def healthcheck(request: Request) -> dict[str, object]:
    session = request.app.state.session
    return {
        "message": "Deck navigator is running",
        "deck": session.deck.title,
        "slides": len(session.deck),
        "location": session.location,
    }
