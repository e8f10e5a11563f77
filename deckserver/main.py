from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from deckserver.core.config import EngineConfig
from deckserver.core.deck import Deck
from deckserver.core.render import RenderCollaborator
from deckserver.core.session import DeckSession
from deckserver.routers import create_api_router

logger = logging.getLogger(__name__)


def configure_logging(config: EngineConfig) -> None:
    config.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = config.log_dir / "deck_navigator.log"
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file, mode="a"),
            logging.StreamHandler(),
        ],
        force=True,
    )


def create_app(
    config: Optional[EngineConfig] = None,
    *,
    deck: Optional[Deck] = None,
    renderer: Optional[RenderCollaborator] = None,
) -> FastAPI:
    config = config or EngineConfig.from_env()
    session = DeckSession.from_config(config, deck=deck, renderer=renderer)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        logger.info("Shutting down deck session at %s", session.location)
        session.close()

    app = FastAPI(title="Deck Navigator", lifespan=lifespan)
    app.state.session = session
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> Any:
        logger.error("Validation error: %s %s %s", request.method, request.url, exc.errors())
        return await request_validation_exception_handler(request, exc)

    app.include_router(create_api_router())

    return app


def build_default_app() -> FastAPI:
    config = EngineConfig.from_env()
    configure_logging(config)
    return create_app(config)


app = build_default_app()
