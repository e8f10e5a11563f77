from fastapi import APIRouter

from .deck import router as deck_router
from .health import router as health_router

__all__ = ["create_api_router"]


def create_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health_router)
    router.include_router(deck_router)
    return router
