"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from c3chat.api.routes.chat import router as chat_router
from c3chat.api.routes.explain import router as explain_router
from c3chat.api.routes.health import router as health_router
from c3chat.api.routes.keys import router as keys_router
from c3chat.api.routes.me import router as me_router
from c3chat.api.routes.models import router as models_router
from c3chat.api.routes.search import router as search_router
from c3chat.api.routes.shares import router as shares_router


def create_api_router() -> APIRouter:
    """Create the API router with all routes registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(chat_router)
    api_router.include_router(shares_router)
    api_router.include_router(keys_router)
    api_router.include_router(models_router)
    api_router.include_router(search_router)
    api_router.include_router(explain_router)
    return api_router


__all__ = ["create_api_router"]
