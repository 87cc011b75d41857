"""FastAPI dependencies for route handlers.

Shared resources (provider gateway, search client) are created once in the
application lifespan and read from app.state here.
"""

from fastapi import Request

from c3chat.db.session import get_db, get_session_factory
from c3chat.services.llm import ProviderGateway
from c3chat.services.search import WebSearchClient

__all__ = ["get_db", "get_gateway", "get_search_client", "get_session_factory"]


def get_gateway(request: Request) -> ProviderGateway:
    """The shared ProviderGateway (one httpx.AsyncClient for all providers)."""
    return request.app.state.provider_gateway


def get_search_client(request: Request) -> WebSearchClient:
    return request.app.state.search_client
