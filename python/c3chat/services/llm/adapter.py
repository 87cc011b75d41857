"""Abstract base class for provider adapters.

Adapters translate Turns into one provider's wire format and parse its
responses. They never retry, never touch the database and never log bodies;
raw httpx errors bubble up to the gateway for normalization.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from c3chat.services.llm.types import LLMChunk, LLMRequest, LLMResponse, ModelInfo

CONNECT_TIMEOUT_S = 10.0


class LLMAdapter(ABC):
    """One implementation per provider."""

    provider: str

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @staticmethod
    def _timeout(timeout_s: float) -> httpx.Timeout:
        return httpx.Timeout(timeout_s, connect=CONNECT_TIMEOUT_S)

    @abstractmethod
    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: float,
    ) -> LLMResponse:
        """Non-streaming generation. Returns the complete response.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            ProviderInvocationError: On a malformed payload.
        """

    @abstractmethod
    async def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: float,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming generation. Yields chunks until done=True.

        Closing the iterator early closes the upstream connection.
        """
        yield  # type: ignore

    @abstractmethod
    async def list_models(self, *, api_key: str, timeout_s: float) -> list[ModelInfo]:
        """Models this provider offers to the given key."""
