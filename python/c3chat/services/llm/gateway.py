"""Provider gateway: registry lookup, credential resolution, error normalization.

`ProviderGateway.resolve(provider, model_id, credential)` returns a
ChatCallable bound to one adapter, model and key. The callable is the only
thing the orchestrator talks to:

- `await callable.invoke(turns)` -> full reply text
- `async for delta in callable.stream(turns)` -> incremental text

Every failure surfaces as ProviderInvocationError. No retries happen here.
Observability: llm.request.started / finished / failed / cancelled, all
through safe_kv (never prompt text or keys).
"""

import asyncio
import time
from collections.abc import AsyncIterator, Iterable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Literal

import httpx

from c3chat.config import Settings
from c3chat.logging import get_logger
from c3chat.services.llm.adapter import LLMAdapter
from c3chat.services.llm.anthropic_adapter import AnthropicAdapter
from c3chat.services.llm.errors import (
    NoCredentialError,
    ProviderErrorClass,
    ProviderInvocationError,
    UnsupportedProviderError,
    classify_provider_error,
)
from c3chat.services.llm.gemini_adapter import GeminiAdapter
from c3chat.services.llm.mistral_adapter import MistralAdapter
from c3chat.services.llm.openai_adapter import OpenAIAdapter
from c3chat.services.llm.types import LLMRequest, ModelInfo, Turn
from c3chat.services.redact import safe_kv

logger = get_logger(__name__)

KeySource = Literal["user", "server"]

PROVIDERS = ("openai", "anthropic", "gemini", "mistral")

PROVIDER_ALIASES = {
    "openai": "openai",
    "anthropic": "anthropic",
    "claude": "anthropic",
    "gemini": "gemini",
    "google": "gemini",
    "mistral": "mistral",
}

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-opus-20240229",
    "gemini": "gemini-2.0-flash-lite",
    "mistral": "mistral-large-latest",
}

DEFAULT_TEMPERATURE = 0.5
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT_S = 60.0
MODEL_LIST_TIMEOUT_S = 10.0


def canonical_provider(name: str | None) -> str | None:
    """Map a provider name or alias (any case) to its canonical name."""
    if not name:
        return None
    return PROVIDER_ALIASES.get(name.strip().lower())


def _safe_parse_json(response: httpx.Response) -> dict | None:
    try:
        data = response.json()
    except (httpx.ResponseNotRead, ValueError):
        return None
    return data if isinstance(data, dict) else None


def to_invocation_error(provider: str, exc: Exception) -> ProviderInvocationError:
    """Normalize any exception raised while talking to a provider."""
    if isinstance(exc, ProviderInvocationError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return ProviderInvocationError(provider, ProviderErrorClass.TIMEOUT, "request timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        error_class = classify_provider_error(provider, status, _safe_parse_json(exc.response))
        return ProviderInvocationError(provider, error_class, f"provider returned HTTP {status}")
    if isinstance(exc, httpx.HTTPError):
        return ProviderInvocationError(
            provider, ProviderErrorClass.PROVIDER_DOWN, f"network error: {type(exc).__name__}"
        )
    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return ProviderInvocationError(
            provider, ProviderErrorClass.BAD_RESPONSE, f"malformed payload: {type(exc).__name__}"
        )
    return ProviderInvocationError(
        provider, ProviderErrorClass.PROVIDER_DOWN, f"unexpected error: {type(exc).__name__}"
    )


@dataclass(frozen=True)
class ChatCallable:
    """One provider + model + key, ready to be invoked."""

    adapter: LLMAdapter
    model_name: str
    key_source: KeySource
    api_key: str = field(repr=False)
    timeout_s: float = DEFAULT_TIMEOUT_S
    temperature: float | None = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    @property
    def provider(self) -> str:
        return self.adapter.provider

    def _request(self, turns: list[Turn]) -> LLMRequest:
        return LLMRequest(
            model_name=self.model_name,
            messages=list(turns),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

    def _log_fields(self, turns: list[Turn], streaming: bool) -> dict:
        return {
            "provider": self.provider,
            "model_name": self.model_name,
            "key_source": self.key_source,
            "streaming": streaming,
            "message_chars": sum(len(t.content) for t in turns),
        }

    def _fail(self, base: dict, start: float, exc: Exception) -> ProviderInvocationError:
        error = to_invocation_error(self.provider, exc)
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error.error_class.value,
                error_detail=error.detail,
                latency_ms=int((time.monotonic() - start) * 1000),
            ),
        )
        return error

    async def invoke(self, turns: list[Turn]) -> str:
        """Buffered generation: returns the complete reply text."""
        base = self._log_fields(turns, streaming=False)
        logger.info("llm.request.started", **safe_kv(**base))
        start = time.monotonic()

        try:
            response = await self.adapter.generate(
                self._request(turns), api_key=self.api_key, timeout_s=self.timeout_s
            )
        except Exception as e:
            raise self._fail(base, start, e) from e

        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=int((time.monotonic() - start) * 1000),
                reply_chars=len(response.text),
                provider_request_id=response.provider_request_id,
            ),
        )
        return response.text

    async def stream(self, turns: list[Turn]) -> AsyncIterator[str]:
        """Streaming generation: yields text deltas until the provider finishes.

        Closing this iterator (client disconnect) closes the upstream stream.
        """
        base = self._log_fields(turns, streaming=True)
        logger.info("llm.request.started", **safe_kv(**base))
        start = time.monotonic()
        reply_chars = 0

        try:
            async with aclosing(
                self.adapter.generate_stream(
                    self._request(turns), api_key=self.api_key, timeout_s=self.timeout_s
                )
            ) as chunks:
                async for chunk in chunks:
                    if chunk.done:
                        logger.info(
                            "llm.request.finished",
                            **safe_kv(
                                **base,
                                outcome="success",
                                latency_ms=int((time.monotonic() - start) * 1000),
                                reply_chars=reply_chars,
                                provider_request_id=chunk.provider_request_id,
                            ),
                        )
                        return
                    if chunk.delta_text:
                        reply_chars += len(chunk.delta_text)
                        yield chunk.delta_text
        except (GeneratorExit, asyncio.CancelledError):
            logger.info(
                "llm.request.cancelled",
                **safe_kv(**base, latency_ms=int((time.monotonic() - start) * 1000)),
            )
            raise
        except Exception as e:
            raise self._fail(base, start, e) from e

        # Adapters raise before finishing without a terminal chunk.
        raise self._fail(
            base,
            start,
            ProviderInvocationError(
                self.provider,
                ProviderErrorClass.BAD_RESPONSE,
                "stream ended without terminal chunk",
            ),
        )


class ProviderGateway:
    """Registry of provider adapters sharing one httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        server_keys: dict[str, str | None] | None = None,
        enabled: Iterable[str] = PROVIDERS,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self._client = client
        self._server_keys = {p: k for p, k in (server_keys or {}).items() if k}
        self._enabled = frozenset(enabled)
        self._timeout_s = timeout_s
        self._adapters: dict[str, LLMAdapter] = {
            "openai": OpenAIAdapter(client),
            "anthropic": AnthropicAdapter(client),
            "gemini": GeminiAdapter(client),
            "mistral": MistralAdapter(client),
        }

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "ProviderGateway":
        flags = {
            "openai": settings.enable_openai,
            "anthropic": settings.enable_anthropic,
            "gemini": settings.enable_gemini,
            "mistral": settings.enable_mistral,
        }
        return cls(
            client,
            server_keys={p: settings.server_key_for(p) for p in PROVIDERS},
            enabled=[p for p, on in flags.items() if on],
            timeout_s=settings.llm_timeout_s,
        )

    @property
    def enabled_providers(self) -> list[str]:
        return [p for p in PROVIDERS if p in self._enabled]

    def normalize_provider(self, name: str | None) -> str:
        """Canonical name of an enabled provider.

        Raises:
            UnsupportedProviderError: Unknown or disabled provider.
        """
        provider = canonical_provider(name)
        if provider is None or provider not in self._enabled:
            raise UnsupportedProviderError(str(name))
        return provider

    def has_server_key(self, provider: str) -> bool:
        return provider in self._server_keys

    def resolve(
        self,
        provider: str,
        model_id: str | None = None,
        credential: str | None = None,
    ) -> ChatCallable:
        """Bind provider, model and key into a ChatCallable.

        The caller's own credential wins over the server-wide key.

        Raises:
            UnsupportedProviderError: Unknown or disabled provider.
            NoCredentialError: No user credential and no server key.
        """
        provider = self.normalize_provider(provider)

        if credential:
            api_key, key_source = credential, "user"
        elif provider in self._server_keys:
            api_key, key_source = self._server_keys[provider], "server"
        else:
            raise NoCredentialError(provider)

        return ChatCallable(
            adapter=self._adapters[provider],
            model_name=model_id or DEFAULT_MODELS[provider],
            key_source=key_source,
            api_key=api_key,
            timeout_s=self._timeout_s,
        )

    async def list_models(self, provider: str, api_key: str) -> list[ModelInfo]:
        """List a provider's models.

        Raises:
            ProviderInvocationError: The listing call failed.
        """
        provider = self.normalize_provider(provider)
        try:
            return await self._adapters[provider].list_models(
                api_key=api_key, timeout_s=MODEL_LIST_TIMEOUT_S
            )
        except Exception as e:
            raise to_invocation_error(provider, e) from e
