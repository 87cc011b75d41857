"""Provider gateway for multi-provider LLM chat.

Unified interface over OpenAI, Anthropic, Gemini and Mistral:

- One adapter per provider (async, httpx, no retries, no DB access)
- Registry lookup by provider name or alias
- Credential precedence: caller's own key, then the server-wide key
- Error normalization into ProviderInvocationError

Usage:
    from c3chat.services.llm import ProviderGateway, Turn

    gateway = ProviderGateway(httpx_client, server_keys={"openai": "sk-..."})
    chat = gateway.resolve("openai", "gpt-4o")
    reply = await chat.invoke([Turn(role="user", content="Hello!")])
"""

from c3chat.services.llm.adapter import LLMAdapter
from c3chat.services.llm.errors import (
    NoCredentialError,
    ProviderErrorClass,
    ProviderInvocationError,
    UnsupportedProviderError,
    classify_provider_error,
)
from c3chat.services.llm.gateway import (
    DEFAULT_MODELS,
    PROVIDERS,
    ChatCallable,
    ProviderGateway,
    canonical_provider,
)
from c3chat.services.llm.types import LLMChunk, LLMRequest, LLMResponse, ModelInfo, Turn

__all__ = [
    "ChatCallable",
    "DEFAULT_MODELS",
    "LLMAdapter",
    "LLMChunk",
    "LLMRequest",
    "LLMResponse",
    "ModelInfo",
    "NoCredentialError",
    "PROVIDERS",
    "ProviderErrorClass",
    "ProviderGateway",
    "ProviderInvocationError",
    "Turn",
    "UnsupportedProviderError",
    "canonical_provider",
    "classify_provider_error",
]
