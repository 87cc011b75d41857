"""Shared type definitions for the provider gateway.

Streaming invariants:
- Adapters yield chunks with done=False carrying new text
- Exactly ONE terminal chunk with done=True
- If a provider stream ends without its terminal marker the adapter raises
"""

from dataclasses import dataclass
from typing import Literal

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn."""

    role: Role
    content: str


@dataclass(frozen=True)
class LLMRequest:
    """Request to a provider adapter.

    Attributes:
        model_name: The provider's model identifier (e.g. "gpt-4o")
        messages: Turns in order; system turns may appear anywhere
        max_tokens: Maximum tokens in the completion
        temperature: Sampling temperature, None uses provider default
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None


@dataclass(frozen=True)
class LLMResponse:
    """Complete response from a non-streaming call."""

    text: str
    provider_request_id: str | None = None


@dataclass(frozen=True)
class LLMChunk:
    """Single chunk from a streaming response.

    delta_text is the new text since the previous chunk (may be empty on
    the terminal chunk).
    """

    delta_text: str
    done: bool
    provider_request_id: str | None = None


@dataclass(frozen=True)
class ModelInfo:
    """A selectable model as reported by (or known for) a provider."""

    id: str
    name: str
    description: str = ""
