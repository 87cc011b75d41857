"""Anthropic messages adapter.

- Endpoint: POST https://api.anthropic.com/v1/messages
- Headers: x-api-key, anthropic-version: 2023-06-01
- System turns are joined into the top-level "system" field
- Streaming events: message_start (id), content_block_delta (text_delta),
  message_stop (terminal)
"""

import json
from collections.abc import AsyncIterator

from c3chat.services.llm.adapter import LLMAdapter
from c3chat.services.llm.errors import ProviderErrorClass, ProviderInvocationError
from c3chat.services.llm.types import LLMChunk, LLMRequest, LLMResponse, ModelInfo

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"

# No listing call is made; these are the models offered for selection.
ANTHROPIC_MODELS = (
    ModelInfo("claude-3-opus-20240229", "Claude 3 Opus", "Highest quality Claude model"),
    ModelInfo("claude-3-sonnet-20240229", "Claude 3 Sonnet", "Fast and balanced Claude model"),
    ModelInfo("claude-3-haiku-20240307", "Claude 3 Haiku", "Smallest, fastest Claude model"),
)


class AnthropicAdapter(LLMAdapter):
    provider = "anthropic"

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: float) -> LLMResponse:
        response = await self._client.post(
            ANTHROPIC_MESSAGES_URL,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req, stream=False),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        return self._parse_response(response.json())

    async def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: float
    ) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            ANTHROPIC_MESSAGES_URL,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req, stream=True),
            timeout=self._timeout(timeout_s),
        ) as response:
            response.raise_for_status()
            provider_request_id: str | None = None

            async for line in response.aiter_lines():
                # "event: <type>" lines are redundant with data.type
                if not line.startswith("data: "):
                    continue

                try:
                    data = json.loads(line[6:])
                except json.JSONDecodeError:
                    continue

                event_type = data.get("type", "")

                if event_type == "message_start":
                    provider_request_id = (data.get("message") or {}).get("id")
                elif event_type == "content_block_delta":
                    delta = data.get("delta") or {}
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield LLMChunk(delta_text=delta["text"], done=False)
                elif event_type == "message_stop":
                    yield LLMChunk(
                        delta_text="", done=True, provider_request_id=provider_request_id
                    )
                    return
                elif event_type == "error":
                    error = data.get("error") or {}
                    raise ProviderInvocationError(
                        self.provider,
                        ProviderErrorClass.PROVIDER_DOWN,
                        f"stream error event: {error.get('type', 'unknown')}",
                    )

        raise ProviderInvocationError(
            self.provider,
            ProviderErrorClass.BAD_RESPONSE,
            "stream ended without message_stop event",
        )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest, stream: bool) -> dict:
        system_parts = [t.content for t in req.messages if t.role == "system"]
        body: dict = {
            "model": req.model_name,
            "max_tokens": req.max_tokens,
            "messages": [
                {"role": t.role, "content": t.content}
                for t in req.messages
                if t.role != "system"
            ],
            "stream": stream,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    def _parse_response(self, data: dict) -> LLMResponse:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ProviderInvocationError(
                self.provider, ProviderErrorClass.BAD_RESPONSE, "response missing content"
            )

        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        return LLMResponse(text=text, provider_request_id=data.get("id"))

    async def list_models(self, *, api_key: str, timeout_s: float) -> list[ModelInfo]:
        return list(ANTHROPIC_MODELS)
