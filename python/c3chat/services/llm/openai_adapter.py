"""OpenAI chat completions adapter.

- Endpoint: POST https://api.openai.com/v1/chat/completions
- Headers: Authorization: Bearer <key>
- Streaming: SSE lines "data: {...}", terminal "data: [DONE]"
- text = choices[0].message.content (non-stream), choices[0].delta.content (stream)

Mistral serves the same wire format; MistralAdapter only swaps the URL.
"""

import json
from collections.abc import AsyncIterator

import httpx

from c3chat.services.llm.adapter import LLMAdapter
from c3chat.services.llm.errors import ProviderErrorClass, ProviderInvocationError
from c3chat.services.llm.types import LLMChunk, LLMRequest, LLMResponse, ModelInfo

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_MODELS_URL = "https://api.openai.com/v1/models"


class OpenAIAdapter(LLMAdapter):
    """Adapter for OpenAI-compatible chat completion endpoints."""

    provider = "openai"
    chat_url = OPENAI_CHAT_URL
    models_url = OPENAI_MODELS_URL

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: float) -> LLMResponse:
        response = await self._client.post(
            self.chat_url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req, stream=False),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        return self._parse_response(response.json(), response.headers)

    async def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: float
    ) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            self.chat_url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req, stream=True),
            timeout=self._timeout(timeout_s),
        ) as response:
            response.raise_for_status()
            provider_request_id = response.headers.get("x-request-id")

            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue

                data_str = line[6:].strip()
                if data_str == "[DONE]":
                    yield LLMChunk(
                        delta_text="", done=True, provider_request_id=provider_request_id
                    )
                    return

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    continue

                choices = data.get("choices") or []
                if not choices:
                    continue
                delta_text = (choices[0].get("delta") or {}).get("content") or ""
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

        raise ProviderInvocationError(
            self.provider,
            ProviderErrorClass.BAD_RESPONSE,
            "stream ended without [DONE] marker",
        )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest, stream: bool) -> dict:
        body: dict = {
            "model": req.model_name,
            "messages": [{"role": t.role, "content": t.content} for t in req.messages],
            "max_tokens": req.max_tokens,
            "stream": stream,
        }
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    def _parse_response(self, data: dict, headers: httpx.Headers) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            raise ProviderInvocationError(
                self.provider, ProviderErrorClass.BAD_RESPONSE, "response missing choices"
            )

        text = (choices[0].get("message") or {}).get("content")
        if not isinstance(text, str):
            raise ProviderInvocationError(
                self.provider, ProviderErrorClass.BAD_RESPONSE, "response missing message content"
            )

        return LLMResponse(
            text=text,
            provider_request_id=headers.get("x-request-id") or data.get("id"),
        )

    async def list_models(self, *, api_key: str, timeout_s: float) -> list[ModelInfo]:
        response = await self._client.get(
            self.models_url,
            headers=self._build_headers(api_key),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        return [
            ModelInfo(
                id=model["id"],
                name=model["id"],
                description=model.get("description") or self._describe_owner(model),
            )
            for model in response.json().get("data", [])
        ]

    def _describe_owner(self, model: dict) -> str:
        return f"Owned by: {model.get('owned_by') or 'unknown'}"
