"""Google Gemini adapter.

- Endpoints: {base}/{model}:generateContent and
  {base}/{model}:streamGenerateContent?alt=sse
- Header: x-goog-api-key (never a query param)
- System turns go to systemInstruction; "assistant" maps to role "model"
- Streaming terminal: a candidate with finishReason set (normally STOP)
"""

import json
from collections.abc import AsyncIterator

from c3chat.services.llm.adapter import LLMAdapter
from c3chat.services.llm.errors import ProviderErrorClass, ProviderInvocationError
from c3chat.services.llm.types import LLMChunk, LLMRequest, LLMResponse, ModelInfo, Turn

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def _candidate_text(candidate: dict) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiAdapter(LLMAdapter):
    provider = "gemini"

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: float) -> LLMResponse:
        response = await self._client.post(
            f"{GEMINI_BASE_URL}/{req.model_name}:generateContent",
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        return self._parse_response(response.json())

    async def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: float
    ) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            f"{GEMINI_BASE_URL}/{req.model_name}:streamGenerateContent?alt=sse",
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=self._timeout(timeout_s),
        ) as response:
            response.raise_for_status()

            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue

                try:
                    data = json.loads(line[6:])
                except json.JSONDecodeError:
                    continue

                candidates = data.get("candidates") or []
                if not candidates:
                    continue

                delta_text = _candidate_text(candidates[0])
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

                if candidates[0].get("finishReason"):
                    yield LLMChunk(delta_text="", done=True)
                    return

        raise ProviderInvocationError(
            self.provider,
            ProviderErrorClass.BAD_RESPONSE,
            "stream ended without finishReason",
        )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        system_parts = [t.content for t in req.messages if t.role == "system"]
        body: dict = {
            "contents": [self._turn_to_content(t) for t in req.messages if t.role != "system"],
            "generationConfig": {"maxOutputTokens": req.max_tokens},
        }
        if system_parts:
            body["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        if req.temperature is not None:
            body["generationConfig"]["temperature"] = req.temperature
        return body

    def _turn_to_content(self, turn: Turn) -> dict:
        role = "model" if turn.role == "assistant" else turn.role
        return {"role": role, "parts": [{"text": turn.content}]}

    def _parse_response(self, data: dict) -> LLMResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderInvocationError(
                self.provider, ProviderErrorClass.BAD_RESPONSE, "response missing candidates"
            )
        return LLMResponse(text=_candidate_text(candidates[0]))

    async def list_models(self, *, api_key: str, timeout_s: float) -> list[ModelInfo]:
        response = await self._client.get(
            GEMINI_BASE_URL,
            headers=self._build_headers(api_key),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        models = []
        for model in response.json().get("models", []):
            # "models/gemini-2.0-flash" -> "gemini-2.0-flash", usable in the chat URL
            model_id = model["name"].removeprefix("models/")
            models.append(
                ModelInfo(
                    id=model_id,
                    name=model.get("displayName") or model_id,
                    description=model.get("description") or "",
                )
            )
        return models
