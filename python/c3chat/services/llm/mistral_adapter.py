"""Mistral chat completions adapter (OpenAI-compatible wire format)."""

from c3chat.services.llm.openai_adapter import OpenAIAdapter

MISTRAL_CHAT_URL = "https://api.mistral.ai/v1/chat/completions"
MISTRAL_MODELS_URL = "https://api.mistral.ai/v1/models"


class MistralAdapter(OpenAIAdapter):
    provider = "mistral"
    chat_url = MISTRAL_CHAT_URL
    models_url = MISTRAL_MODELS_URL

    def _describe_owner(self, model: dict) -> str:
        return ""
