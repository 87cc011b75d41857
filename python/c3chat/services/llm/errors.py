"""Provider error taxonomy and normalization.

Every upstream failure (HTTP status, timeout, network, malformed payload)
becomes a ProviderInvocationError. Its `message` is a fixed, user-safe
sentence picked by error class; the upstream detail stays in `detail` and
is only ever logged server-side.
"""

from enum import Enum

from c3chat.errors import ApiError, ApiErrorCode
from c3chat.logging import get_logger

logger = get_logger(__name__)


class ProviderErrorClass(str, Enum):
    """Normalized provider failure classes."""

    INVALID_KEY = "invalid_key"
    RATE_LIMIT = "rate_limit"
    CONTEXT_TOO_LARGE = "context_too_large"
    TIMEOUT = "timeout"
    PROVIDER_DOWN = "provider_down"
    MODEL_NOT_AVAILABLE = "model_not_available"
    BAD_RESPONSE = "bad_response"


USER_MESSAGES: dict[ProviderErrorClass, str] = {
    ProviderErrorClass.INVALID_KEY: "The AI provider rejected the API key.",
    ProviderErrorClass.RATE_LIMIT: (
        "The AI provider is rate limiting requests. Please try again shortly."
    ),
    ProviderErrorClass.CONTEXT_TOO_LARGE: "The conversation is too long for this model.",
    ProviderErrorClass.TIMEOUT: "The AI provider took too long to respond.",
    ProviderErrorClass.PROVIDER_DOWN: "The AI provider is unavailable. Please try again.",
    ProviderErrorClass.MODEL_NOT_AVAILABLE: "The selected model is not available.",
    ProviderErrorClass.BAD_RESPONSE: "The AI provider returned an unexpected response.",
}


class UnsupportedProviderError(ApiError):
    """Provider name is not one of the known (and enabled) providers."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(ApiErrorCode.E_UNSUPPORTED_PROVIDER, f"Unsupported provider: {provider}")


class NoCredentialError(ApiError):
    """Neither the caller nor the server has a key for the provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            ApiErrorCode.E_NO_CREDENTIAL,
            f"No API key available for {provider}. Please add your own API key.",
        )


class ProviderInvocationError(ApiError):
    """Any failure talking to an upstream provider.

    Attributes:
        provider: Canonical provider name
        error_class: Normalized failure class
        detail: Opaque upstream description, for logs only
    """

    def __init__(self, provider: str, error_class: ProviderErrorClass, detail: str):
        self.provider = provider
        self.error_class = error_class
        self.detail = detail
        super().__init__(ApiErrorCode.E_PROVIDER_INVOCATION, USER_MESSAGES[error_class])


def classify_provider_error(
    provider: str,
    status_code: int | None,
    json_body: dict | None,
) -> ProviderErrorClass:
    """Map an upstream HTTP failure to a ProviderErrorClass."""
    if status_code is None:
        return ProviderErrorClass.PROVIDER_DOWN

    body_str = str(json_body).lower() if json_body else ""

    if status_code in (401, 403) or "api_key_invalid" in body_str:
        return ProviderErrorClass.INVALID_KEY
    if status_code == 429 or "resource_exhausted" in body_str:
        return ProviderErrorClass.RATE_LIMIT
    if status_code == 404:
        return ProviderErrorClass.MODEL_NOT_AVAILABLE
    if status_code >= 500:
        return ProviderErrorClass.PROVIDER_DOWN

    if status_code == 400:
        if _is_context_error(provider, json_body, body_str):
            return ProviderErrorClass.CONTEXT_TOO_LARGE
        if "model" in body_str and "not found" in body_str:
            return ProviderErrorClass.MODEL_NOT_AVAILABLE

    return ProviderErrorClass.PROVIDER_DOWN


def _is_context_error(provider: str, json_body: dict | None, body_str: str) -> bool:
    if provider in ("openai", "mistral"):
        error = (json_body or {}).get("error") or {}
        if isinstance(error, dict) and error.get("code") == "context_length_exceeded":
            return True
        return "maximum context length" in body_str
    if provider == "anthropic":
        return "invalid_request_error" in body_str and "too long" in body_str
    if provider == "gemini":
        return "exceeds the maximum" in body_str

    logger.warning("unknown_provider_for_error_classification", provider=provider)
    return False
