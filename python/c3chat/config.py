"""Application settings loaded from environment variables.

Environment Configuration:
    C3CHAT_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (required)

Auth Configuration (required in staging/prod):
    AUTH_JWKS_URL: Full URL to the identity provider's JWKS endpoint
    AUTH_ISSUER: Expected JWT issuer (trailing slash stripped)
    AUTH_AUDIENCES: Comma-separated list of allowed audiences

Provider Configuration:
    OPENAI_API_KEY / ANTHROPIC_API_KEY / GEMINI_API_KEY / MISTRAL_API_KEY:
        Server-wide keys used for free usage. A provider without a server key
        is only usable by callers who stored their own key.
    ENABLE_OPENAI / ENABLE_ANTHROPIC / ENABLE_GEMINI / ENABLE_MISTRAL:
        Feature flags; a disabled provider is rejected as unsupported.

Search Configuration:
    GOOGLE_SEARCH_API_KEY / GOOGLE_SEARCH_ENGINE_ID: Custom Search credentials.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - AUTH_JWKS_URL and AUTH_ISSUER are required in staging and prod
    - C3CHAT_KEY_ENCRYPTION_KEY is required in staging and prod
    """

    c3chat_env: Environment = Field(default=Environment.LOCAL, alias="C3CHAT_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Auth (JWKS-verified bearer tokens)
    auth_jwks_url: str | None = Field(default=None, alias="AUTH_JWKS_URL")
    auth_issuer: str | None = Field(default=None, alias="AUTH_ISSUER")
    auth_audiences: str = Field(default="authenticated", alias="AUTH_AUDIENCES")

    # Base64-encoded 32-byte key for stored user API keys
    c3chat_key_encryption_key: str | None = Field(
        default=None, alias="C3CHAT_KEY_ENCRYPTION_KEY"
    )

    # Server-wide provider keys (free usage)
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    mistral_api_key: str | None = Field(default=None, alias="MISTRAL_API_KEY")

    enable_openai: bool = Field(default=True, alias="ENABLE_OPENAI")
    enable_anthropic: bool = Field(default=True, alias="ENABLE_ANTHROPIC")
    enable_gemini: bool = Field(default=True, alias="ENABLE_GEMINI")
    enable_mistral: bool = Field(default=True, alias="ENABLE_MISTRAL")

    llm_timeout_s: float = Field(default=60.0, alias="LLM_TIMEOUT_S")
    free_usage_limit: int = Field(default=10, alias="FREE_USAGE_LIMIT")

    # Web search
    google_search_api_key: str | None = Field(default=None, alias="GOOGLE_SEARCH_API_KEY")
    google_search_engine_id: str | None = Field(default=None, alias="GOOGLE_SEARCH_ENGINE_ID")
    search_timeout_s: float = Field(default=15.0, alias="SEARCH_TIMEOUT_S")
    page_fetch_timeout_s: float = Field(default=10.0, alias="PAGE_FETCH_TIMEOUT_S")

    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure deployed environments are fully configured."""
        if self.c3chat_env in (Environment.STAGING, Environment.PROD):
            missing = []
            if not self.auth_jwks_url:
                missing.append("AUTH_JWKS_URL")
            if not self.auth_issuer:
                missing.append("AUTH_ISSUER")
            if not self.c3chat_key_encryption_key:
                missing.append("C3CHAT_KEY_ENCRYPTION_KEY")
            if missing:
                raise ValueError(
                    f"Missing required settings for C3CHAT_ENV={self.c3chat_env.value}: "
                    f"{', '.join(missing)}"
                )

        if self.free_usage_limit < 0:
            raise ValueError("FREE_USAGE_LIMIT must be >= 0")

        return self

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        return [a.strip() for a in self.auth_audiences.split(",") if a.strip()]

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.auth_issuer:
            return self.auth_issuer.rstrip("/")
        return None

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_origins:
            return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return []

    @property
    def search_configured(self) -> bool:
        return bool(self.google_search_api_key and self.google_search_engine_id)

    def server_key_for(self, provider: str) -> str | None:
        """Return the server-wide API key for a canonical provider name."""
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
            "mistral": self.mistral_api_key,
        }.get(provider)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
