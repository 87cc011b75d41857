"""User API key, model listing and profile schemas.

No secret ever leaves the backend: key responses carry only the provider,
the last-4 fingerprint and its masked form.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field, field_validator

from c3chat.schemas.common import CamelModel
from c3chat.services.llm.gateway import PROVIDERS, canonical_provider

MIN_API_KEY_LENGTH = 20
MAX_API_KEY_LENGTH = 512

KeySource = Literal["user", "server"]


class UserApiKeyOut(CamelModel):
    """Safe view of a stored key.

    Excluded fields (never present in responses): encrypted_key, key_nonce,
    master_key_version.
    """

    provider: str
    key_fingerprint: str
    masked_key: str
    created_at: datetime
    updated_at: datetime


class UserApiKeyListOut(CamelModel):
    keys: list[UserApiKeyOut]


class UserApiKeyUpsert(CamelModel):
    """Request schema for POST /user-api-key (upsert by provider)."""

    provider: str
    api_key: str = Field(..., min_length=1, max_length=MAX_API_KEY_LENGTH)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Accept aliases (claude, google); store the canonical name."""
        provider = canonical_provider(v)
        if provider is None:
            raise ValueError(f"Provider must be one of: {', '.join(PROVIDERS)}")
        return provider

    @field_validator("api_key")
    @classmethod
    def validate_api_key_format(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_API_KEY_LENGTH:
            raise ValueError("API key too short")
        if any(c.isspace() for c in v):
            raise ValueError("API key contains whitespace")
        return v


class ModelOut(CamelModel):
    id: str
    name: str
    description: str = ""
    provider: str
    key_source: KeySource


class ModelListOut(CamelModel):
    models: list[ModelOut]


class MeOut(CamelModel):
    user_id: UUID
    email: str | None = None
    free_usage_count: int
    free_usage_limit: int
