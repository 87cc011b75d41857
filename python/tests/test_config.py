"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from c3chat.config import Environment, Settings


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "C3CHAT_ENV": "test",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


class TestDefaults:
    def test_usage_and_timeouts(self):
        s = _make_settings()

        assert s.c3chat_env == Environment.TEST
        assert s.free_usage_limit == 10
        assert s.search_timeout_s == 15.0
        assert s.page_fetch_timeout_s == 10.0
        assert s.enable_openai and s.enable_anthropic and s.enable_gemini and s.enable_mistral

    def test_server_key_lookup(self):
        s = _make_settings(OPENAI_API_KEY="sk-1", GEMINI_API_KEY="g-1")

        assert s.server_key_for("openai") == "sk-1"
        assert s.server_key_for("gemini") == "g-1"
        assert s.server_key_for("anthropic") is None
        assert s.server_key_for("cohere") is None

    def test_search_configured_needs_both_values(self):
        assert not _make_settings(GOOGLE_SEARCH_API_KEY="k").search_configured
        assert _make_settings(
            GOOGLE_SEARCH_API_KEY="k", GOOGLE_SEARCH_ENGINE_ID="cx"
        ).search_configured


class TestParsing:
    def test_audiences_and_issuer(self):
        s = _make_settings(AUTH_AUDIENCES=" a, b ,,c", AUTH_ISSUER="https://id.example/")

        assert s.audience_list == ["a", "b", "c"]
        assert s.normalized_issuer == "https://id.example"

    def test_cors_origins(self):
        s = _make_settings(CORS_ORIGINS="https://a.test, https://b.test")
        assert s.cors_origin_list == ["https://a.test", "https://b.test"]
        assert _make_settings().cors_origin_list == []


class TestValidation:
    def test_database_url_required(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, C3CHAT_ENV="test")

    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_deployed_env_requires_auth_and_key(self, env, monkeypatch):
        monkeypatch.delenv("C3CHAT_KEY_ENCRYPTION_KEY", raising=False)
        with pytest.raises(ValidationError) as exc_info:
            _make_settings(C3CHAT_ENV=env)

        message = str(exc_info.value)
        assert "AUTH_JWKS_URL" in message
        assert "C3CHAT_KEY_ENCRYPTION_KEY" in message

    def test_deployed_env_fully_configured(self):
        s = _make_settings(
            C3CHAT_ENV="prod",
            AUTH_JWKS_URL="https://id.example/jwks.json",
            AUTH_ISSUER="https://id.example",
            C3CHAT_KEY_ENCRYPTION_KEY="a2V5",
        )
        assert s.c3chat_env == Environment.PROD

    def test_negative_free_usage_limit(self):
        with pytest.raises(ValidationError):
            _make_settings(FREE_USAGE_LIMIT=-1)
