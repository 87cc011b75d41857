"""Tests for the log-key guard."""

import pytest

from c3chat.services.redact import hash_text, safe_kv


class TestSafeKv:
    def test_allowed_keys_pass_through(self):
        assert safe_kv(provider="openai", latency_ms=12) == {"provider": "openai", "latency_ms": 12}

    @pytest.mark.parametrize("key", ["prompt", "content", "query", "api_key", "token"])
    def test_forbidden_keys_raise_in_test_env(self, key):
        with pytest.raises(ValueError, match=key):
            safe_kv(**{key: "secret value"})

    @pytest.mark.parametrize(
        "key", ["prompt_chars", "content_length", "query_sha256", "token_hash"]
    )
    def test_redacted_suffixes_are_allowed(self, key):
        assert safe_kv(**{key: 1}) == {key: 1}

    def test_forbidden_keys_dropped_when_not_strict(self):
        assert safe_kv(_strict=False, prompt="hello", provider="openai") == {"provider": "openai"}


class TestHashText:
    def test_stable_sha256(self):
        assert hash_text("abc") == hash_text("abc")
        assert len(hash_text("abc")) == 64
        assert hash_text("abc") != hash_text("abd")
