"""Log guard and hashing utilities.

Never logged: API keys, bearer tokens, prompts, message content, search
queries, page bodies. Their length or hash may be logged under a key with
one of the REDACTED_SUFFIXES.
"""

import hashlib

import structlog

from c3chat.config import Environment, get_settings

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "content",
        "query",
        "api_key",
        "bearer",
        "token",
        "share_token",
        "secret",
        "password",
        "message_text",
        "selected_text",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """Stable SHA-256 hex digest, for log correlation without exposing text."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _strict_env() -> bool:
    return get_settings().c3chat_env in (Environment.LOCAL, Environment.TEST)


def safe_kv(*, _strict: bool | None = None, **kwargs) -> dict:
    """Return kwargs unchanged after checking no forbidden key is present.

    Raises ValueError in local/test if a forbidden key is used; in staging
    and prod the offending keys are dropped and a warning is logged.

    Usage:
        logger.info("llm.request.started", **safe_kv(
            provider="openai",
            prompt_chars=1234,        # OK: _chars suffix
            # prompt="hello world",   # BLOCKED
        ))
    """
    violations = [
        key
        for key in kwargs
        if key in FORBIDDEN_KEYS and not key.endswith(REDACTED_SUFFIXES)
    ]
    if not violations:
        return kwargs

    strict = _strict_env() if _strict is None else _strict
    msg = f"Forbidden log keys without redacted suffix: {violations}"
    if strict:
        raise ValueError(msg)

    structlog.get_logger(__name__).warning("safe_kv_violation", forbidden_keys=violations)
    return {k: v for k, v in kwargs.items() if k not in violations}
