"""Test helpers for authentication, fake providers and common test operations.

Provides:
- Token minting for test authentication
- Header generation for test requests
- FakeAdapter / FakeSearchClient doubles for the provider and search seams
- Direct DB helpers for seeding users, keys and chats
"""

import json
import time
from collections.abc import AsyncIterator
from uuid import UUID, uuid4

import httpx
import jwt
from sqlalchemy import func, select

from c3chat.db.models import ChatSession, Message, User
from c3chat.db.session import get_session_factory
from c3chat.schemas.search import SearchBundle, SearchResult
from c3chat.services.llm import ProviderGateway
from c3chat.services.llm.adapter import LLMAdapter
from c3chat.services.llm.types import LLMChunk, LLMRequest, LLMResponse, ModelInfo
from c3chat.services.user_keys import upsert_user_key
from tests.support.jwt_verifier import MockJwtVerifier

# Default test token settings
DEFAULT_ISSUER = "test-issuer"
DEFAULT_AUDIENCE = "test-audience"
DEFAULT_EXPIRES_IN = 3600  # 1 hour

SERVER_KEY = "sk-server-0000000000000000000000"
USER_KEY = "sk-user-1111111111111111111111abcd"


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
    **extra_claims,
) -> str:
    """Mint a valid test JWT token with `sub` set to user_id."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": issuer,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, MockJwtVerifier.get_private_key(), algorithm="RS256")


def mint_expired_token(user_id: UUID | str) -> str:
    return mint_test_token(user_id, expires_in=-3600)


def auth_headers(user_id: UUID | str, **token_kwargs) -> dict[str, str]:
    """Return headers dict with valid Authorization for the given user."""
    token = mint_test_token(user_id, **token_kwargs)
    return {"Authorization": f"Bearer {token}"}


def create_test_user_id() -> UUID:
    return uuid4()


# =============================================================================
# Provider and search doubles
# =============================================================================


class FakeAdapter(LLMAdapter):
    """In-memory adapter: replays fixed deltas, or fails on demand.

    `fail_after` raises `error` after that many deltas in streaming mode;
    in buffered mode any `error` is raised immediately.
    """

    def __init__(
        self,
        provider: str = "openai",
        deltas: list[str] | None = None,
        error: Exception | None = None,
        fail_after: int | None = None,
        models: list[ModelInfo] | None = None,
    ):
        super().__init__(client=None)
        self.provider = provider
        self.deltas = deltas if deltas is not None else ["Hello", ", ", "world"]
        self.error = error
        self.fail_after = fail_after
        self.models = models or [ModelInfo("fake-model", "Fake Model", "For tests")]
        self.requests: list[LLMRequest] = []
        self.api_keys: list[str] = []
        self.stream_closed = False

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: float) -> LLMResponse:
        self.requests.append(req)
        self.api_keys.append(api_key)
        if self.error is not None:
            raise self.error
        return LLMResponse(text="".join(self.deltas), provider_request_id="req-fake")

    async def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: float
    ) -> AsyncIterator[LLMChunk]:
        self.requests.append(req)
        self.api_keys.append(api_key)
        try:
            for i, delta in enumerate(self.deltas):
                if self.error is not None and self.fail_after == i:
                    raise self.error
                yield LLMChunk(delta_text=delta, done=False)
            if self.error is not None and self.fail_after is None:
                raise self.error
            yield LLMChunk(delta_text="", done=True, provider_request_id="req-fake")
        finally:
            self.stream_closed = True

    async def list_models(self, *, api_key: str, timeout_s: float) -> list[ModelInfo]:
        self.api_keys.append(api_key)
        if self.error is not None:
            raise self.error
        return list(self.models)


def make_gateway(
    *adapters: FakeAdapter,
    server_keys: dict[str, str | None] | None = None,
) -> ProviderGateway:
    """A real ProviderGateway whose adapters are swapped for fakes."""
    if server_keys is None:
        server_keys = {"openai": SERVER_KEY}
    gateway = ProviderGateway(httpx.AsyncClient(), server_keys=server_keys)
    for adapter in adapters:
        gateway._adapters[adapter.provider] = adapter
    return gateway


class FakeSearchClient:
    """Stands in for WebSearchClient; returns a fixed bundle."""

    def __init__(self, bundle: SearchBundle | None = None):
        self.bundle = bundle
        self.queries: list[tuple[str, int | None]] = []

    async def search(self, query: str, max_results: int | None = 5) -> SearchBundle:
        self.queries.append((query, max_results))
        if self.bundle is not None:
            return self.bundle
        return SearchBundle(
            query=query,
            results=[
                SearchResult(
                    title="Example Domain",
                    url="https://example.com/",
                    snippet="An example page.",
                    content="Example body text. " * 10,
                )
            ],
            total_results=1,
        )


# =============================================================================
# Database helpers
# =============================================================================


def create_user(user_id: UUID | None = None, free_usage_count: int = 0) -> UUID:
    user_id = user_id or create_test_user_id()
    with get_session_factory()() as db:
        db.add(User(id=user_id, email=f"{user_id}@example.com", free_usage_count=free_usage_count))
        db.commit()
    return user_id


def store_user_key(user_id: UUID, provider: str = "openai", api_key: str = USER_KEY) -> None:
    with get_session_factory()() as db:
        upsert_user_key(db, user_id, provider, api_key)


def get_free_usage_count(user_id: UUID) -> int:
    with get_session_factory()() as db:
        return db.get(User, user_id).free_usage_count


def count_chats(user_id: UUID, include_deleted: bool = True) -> int:
    stmt = select(func.count()).select_from(ChatSession).where(ChatSession.user_id == user_id)
    if not include_deleted:
        stmt = stmt.where(ChatSession.is_deleted.is_(False))
    with get_session_factory()() as db:
        return db.scalar(stmt)


def get_messages(chat_id: UUID) -> list[tuple[str, str]]:
    """(role, content) pairs of a chat in seq order."""
    with get_session_factory()() as db:
        rows = db.execute(
            select(Message.role, Message.content)
            .where(Message.chat_id == chat_id)
            .order_by(Message.seq)
        ).all()
    return [(role, content) for role, content in rows]


def count_messages(user_id: UUID) -> int:
    with get_session_factory()() as db:
        return db.scalar(
            select(func.count())
            .select_from(Message)
            .join(ChatSession, Message.chat_id == ChatSession.id)
            .where(ChatSession.user_id == user_id)
        )


def chat_request(content: str = "What is 2+2?", **overrides) -> dict:
    """Wire-format POST /chat body, buffered unless `stream=True` is passed."""
    body = {
        "messages": [{"role": "user", "content": content}],
        "provider": "openai",
        "stream": False,
    }
    body.update(overrides)
    return body


def parse_stream(text: str) -> list[dict]:
    """Split a streamed body into its JSON records."""
    records = []
    for line in text.splitlines():
        if line.startswith("data: "):
            records.append(json.loads(line[len("data: ") :]))
    return records
