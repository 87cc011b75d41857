"""Pytest configuration and fixtures for c3chat tests.

Test isolation strategy:
- The whole session runs against one throwaway SQLite file; tables are
  created once from the ORM metadata
- Every test starts from empty tables (rows are deleted after each test)
- Services open their own short-lived sessions, so tests read back through
  fresh sessions as well (see tests.helpers)
- Provider and search seams are replaced with in-memory doubles through
  FastAPI dependency overrides
"""

import base64
import os
import tempfile
from collections.abc import Generator
from pathlib import Path
from uuid import UUID

# Settings are read lazily, but must be in place before the first import
# that calls get_settings().
_db_dir = tempfile.mkdtemp(prefix="c3chat-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_db_dir) / 'c3chat_test.db'}"
os.environ["C3CHAT_ENV"] = "test"
os.environ["C3CHAT_KEY_ENCRYPTION_KEY"] = base64.b64encode(b"k" * 32).decode()
for _name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "MISTRAL_API_KEY"):
    os.environ.pop(_name, None)

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from c3chat.api.deps import get_gateway, get_search_client
from c3chat.app import add_request_id_middleware, create_app, create_bootstrap_callback
from c3chat.auth.middleware import AuthMiddleware
from c3chat.config import clear_settings_cache
from c3chat.db.engine import get_engine
from c3chat.db.models import Base
from c3chat.services.crypto import clear_master_key_cache
from tests.helpers import FakeAdapter, FakeSearchClient, create_user, make_gateway
from tests.support.jwt_verifier import MockJwtVerifier


@pytest.fixture(scope="session", autouse=True)
def database() -> Generator[None, None, None]:
    """Create the schema once for the whole test session."""
    clear_settings_cache()
    clear_master_key_cache()
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    """Delete every row after each test, children first."""
    yield
    engine = get_engine()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def adapter() -> FakeAdapter:
    """Fake OpenAI adapter replying "Hello, world" in three deltas."""
    return FakeAdapter()


@pytest.fixture
def gateway(adapter: FakeAdapter):
    return make_gateway(adapter)


@pytest.fixture
def search_client() -> FakeSearchClient:
    return FakeSearchClient()


@pytest.fixture
def app(gateway, search_client) -> FastAPI:
    """App with auth middleware using the test verifier and fake providers."""
    app = create_app(skip_auth_middleware=True)
    app.add_middleware(
        AuthMiddleware,
        verifier=MockJwtVerifier(),
        bootstrap_callback=create_bootstrap_callback(),
    )
    add_request_id_middleware(app, log_requests=False)

    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_search_client] = lambda: search_client
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def user_id() -> UUID:
    """A bootstrapped user with no free usage spent."""
    return create_user()
