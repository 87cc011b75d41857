"""Integration tests for authentication middleware and user bootstrap.

Tests the full auth flow including:
- Bearer token validation at the middleware boundary
- Public paths that skip authentication
- User bootstrap on first authenticated request, including races
"""

import time
from concurrent.futures import ThreadPoolExecutor

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from c3chat.db.models import User
from c3chat.db.session import get_session_factory
from c3chat.services.bootstrap import ensure_user
from tests.helpers import (
    DEFAULT_AUDIENCE,
    DEFAULT_ISSUER,
    auth_headers,
    create_test_user_id,
    mint_test_token,
)


def mint_token_with_bad_signature(user_id) -> str:
    """Well-formed token signed by a key the verifier has never seen."""
    stranger = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = stranger.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": DEFAULT_ISSUER,
        "aud": DEFAULT_AUDIENCE,
        "iat": now,
        "exp": now + 3600,
    }
    return jwt.encode(payload, pem, algorithm="RS256")


class TestAuthBoundary:
    """Unauthenticated requests are rejected before any handler runs."""

    def test_no_authorization_header(self, client):
        response = client.get("/me")

        assert response.status_code == 401
        data = response.json()
        assert data["error"]["code"] == "E_UNAUTHENTICATED"
        assert "authentication" in data["error"]["message"].lower()

    def test_wrong_authorization_format(self, client):
        response = client.get("/me", headers={"Authorization": "Basic abc123"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_empty_bearer_token(self, client):
        response = client.get("/me", headers={"Authorization": "Bearer "})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_invalid_token_bad_signature(self, client):
        user_id = create_test_user_id()
        token = mint_token_with_bad_signature(user_id)

        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        with get_session_factory()() as db:
            assert db.get(User, user_id) is None

    def test_wrong_audience(self, client):
        token = mint_test_token(create_test_user_id(), audience="someone-else")

        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_bearer_scheme_is_case_insensitive(self, client):
        user_id = create_test_user_id()

        response = client.get(
            "/me", headers={"Authorization": f"bearer {mint_test_token(user_id)}"}
        )

        assert response.status_code == 200

    @pytest.mark.parametrize("path", ["/health", "/openapi.json"])
    def test_public_paths_skip_auth(self, client, path):
        assert client.get(path).status_code == 200

    def test_shared_chat_prefix_is_public(self, client):
        # reaches the handler: unknown token, not a missing-auth error
        response = client.get("/shared-chat/" + "0" * 32)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_NOT_FOUND"


class TestBootstrap:
    def test_first_request_creates_user(self, client):
        user_id = create_test_user_id()

        response = client.get("/me", headers=auth_headers(user_id, email="a@example.com"))

        assert response.status_code == 200
        with get_session_factory()() as db:
            user = db.get(User, user_id)
            assert user is not None
            assert user.email == "a@example.com"
            assert user.free_usage_count == 0

    def test_repeat_requests_reuse_the_row(self, client):
        user_id = create_test_user_id()

        for _ in range(3):
            assert client.get("/me", headers=auth_headers(user_id)).status_code == 200

        with get_session_factory()() as db:
            assert db.query(User).filter_by(id=user_id).count() == 1

    def test_email_is_refreshed(self, client):
        user_id = create_test_user_id()
        client.get("/me", headers=auth_headers(user_id, email="old@example.com"))

        client.get("/me", headers=auth_headers(user_id, email="new@example.com"))

        with get_session_factory()() as db:
            assert db.get(User, user_id).email == "new@example.com"

    def test_bootstrap_keeps_usage_count(self, client):
        user_id = create_test_user_id()
        client.get("/me", headers=auth_headers(user_id))
        with get_session_factory()() as db:
            db.get(User, user_id).free_usage_count = 6
            db.commit()

        data = client.get("/me", headers=auth_headers(user_id)).json()["data"]

        assert data["freeUsageCount"] == 6

    def test_concurrent_first_requests_single_user(self):
        user_id = create_test_user_id()

        def bootstrap():
            with get_session_factory()() as db:
                return ensure_user(db, user_id).id

        with ThreadPoolExecutor(max_workers=4) as pool:
            ids = [f.result() for f in [pool.submit(bootstrap) for _ in range(4)]]

        assert ids == [user_id] * 4
        with get_session_factory()() as db:
            assert db.query(User).filter_by(id=user_id).count() == 1
