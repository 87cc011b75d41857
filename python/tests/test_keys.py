"""Tests for bring-your-own-key management.

Tests cover:
- GET /user-api-key: safe fields only, owner scoped
- POST /user-api-key: 201 on create, 200 on replace, validation, aliases
- DELETE /user-api-key?provider=: physical delete, 404 when absent
- A stored key that no longer decrypts is treated as absent
"""

from sqlalchemy import select, update

from c3chat.db.models import UserApiKey
from c3chat.db.session import get_session_factory
from c3chat.services.user_keys import get_user_key_plaintext
from tests.helpers import SERVER_KEY, USER_KEY, auth_headers, chat_request, create_user

OTHER_KEY = "sk-other-2222222222222222222222wxyz"

SECRET_FIELDS = ("encryptedKey", "keyNonce", "masterKeyVersion", "apiKey")


def put_key(client, user_id, provider="openai", api_key=USER_KEY):
    return client.post(
        "/user-api-key",
        json={"provider": provider, "apiKey": api_key},
        headers=auth_headers(user_id),
    )


def list_keys(client, user_id) -> list[dict]:
    return client.get("/user-api-key", headers=auth_headers(user_id)).json()["data"]["keys"]


class TestUpsertKey:
    def test_create_then_replace(self, client, user_id):
        created = put_key(client, user_id)
        replaced = put_key(client, user_id, api_key=OTHER_KEY)

        assert created.status_code == 201
        assert replaced.status_code == 200
        assert replaced.json()["data"]["keyFingerprint"] == "wxyz"
        assert len(list_keys(client, user_id)) == 1
        with get_session_factory()() as db:
            assert get_user_key_plaintext(db, user_id, "openai") == OTHER_KEY

    def test_response_is_masked(self, client, user_id):
        data = put_key(client, user_id).json()["data"]

        assert data["provider"] == "openai"
        assert data["maskedKey"] == "********abcd"
        assert USER_KEY not in str(data)
        for field in SECRET_FIELDS:
            assert field not in data

    def test_ciphertext_differs_per_upsert(self, client, user_id):
        put_key(client, user_id)
        with get_session_factory()() as db:
            first = db.scalars(select(UserApiKey.encrypted_key)).one()

        put_key(client, user_id)
        with get_session_factory()() as db:
            second = db.scalars(select(UserApiKey.encrypted_key)).one()

        assert first != second
        assert USER_KEY.encode() not in first

    def test_alias_is_stored_canonically(self, client, user_id):
        response = put_key(client, user_id, provider="claude")

        assert response.status_code == 201
        assert response.json()["data"]["provider"] == "anthropic"

    def test_short_key(self, client, user_id):
        response = put_key(client, user_id, api_key="sk-short")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_key_with_whitespace(self, client, user_id):
        response = put_key(client, user_id, api_key="sk-has space 1234567890123456")
        assert response.status_code == 400

    def test_surrounding_whitespace_is_trimmed(self, client, user_id):
        assert put_key(client, user_id, api_key=f"  {USER_KEY}\n").status_code == 201
        with get_session_factory()() as db:
            assert get_user_key_plaintext(db, user_id, "openai") == USER_KEY

    def test_unknown_provider(self, client, user_id):
        response = put_key(client, user_id, provider="cohere")

        assert response.status_code == 400
        assert list_keys(client, user_id) == []


class TestListKeys:
    def test_owner_scoped(self, client, user_id):
        put_key(client, create_user())
        put_key(client, user_id, provider="gemini")

        keys = list_keys(client, user_id)

        assert [k["provider"] for k in keys] == ["gemini"]
        for field in SECRET_FIELDS:
            assert field not in keys[0]


class TestDeleteKey:
    def test_delete(self, client, user_id):
        put_key(client, user_id)

        response = client.delete("/user-api-key?provider=openai", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert list_keys(client, user_id) == []

    def test_delete_by_alias(self, client, user_id):
        put_key(client, user_id, provider="gemini")

        response = client.delete("/user-api-key?provider=google", headers=auth_headers(user_id))

        assert response.status_code == 200

    def test_missing_key(self, client, user_id):
        response = client.delete("/user-api-key?provider=mistral", headers=auth_headers(user_id))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_KEY_NOT_FOUND"

    def test_unknown_provider(self, client, user_id):
        response = client.delete("/user-api-key?provider=cohere", headers=auth_headers(user_id))
        assert response.status_code == 400

    def test_provider_is_required(self, client, user_id):
        response = client.delete("/user-api-key", headers=auth_headers(user_id))
        assert response.status_code == 400


class TestStoredKeyInUse:
    def test_deleted_key_falls_back_to_free_usage(self, client, adapter, user_id):
        put_key(client, user_id)
        client.delete("/user-api-key?provider=openai", headers=auth_headers(user_id))

        client.post("/chat", json=chat_request(), headers=auth_headers(user_id))

        assert adapter.api_keys == [SERVER_KEY]

    def test_undecryptable_key_is_no_credential(self, client, user_id):
        put_key(client, user_id)
        with get_session_factory()() as db:
            db.execute(update(UserApiKey).values(encrypted_key=b"\x00" * 48))
            db.commit()

        response = client.post("/chat", json=chat_request(), headers=auth_headers(user_id))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_NO_CREDENTIAL"
