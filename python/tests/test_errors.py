"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape
- Every error code maps to an HTTP status
- Unknown exceptions return E_INTERNAL with 500 and no details
- Validation failures and malformed JSON return E_INVALID_REQUEST
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from c3chat.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
)
from c3chat.responses import error_response, success_response, unhandled_exception_handler
from c3chat.services.llm import (
    NoCredentialError,
    ProviderErrorClass,
    ProviderInvocationError,
    UnsupportedProviderError,
)
from tests.helpers import auth_headers


class TestEnvelopes:
    def test_success(self):
        assert success_response({"x": 1}) == {"data": {"x": 1}}

    def test_error_shape(self):
        response = error_response(ApiErrorCode.E_NOT_FOUND, "Resource not found", "req-1")

        assert response == {
            "error": {"code": "E_NOT_FOUND", "message": "Resource not found", "request_id": "req-1"}
        }

    def test_request_id_omitted_outside_a_request(self):
        assert "request_id" not in error_response(ApiErrorCode.E_INTERNAL, "x")["error"]


class TestErrorCodes:
    @pytest.mark.parametrize("code", list(ApiErrorCode))
    def test_every_code_has_a_status(self, code):
        assert code in ERROR_CODE_TO_STATUS

    @pytest.mark.parametrize(
        "error,status,code",
        [
            (NotFoundError(), 404, ApiErrorCode.E_NOT_FOUND),
            (QuotaExceededError(), 403, ApiErrorCode.E_QUOTA_EXCEEDED),
            (PersistenceError(), 500, ApiErrorCode.E_PERSISTENCE),
            (UnsupportedProviderError("cohere"), 400, ApiErrorCode.E_UNSUPPORTED_PROVIDER),
            (NoCredentialError("openai"), 400, ApiErrorCode.E_NO_CREDENTIAL),
            (
                ProviderInvocationError("openai", ProviderErrorClass.TIMEOUT, "slow"),
                502,
                ApiErrorCode.E_PROVIDER_INVOCATION,
            ),
        ],
    )
    def test_subclass_status(self, error, status, code):
        assert error.status_code == status
        assert error.code == code

    def test_provider_detail_is_not_the_message(self):
        error = ProviderInvocationError("openai", ProviderErrorClass.INVALID_KEY, "HTTP 401")

        assert error.message == "The AI provider rejected the API key."
        assert "401" not in error.message


class TestHandlers:
    @pytest.fixture
    def bare_client(self):
        app = FastAPI()
        app.add_exception_handler(Exception, unhandled_exception_handler)

        @app.get("/boom")
        def boom():
            raise RuntimeError("database password is hunter2")

        return TestClient(app, raise_server_exceptions=False)

    def test_unhandled_exception(self, bare_client):
        response = bare_client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_INTERNAL"
        assert "hunter2" not in response.text

    def test_api_error_through_app(self, client, user_id):
        response = client.delete(
            "/chat/00000000-0000-0000-0000-000000000000", headers=auth_headers(user_id)
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_CHAT_NOT_FOUND"

    def test_unknown_route(self, client, user_id):
        response = client.get("/nope", headers=auth_headers(user_id))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_NOT_FOUND"

    def test_api_error_is_an_exception(self):
        with pytest.raises(ApiError):
            raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
