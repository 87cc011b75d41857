"""Token verification implementations.

Provides:
- TokenVerifier: Protocol for token verification
- JwksVerifier: Verifier backed by the identity provider's JWKS endpoint

Note: Test-only verifiers are in tests/support/jwt_verifier.py
"""

import logging
import threading
from typing import Any, Protocol
from uuid import UUID

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)

from c3chat.errors import ApiError, ApiErrorCode

logger = logging.getLogger(__name__)

CLOCK_SKEW_SECONDS = 60


class TokenVerifier(Protocol):
    """Protocol for token verification.

    Implementations must verify JWT tokens and return decoded claims.
    """

    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
            ApiError(E_AUTH_UNAVAILABLE): Infrastructure failure (JWKS unreachable).
        """
        ...


def validate_claims(payload: dict[str, Any]) -> dict[str, Any]:
    """Check the claims every verifier relies on: sub must be a UUID."""
    sub = payload.get("sub")
    if not sub:
        logger.warning("auth_failure", extra={"reason": "missing_sub"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: missing sub")

    try:
        UUID(sub)
    except (ValueError, TypeError) as e:
        logger.warning("auth_failure", extra={"reason": "invalid_sub"})
        raise ApiError(
            ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: sub is not a valid UUID"
        ) from e

    return payload


def decode_token(token: str, key: Any, *, issuer: str, audiences: list[str]) -> dict[str, Any]:
    """Decode and verify a JWT, mapping PyJWT failures to E_UNAUTHENTICATED."""
    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=["RS256", "ES256"],
            audience=audiences,
            issuer=issuer,
            leeway=CLOCK_SKEW_SECONDS,
            options={"require": ["exp", "iss", "sub"], "verify_aud": True},
        )
    except ExpiredSignatureError as e:
        logger.warning("auth_failure", extra={"reason": "expired_token"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Token expired") from e
    except InvalidSignatureError as e:
        logger.warning("auth_failure", extra={"reason": "invalid_signature"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token signature") from e
    except InvalidIssuerError as e:
        logger.warning("auth_failure", extra={"reason": "invalid_issuer"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token issuer") from e
    except InvalidAudienceError as e:
        logger.warning("auth_failure", extra={"reason": "invalid_audience"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token audience") from e
    except DecodeError as e:
        logger.warning("auth_failure", extra={"reason": "decode_error"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e
    except InvalidTokenError as e:
        logger.warning("auth_failure", extra={"reason": "invalid_token"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token") from e

    return validate_claims(payload)


class JwksVerifier:
    """Production token verifier using a JWKS endpoint.

    Validates:
    - Signature via JWKS (RS256 or ES256)
    - exp with 60s clock skew
    - iss matches configured issuer (after normalization)
    - aud must be in configured audience list
    - sub must be valid UUID
    """

    def __init__(self, jwks_url: str, issuer: str, audiences: list[str], cache_ttl: int = 3600):
        self.jwks_url = jwks_url
        self.issuer = issuer.rstrip("/")
        self.audiences = audiences
        self.cache_ttl = cache_ttl

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _get_jwks_client(self, refresh: bool = False) -> PyJWKClient:
        with self._jwks_lock:
            if self._jwks_client is None or refresh:
                self._jwks_client = PyJWKClient(
                    self.jwks_url,
                    cache_keys=True,
                    lifespan=self.cache_ttl,
                )
            return self._jwks_client

    def verify(self, token: str) -> dict[str, Any]:
        try:
            signing_key = self._get_signing_key(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", extra={"reason": "jwks_unavailable", "error": str(e)})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Authentication service unavailable",
            ) from e

        return decode_token(token, signing_key.key, issuer=self.issuer, audiences=self.audiences)

    def _get_signing_key(self, token: str) -> Any:
        """Get the signing key for the token, refreshing the JWKS once on kid miss."""
        client = self._get_jwks_client()

        try:
            return client.get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            if "Unable to find" not in str(e) and "kid" not in str(e).lower():
                raise

        logger.info("Refreshing JWKS due to kid miss")
        client = self._get_jwks_client(refresh=True)
        try:
            return client.get_signing_key_from_jwt(token)
        except PyJWKClientError as retry_e:
            logger.warning("auth_failure", extra={"reason": "kid_not_found"})
            raise ApiError(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid token: signing key not found",
            ) from retry_e
