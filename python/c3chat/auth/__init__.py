"""Authentication module.

This module provides:
- Token verification (JWKS verifier)
- Auth middleware for FastAPI
- Request state with viewer identity

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

from c3chat.auth.middleware import AuthMiddleware, Viewer, get_viewer
from c3chat.auth.verifier import JwksVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "JwksVerifier",
    "TokenVerifier",
    "Viewer",
    "get_viewer",
]
