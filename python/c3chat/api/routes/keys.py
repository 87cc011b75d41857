"""User API key routes.

Routes are transport-only: each calls exactly one service function.

- GET /user-api-key: list stored keys (masked, no secrets)
- POST /user-api-key: upsert the key for a provider (encrypted at rest)
- DELETE /user-api-key?provider=: delete the key for a provider

Security invariants:
- Responses never include plaintext, ciphertext, nonce or key version
- Plaintext keys are never logged
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from c3chat.api.deps import get_db
from c3chat.auth.middleware import Viewer, get_viewer
from c3chat.errors import ApiErrorCode, InvalidRequestError
from c3chat.responses import success_response
from c3chat.schemas.chat import SuccessOut
from c3chat.schemas.keys import UserApiKeyListOut, UserApiKeyUpsert
from c3chat.services import user_keys as user_keys_service
from c3chat.services.llm import canonical_provider

router = APIRouter(tags=["keys"])


@router.get("/user-api-key")
def list_keys(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the viewer's keys: {"data": {"keys": [...]}}."""
    keys = user_keys_service.list_user_keys(db, viewer.user_id)
    return success_response(UserApiKeyListOut(keys=keys).to_wire())


@router.post("/user-api-key", status_code=201)
def upsert_key(
    body: UserApiKeyUpsert,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    """Add or replace the key for a provider.

    Returns:
        201 Created (new key) or 200 OK (replaced key), {"data": UserApiKeyOut}

    Errors:
        E_INVALID_REQUEST (400): Unknown provider, key too short or with whitespace
    """
    key_out, is_created = user_keys_service.upsert_user_key(
        db, viewer.user_id, body.provider, body.api_key
    )
    if not is_created:
        response.status_code = 200
    return success_response(key_out.to_wire())


@router.delete("/user-api-key")
def delete_key(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[str, Query(min_length=1)],
) -> dict:
    """Delete the key for a provider.

    Errors:
        E_INVALID_REQUEST (400): Unknown provider
        E_KEY_NOT_FOUND (404): No key stored for the provider
    """
    canonical = canonical_provider(provider)
    if canonical is None:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, f"Unknown provider: {provider}")
    user_keys_service.delete_user_key(db, viewer.user_id, canonical)
    return success_response(SuccessOut().to_wire())
