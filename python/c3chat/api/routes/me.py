"""Current user endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from c3chat.api.deps import get_db
from c3chat.auth.middleware import Viewer, get_viewer
from c3chat.responses import success_response
from c3chat.schemas.keys import MeOut
from c3chat.services.usage import get_free_usage_limit, load_user

router = APIRouter()


@router.get("/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get the authenticated user and their free-usage standing.

    Errors:
        E_USER_NOT_FOUND (404): The user row is missing.
    """
    user = load_user(db, viewer.user_id)
    out = MeOut(
        user_id=user.id,
        email=user.email,
        free_usage_count=user.free_usage_count,
        free_usage_limit=get_free_usage_limit(),
    )
    return success_response(out.to_wire())
