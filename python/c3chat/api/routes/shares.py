"""Chat sharing routes.

- POST /share-chat/{chat_id}: create (or return) the chat's share token
- GET /shared-chat/{share_token}: public read, no authentication
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from c3chat.api.deps import get_db
from c3chat.auth.middleware import Viewer, get_viewer
from c3chat.responses import success_response
from c3chat.schemas.chat import ShareOut
from c3chat.services import shares as shares_service

router = APIRouter(tags=["shares"])


@router.post("/share-chat/{chat_id}")
def share_chat(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Share a chat. Idempotent: an already-shared chat keeps its token.

    Errors:
        E_CHAT_NOT_FOUND (404): Not owned by the viewer, or deleted.
    """
    token = shares_service.share_chat(db, viewer.user_id, chat_id)
    return success_response(ShareOut(share_token=token).to_wire())


@router.get("/shared-chat/{share_token}")
def get_shared_chat(
    share_token: str,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Read a shared chat and its messages.

    Errors:
        E_NOT_FOUND (404): Unknown token or deleted chat.
    """
    return success_response(shares_service.get_shared_chat(db, share_token).to_wire())
