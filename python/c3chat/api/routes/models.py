"""Model listing route.

GET /models lists models from every enabled provider the viewer can reach,
each tagged with keySource "user" (own key) or "server" (shared key).
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from c3chat.api.deps import get_gateway, get_session_factory
from c3chat.auth.middleware import Viewer, get_viewer
from c3chat.responses import success_response
from c3chat.schemas.keys import ModelListOut
from c3chat.services.llm import ProviderGateway
from c3chat.services.models import list_available_models
from c3chat.services.send_message import run_with_session
from c3chat.services.user_keys import get_user_keys_plaintext

router = APIRouter(tags=["models"])


@router.get("/models")
async def list_models(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    session_factory: Annotated[sessionmaker[Session], Depends(get_session_factory)],
    gateway: Annotated[ProviderGateway, Depends(get_gateway)],
) -> dict:
    """{"data": {"models": [{id, name, description, provider, keySource}]}}"""
    user_keys = await run_in_threadpool(
        run_with_session, session_factory, get_user_keys_plaintext, viewer.user_id
    )
    models = await list_available_models(gateway, user_keys)
    return success_response(ModelListOut(models=models).to_wire())
