"""Explain-selection route."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, sessionmaker

from c3chat.api.deps import get_gateway, get_session_factory
from c3chat.auth.middleware import Viewer, get_viewer
from c3chat.responses import success_response
from c3chat.schemas.chat import ExplainRequest
from c3chat.services.explain import explain_selection
from c3chat.services.llm import ProviderGateway

router = APIRouter(tags=["explain"])


@router.post("/explain")
async def explain(
    body: ExplainRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    session_factory: Annotated[sessionmaker[Session], Depends(get_session_factory)],
    gateway: Annotated[ProviderGateway, Depends(get_gateway)],
) -> dict:
    """Explain highlighted text: {"data": {"explanation": "..."}}.

    Same usage gate and errors as POST /chat (buffered).
    """
    out = await explain_selection(session_factory, gateway, viewer.user_id, body)
    return success_response(out.to_wire())
