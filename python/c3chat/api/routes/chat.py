"""Chat routes.

- POST /chat: send a message (buffered JSON or streamed records)
- GET /chat: list chats, or the messages of one chat with ?chatId=
- DELETE /chat/{chat_id}: soft-delete one chat
- DELETE /chat: soft-delete all of the viewer's chats

All routes require authentication.
Response envelope: {"data": ...}
Error envelope: {"error": {"code": "...", "message": "...", "request_id": "..."}}

Streaming responses carry `data: {json}` records (metadata, content, done,
error); errors detected before the first record are returned as regular
error envelopes with their HTTP status.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, sessionmaker

from c3chat.api.deps import get_db, get_gateway, get_search_client, get_session_factory
from c3chat.auth.middleware import Viewer, get_viewer
from c3chat.responses import success_response
from c3chat.schemas.chat import ChatListOut, ChatRequest, MessageListOut, SuccessOut
from c3chat.services import chats as chats_service
from c3chat.services import send_message as send_message_service
from c3chat.services.llm import ProviderGateway
from c3chat.services.search import WebSearchClient
from c3chat.services.send_message_stream import STREAM_HEADERS, stream_send_message

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=None)
async def post_chat(
    body: ChatRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    session_factory: Annotated[sessionmaker[Session], Depends(get_session_factory)],
    gateway: Annotated[ProviderGateway, Depends(get_gateway)],
    search_client: Annotated[WebSearchClient, Depends(get_search_client)],
) -> dict | StreamingResponse:
    """Send a message and get the assistant reply.

    Buffered (stream=false): {"data": {"reply", "chatId", "searchResults"}}
    Streaming (stream=true): text/event-stream of framed records.

    Errors (no side effects):
        E_INVALID_REQUEST (400), E_UNSUPPORTED_PROVIDER (400),
        E_NO_CREDENTIAL (400), E_QUOTA_EXCEEDED (403),
        E_USER_NOT_FOUND (404), E_CHAT_NOT_FOUND (404)
    Errors (buffered mode, user message kept):
        E_PROVIDER_INVOCATION (502), E_PERSISTENCE (500)
    """
    chat = await send_message_service.prevalidate_send(
        session_factory, gateway, viewer.user_id, body
    )

    if body.stream:
        return StreamingResponse(
            stream_send_message(session_factory, search_client, viewer.user_id, body, chat),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    reply = await send_message_service.send_message(
        session_factory, search_client, viewer.user_id, body, chat
    )
    return success_response(reply.to_wire())


@router.get("/chat")
def get_chat(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    chat_id: Annotated[UUID | None, Query(alias="chatId")] = None,
) -> dict:
    """List chats, or one chat's messages.

    Without chatId: {"data": {"chats": [...]}} most recently updated first.
    With chatId: {"data": {"messages": [...]}} in conversation order.

    Errors:
        E_CHAT_NOT_FOUND (404): Not owned by the viewer, or deleted.
    """
    if chat_id is None:
        out = ChatListOut(chats=chats_service.list_chats(db, viewer.user_id))
    else:
        out = MessageListOut(messages=chats_service.list_messages(db, viewer.user_id, chat_id))
    return success_response(out.to_wire())


@router.delete("/chat/{chat_id}")
def delete_chat(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Soft-delete one chat.

    Errors:
        E_CHAT_NOT_FOUND (404): Not owned by the viewer, or already deleted.
    """
    chats_service.delete_chat(db, viewer.user_id, chat_id)
    return success_response(SuccessOut().to_wire())


@router.delete("/chat")
def delete_all_chats(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Soft-delete every chat of the viewer. Rows are kept."""
    chats_service.delete_all_chats(db, viewer.user_id)
    return success_response(SuccessOut().to_wire())
