"""Explain-selection service.

Asks the provider to explain a highlighted passage in the context of the
chat it came from. Goes through the same usage gate and credential
resolution as chat; the free-usage counter moves only after a successful
call made on the server key. Nothing is persisted besides the counter.
"""

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from c3chat.logging import get_logger
from c3chat.schemas.chat import ExplainOut, ExplainRequest
from c3chat.services.llm import ProviderGateway, Turn
from c3chat.services.llm.prompt import render_explain_prompt
from c3chat.services.send_message import record_usage_only, resolve_chat_callable, run_with_session

logger = get_logger(__name__)


async def explain_selection(
    session_factory: sessionmaker[Session],
    gateway: ProviderGateway,
    user_id: UUID,
    request: ExplainRequest,
) -> ExplainOut:
    chat = await run_in_threadpool(
        run_with_session,
        session_factory,
        resolve_chat_callable,
        gateway,
        user_id,
        request.provider,
        request.model_id,
    )

    context = [Turn(role=m.role, content=m.content) for m in request.chat_context]
    explanation = await chat.invoke(render_explain_prompt(request.selected_text, context))

    if chat.key_source == "server":
        await run_in_threadpool(run_with_session, session_factory, record_usage_only, user_id)

    logger.info(
        "explain_completed",
        user_id=str(user_id),
        provider=chat.provider,
        key_source=chat.key_source,
        explanation_chars=len(explanation),
    )
    return ExplainOut(explanation=explanation)
