"""HTTP client that drives a ChatViewState from the /chat stream.

`send` yields the state after every applied action so a UI can re-render
as the reply grows. Once the server confirms the exchange (a `done` record
or a buffered reply) the chat is refetched and the cache stores the server's
rows, ids included.
"""

from collections.abc import AsyncIterator

import httpx
from pydantic import ValidationError

from c3chat.client.cache import ChatCache
from c3chat.client.state import (
    Action,
    ChatViewState,
    ClientMessage,
    ContentReceived,
    Failed,
    MetadataReceived,
    Reset,
    SendStarted,
    Settled,
    reduce,
)
from c3chat.logging import get_logger
from c3chat.schemas.chat import (
    StreamContent,
    StreamDone,
    StreamError,
    StreamMetadata,
    decode_record,
)

logger = get_logger(__name__)

DATA_PREFIX = "data: "
JSON_CONTENT = "application/json"
INTERRUPTED_ERROR = "The response was interrupted. Please try again."
NETWORK_ERROR = "Could not reach the server. Please try again."


def record_to_action(record) -> Action:
    if isinstance(record, StreamMetadata):
        return MetadataReceived(chat_id=str(record.chat_id))
    if isinstance(record, StreamContent):
        return ContentReceived(full_content=record.full_content)
    if isinstance(record, StreamDone):
        return Settled(full_content=record.full_content)
    if isinstance(record, StreamError):
        return Failed(error=record.error)
    raise TypeError(f"unknown stream record: {type(record).__name__}")


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"Request failed with status {response.status_code}"


class ChatStreamClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        cache: ChatCache | None = None,
    ):
        self._client = client
        self._token = token
        self._cache = cache if cache is not None else ChatCache()

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def load_chat(self, chat_id: str) -> ChatViewState:
        """Cached messages when fresh, otherwise the server's copy."""
        cached = self._cache.get(chat_id)
        if cached is not None:
            return reduce(ChatViewState(), Reset(chat_id=chat_id, messages=tuple(cached)))
        return await self._fetch_chat(chat_id)

    async def _fetch_chat(self, chat_id: str) -> ChatViewState:
        response = await self._client.get(
            "/chat", params={"chatId": chat_id}, headers=self._headers
        )
        if response.status_code != 200:
            self._cache.invalidate(chat_id)
            return ChatViewState(chat_id=chat_id, error=_error_message(response))

        messages = tuple(
            ClientMessage(id=m["id"], role=m["role"], content=m["content"])
            for m in response.json()["data"]["messages"]
        )
        self._cache.set(chat_id, messages)
        return reduce(ChatViewState(), Reset(chat_id=chat_id, messages=messages))

    async def send(
        self,
        state: ChatViewState,
        content: str,
        *,
        provider: str,
        model_id: str | None = None,
        search: bool = False,
        stream: bool = True,
    ) -> AsyncIterator[ChatViewState]:
        """Send `content` and yield the view state after every change.

        Works with both response modes: a streamed body is applied record by
        record, a buffered JSON body settles the reply in one step.
        """
        started = reduce(state, SendStarted.new(content))
        if started is state:
            # a send is already in flight
            return
        state = started
        yield state

        body = {
            "messages": [
                {"role": m.role, "content": m.content}
                for m in state.messages
                if not m.is_streaming
            ],
            "provider": provider,
            "stream": stream,
            "search": search,
        }
        if model_id:
            body["modelId"] = model_id
        if state.chat_id:
            body["chatId"] = state.chat_id

        try:
            async with self._client.stream(
                "POST", "/chat", json=body, headers=self._headers
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    yield reduce(state, Failed(error=_error_message(response)))
                    return

                if response.headers.get("content-type", "").startswith(JSON_CONTENT):
                    updates = self._apply_buffered(response, state)
                else:
                    updates = self._apply_records(response, state)
                async for state in updates:
                    yield state
        except httpx.HTTPError as e:
            logger.warning("stream_request_failed", error_type=type(e).__name__)
            yield reduce(state, Failed(error=NETWORK_ERROR))
            return

        if not state.is_loading and state.error is None and state.chat_id:
            await self._refresh_cache(state.chat_id)

    async def _refresh_cache(self, chat_id: str) -> None:
        """Cache the server's rows for a settled exchange.

        The view keeps its optimistic ids; the cache only ever holds
        server-confirmed messages, so it is dropped when the refetch fails.
        """
        try:
            await self._fetch_chat(chat_id)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning("chat_cache_refresh_failed", error_type=type(e).__name__)
            self._cache.invalidate(chat_id)

    async def _apply_records(
        self, response: httpx.Response, state: ChatViewState
    ) -> AsyncIterator[ChatViewState]:
        async for line in response.aiter_lines():
            if not line.startswith(DATA_PREFIX):
                continue
            try:
                record = decode_record(line[len(DATA_PREFIX) :])
            except ValidationError:
                logger.warning("stream_record_invalid")
                continue

            next_state = reduce(state, record_to_action(record))
            if next_state is not state:
                state = next_state
                yield state
            if isinstance(record, (StreamDone, StreamError)):
                return

        # body ended without a terminal record
        yield reduce(state, Failed(error=INTERRUPTED_ERROR))

    async def _apply_buffered(
        self, response: httpx.Response, state: ChatViewState
    ) -> AsyncIterator[ChatViewState]:
        await response.aread()
        try:
            data = response.json()["data"]
            action = Settled(full_content=data["reply"], chat_id=data["chatId"])
        except (ValueError, KeyError, TypeError):
            action = Failed(error=INTERRUPTED_ERROR)
        yield reduce(state, action)
