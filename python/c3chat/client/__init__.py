"""Client-side consumer of the chat stream.

Pure state reducer, an httpx stream client and a versioned message cache.
"""

from c3chat.client.cache import (
    CACHE_TTL_S,
    CACHE_VERSION,
    ChatCache,
    JsonFileBackend,
    MemoryBackend,
)
from c3chat.client.state import (
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
from c3chat.client.stream import ChatStreamClient

__all__ = [
    "CACHE_TTL_S",
    "CACHE_VERSION",
    "ChatCache",
    "ChatStreamClient",
    "ChatViewState",
    "ClientMessage",
    "ContentReceived",
    "Failed",
    "JsonFileBackend",
    "MemoryBackend",
    "MetadataReceived",
    "Reset",
    "SendStarted",
    "Settled",
    "reduce",
]
