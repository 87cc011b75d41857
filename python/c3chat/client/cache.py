"""Versioned local cache of server-confirmed chat messages.

Advisory only: the server stays authoritative. Entries are
`{"version", "saved_at", "messages"}` keyed by chat id. `get` discards an
entry whose version differs from CACHE_VERSION or that is older than the
TTL, so callers never see stale or incompatible data.
"""

import json
import os
import tempfile
import time
from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Protocol

from c3chat.client.state import ClientMessage
from c3chat.logging import get_logger

logger = get_logger(__name__)

CACHE_VERSION = 1
CACHE_TTL_S = 30 * 60


class CacheBackend(Protocol):
    def load(self, key: str) -> dict | None: ...

    def save(self, key: str, entry: dict) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryBackend:
    def __init__(self):
        self._entries: dict[str, dict] = {}

    def load(self, key: str) -> dict | None:
        return self._entries.get(key)

    def save(self, key: str, entry: dict) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class JsonFileBackend:
    """All entries in one JSON object on disk, rewritten atomically."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(
                "chat_cache_unreadable", path=str(self.path), error_type=type(e).__name__
            )
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load(self, key: str) -> dict | None:
        return self._read().get(key)

    def save(self, key: str, entry: dict) -> None:
        data = self._read()
        data[key] = entry
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def clear(self) -> None:
        self._write({})


class ChatCache:
    def __init__(
        self,
        backend: CacheBackend | None = None,
        *,
        ttl_s: float = CACHE_TTL_S,
        clock: Callable[[], float] = time.time,
    ):
        self._backend = backend if backend is not None else MemoryBackend()
        self._ttl_s = ttl_s
        self._clock = clock

    def get(self, chat_id: str) -> list[ClientMessage] | None:
        """Cached messages, or None if missing, expired or from another version."""
        entry = self._backend.load(chat_id)
        if entry is None:
            return None

        if entry.get("version") != CACHE_VERSION:
            self.invalidate(chat_id)
            return None
        saved_at = entry.get("saved_at")
        if not isinstance(saved_at, (int, float)) or self._clock() - saved_at > self._ttl_s:
            self.invalidate(chat_id)
            return None

        try:
            return [ClientMessage(**m) for m in entry["messages"]]
        except (KeyError, TypeError):
            self.invalidate(chat_id)
            return None

    def set(self, chat_id: str, messages: list[ClientMessage] | tuple[ClientMessage, ...]) -> None:
        self._backend.save(
            chat_id,
            {
                "version": CACHE_VERSION,
                "saved_at": self._clock(),
                "messages": [asdict(m) for m in messages],
            },
        )

    def invalidate(self, chat_id: str) -> None:
        self._backend.delete(chat_id)

    def clear(self) -> None:
        self._backend.clear()
