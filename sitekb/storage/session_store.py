"""Keyed session store with time-based expiry.

Replaces process-wide call-state maps: a store is created by the
composition root, handed to the components that need it, and closed at
shutdown.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Interface for per-key mutable state with expiry."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def expire(self) -> int:
        """Drop every entry past its deadline. Returns the number dropped."""
        ...

    def close(self) -> None:
        """Release resources held by the store."""


class InMemorySessionStore(SessionStore):
    """Dict-backed store. Expired entries vanish on read or on expire()."""

    def __init__(
        self,
        default_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and self._clock() > deadline:
            del self._entries[key]
            logger.debug("Session %s expired on read", key)
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        deadline = self._clock() + ttl if ttl is not None else None
        self._entries[key] = (value, deadline)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def expire(self) -> int:
        now = self._clock()
        stale = [k for k, (_, deadline) in self._entries.items() if deadline is not None and now > deadline]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.info("Expired %d sessions", len(stale))
        return len(stale)

    def keys(self) -> list[str]:
        self.expire()
        return list(self._entries)

    def close(self) -> None:
        self._entries.clear()
