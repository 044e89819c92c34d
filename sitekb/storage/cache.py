"""Persistence-agnostic cache backends.

A backend stores one JSON-serializable dict. Scoring code only sees
load() and save(), so the storage mechanism can be swapped freely.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Interface for loading and saving a single cached payload."""

    @abstractmethod
    def load(self) -> dict | None:
        """Return the cached payload, or None if nothing usable is cached."""
        ...

    @abstractmethod
    def save(self, payload: dict) -> None:
        """Persist the payload, replacing any previous one."""
        ...


class MemoryCache(CacheBackend):
    """Process-local cache, lost at shutdown."""

    def __init__(self, payload: dict | None = None):
        self._payload = payload

    def load(self) -> dict | None:
        return self._payload

    def save(self, payload: dict) -> None:
        self._payload = payload


class JsonFileCache(CacheBackend):
    """Cache stored as a JSON file on local disk."""

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load cache %s: %s", self._path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Cache %s does not hold an object, ignoring", self._path)
            return None
        return data

    def save(self, payload: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload), encoding="utf-8")
            logger.info("Saved cache file: %s", self._path)
        except OSError as e:
            logger.error("Failed to write cache %s: %s", self._path, e)
