"""
Key/value state store.

Everything the service persists (credential, streak pair, history, one entry
per cached challenge day) goes through this string-to-string interface so the
orchestrator and ledger can be handed an in-memory fake in tests.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Protocol

from redis import Redis

from dojo.core.config import Settings, settings

logger = logging.getLogger("dojo")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class StoreKeys:
    """Logical key layout under a namespace prefix."""

    def __init__(self, namespace: str = "od"):
        self.namespace = namespace

    @property
    def credential(self) -> str:
        return f"{self.namespace}_gemini_key"

    @property
    def streak(self) -> str:
        return f"{self.namespace}_streak"

    @property
    def streak_date(self) -> str:
        return f"{self.namespace}_streak_date"

    @property
    def history(self) -> str:
        return f"{self.namespace}_history"

    def challenge(self, cache_key: str) -> str:
        return f"{self.namespace}_challenge_{cache_key}"


class InMemoryStore:
    """Process-local store. Used in tests and single-process development."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()
        self.writes: list[tuple[str, str]] = []

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self.writes.append((key, value))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class RedisStore:
    """Redis-backed store. No check-and-set; concurrent instances may race."""

    def __init__(self, client: Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    def delete(self, key: str) -> None:
        self._client.delete(key)


def build_store(settings_obj: Optional[Settings] = None) -> KeyValueStore:
    """Create the configured store backend."""
    cfg = settings_obj or settings
    backend = (cfg.STORE_BACKEND or "memory").lower()
    if backend == "redis":
        if not cfg.REDIS_URL:
            raise RuntimeError("STORE_BACKEND=redis requires REDIS_URL")
        logger.info("store.backend", extra={"event_type": "store.redis"})
        return RedisStore.from_url(cfg.REDIS_URL)
    if backend != "memory":
        raise RuntimeError(f"Unknown STORE_BACKEND: {cfg.STORE_BACKEND}")
    return InMemoryStore()
