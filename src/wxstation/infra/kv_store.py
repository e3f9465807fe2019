# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Key-value store adapters.

Redis is the system of record. When no Redis URL is configured the app runs
against a process-local dict with the same semantics (tests, local dev).
"""

from __future__ import annotations

import logging
import os
import time
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import redis

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://127.0.0.1:6379/0"


class KeyValueStore(Protocol):
    """Single-key primitives used by the repositories and the session store."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, *, ex: Optional[int] = None) -> None:
        ...

    def exists(self, key: str) -> bool:
        ...

    def mset(self, mapping: Mapping[str, str]) -> None:
        ...

    def mget(self, keys: Iterable[str]) -> List[Optional[str]]:
        ...

    def expire(self, key: str, seconds: int) -> bool:
        ...

    def delete(self, key: str) -> int:
        """Remove `key`; returns the number of keys removed (0 or 1)."""
        ...


class RedisStore:
    """Redis-backed store (redis-py, string responses)."""

    def __init__(self, url: str):
        self.url = url
        self.client = redis.Redis.from_url(url, decode_responses=True)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, *, ex: Optional[int] = None) -> None:
        self.client.set(key, value, ex=ex)

    def exists(self, key: str) -> bool:
        return self.client.exists(key) == 1

    def mset(self, mapping: Mapping[str, str]) -> None:
        self.client.mset(dict(mapping))

    def mget(self, keys: Iterable[str]) -> List[Optional[str]]:
        return self.client.mget(list(keys))

    def expire(self, key: str, seconds: int) -> bool:
        return bool(self.client.expire(key, seconds))

    def delete(self, key: str) -> int:
        return int(self.client.delete(key))


class InMemoryStore:
    """Dict-backed store with per-key expiry."""

    def __init__(self) -> None:
        # key -> (value, deadline or None)
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and time.monotonic() >= deadline:
            self._data.pop(key, None)
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        return self._live(key)

    def set(self, key: str, value: str, *, ex: Optional[int] = None) -> None:
        deadline = time.monotonic() + ex if ex else None
        self._data[key] = (str(value), deadline)

    def exists(self, key: str) -> bool:
        return self._live(key) is not None

    def mset(self, mapping: Mapping[str, str]) -> None:
        # MSET clears any TTL on the written keys
        for key, value in mapping.items():
            self._data[key] = (str(value), None)

    def mget(self, keys: Iterable[str]) -> List[Optional[str]]:
        return [self._live(k) for k in keys]

    def expire(self, key: str, seconds: int) -> bool:
        value = self._live(key)
        if value is None:
            return False
        self._data[key] = (value, time.monotonic() + seconds)
        return True

    def delete(self, key: str) -> int:
        entry = self._data.pop(key, None)
        if entry is None:
            return 0
        _, deadline = entry
        return 0 if deadline is not None and time.monotonic() >= deadline else 1

    def keys(self) -> List[str]:
        return [k for k in list(self._data) if self._live(k) is not None]


def build_store(url: Optional[str] = None) -> KeyValueStore:
    """Return a Redis store for `url` (or WXS_REDIS_URL), in-memory if empty."""
    if url is None:
        url = os.getenv("WXS_REDIS_URL", DEFAULT_REDIS_URL)
    url = (url or "").strip()
    if not url:
        logger.warning("WXS_REDIS_URL is empty: using in-memory store (data is lost on restart)")
        return InMemoryStore()
    logger.info("Key-value store: Redis")
    return RedisStore(url)
