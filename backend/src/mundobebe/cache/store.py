"""Cache stores with tag-based invalidation."""

from __future__ import annotations

import copy
import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from redis import Redis, RedisError


class CacheStoreError(Exception):
    """The cache store is unreachable or misbehaving."""

    pass


class CacheStore(Protocol):
    """Key/value store whose entries can be dropped by tag."""

    def get(self, key: str) -> tuple[bool, Any]:
        """Return ``(hit, value)``. A miss is ``(False, None)``."""
        ...

    def set(self, key: str, value: Any, ttl_seconds: int, tags: Iterable[str]) -> None:
        ...

    def invalidate_tag(self, tag: str) -> None:
        ...


@dataclass
class _Entry:
    value: Any
    expires_at: float
    tags: frozenset[str] = field(default_factory=frozenset)


class MemoryCacheStore:
    """In-process cache with TTL expiry and a tag index.

    Values are deep-copied on the way in and out so callers can never mutate
    a cached result.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._tag_index: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            if entry.expires_at <= self._clock():
                self._drop(key)
                return False, None
            return True, copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl_seconds: int, tags: Iterable[str]) -> None:
        tag_set = frozenset(tags)
        with self._lock:
            self._drop(key)
            self._entries[key] = _Entry(
                value=copy.deepcopy(value),
                expires_at=self._clock() + ttl_seconds,
                tags=tag_set,
            )
            for tag in tag_set:
                self._tag_index.setdefault(tag, set()).add(key)

    def invalidate_tag(self, tag: str) -> None:
        with self._lock:
            for key in list(self._tag_index.pop(tag, ())):
                self._drop(key)

    def __len__(self) -> int:
        return len(self._entries)

    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]


class RedisCacheStore:
    """Cache shared through Redis.

    Values are stored as JSON with an expiry. Each tag is a Redis set of the
    keys cached under it; invalidating a tag deletes those keys and the set.
    Redis failures surface as :class:`CacheStoreError`.
    """

    def __init__(self, client: Redis, prefix: str = "cache"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "cache") -> RedisCacheStore:
        return cls(Redis.from_url(url), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self._prefix}:tag:{tag}"

    def get(self, key: str) -> tuple[bool, Any]:
        try:
            raw = self._client.get(self._key(key))
        except RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
        if raw is None:
            return False, None
        return True, json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: int, tags: Iterable[str]) -> None:
        payload = json.dumps(value, default=str)
        try:
            pipe = self._client.pipeline()
            pipe.set(self._key(key), payload, ex=ttl_seconds)
            for tag in tags:
                pipe.sadd(self._tag_key(tag), self._key(key))
            pipe.execute()
        except RedisError as exc:
            raise CacheStoreError(str(exc)) from exc

    def invalidate_tag(self, tag: str) -> None:
        tag_key = self._tag_key(tag)
        try:
            members = self._client.smembers(tag_key)
            pipe = self._client.pipeline()
            if members:
                pipe.delete(*members)
            pipe.delete(tag_key)
            pipe.execute()
        except RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
