"""Cached, tag-invalidated reads.

List and count queries are cached under a canonical key derived from every
input that affects the result, and tagged with the entity names they read.
Writers invalidate those tags after committing.

The read path fails open: when the store is unavailable the value is
computed directly and simply not cached. Compute failures are never cached.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import hashlib
import json
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel

from mundobebe.actions.context import Action, ActionContext, Middleware
from mundobebe.cache.store import CacheStore, CacheStoreError

logger = logging.getLogger(__name__)


def _canonical(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise TypeError(f"Cannot build a cache key from {type(value).__name__}")


def cache_key(*parts: Any) -> str:
    """Build a stable key from arbitrary query inputs.

    Parts are serialized as JSON with sorted keys, so logically identical
    inputs always produce the same key regardless of dict ordering.

    Returns:
        A hex SHA-256 digest prefixed with the first string part, if any
    """
    serialized = json.dumps(
        parts,
        sort_keys=True,
        separators=(",", ":"),
        default=_canonical,
        ensure_ascii=False,
    )
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    if parts and isinstance(parts[0], str):
        return f"{parts[0]}:{digest}"
    return digest


async def cached_read(
    store: CacheStore,
    compute: Callable[[], Awaitable[Any]],
    key_parts: Iterable[Any],
    ttl_seconds: int,
    tags: Iterable[str],
) -> Any:
    """Return a cached value or compute and cache it.

    Args:
        store: Cache store
        compute: Async callable producing the value on a miss
        key_parts: Everything that affects the result
        ttl_seconds: Time-based expiry
        tags: Tags the entry is invalidated by

    Returns:
        The cached or freshly computed value

    Raises:
        Whatever ``compute`` raises; failures are not cached.
    """
    key = cache_key(*key_parts)
    tag_list = list(tags)

    try:
        hit, value = store.get(key)
    except CacheStoreError as exc:
        logger.warning("Cache unavailable, computing %s directly: %s", key, exc)
        return await compute()
    if hit:
        return value

    value = await compute()

    try:
        store.set(key, value, ttl_seconds, tag_list)
    except CacheStoreError as exc:
        logger.warning("Could not cache %s: %s", key, exc)
    return value


def invalidate_tags(store: CacheStore, *tags: str) -> None:
    """Invalidate every tag after a committed write.

    The write has already succeeded, so store failures are logged and do
    not fail the mutation.
    """
    for tag in tags:
        try:
            store.invalidate_tag(tag)
        except CacheStoreError as exc:
            logger.error("Failed to invalidate cache tag %s: %s", tag, exc)


def with_cache(
    store: CacheStore,
    key_prefix: str,
    ttl_seconds: int,
    tags: Iterable[str],
    key_extra: Callable[[Any, ActionContext], Any] | None = None,
) -> Middleware:
    """Cache the result of a read action keyed by its (validated) input.

    Args:
        store: Cache store
        key_prefix: First key part, usually the entity name
        ttl_seconds: Time-based expiry
        tags: Tags the entry is invalidated by
        key_extra: Optional function adding context-dependent key parts,
            e.g. the viewer for role-scoped lists
    """
    tag_list = list(tags)

    def stage(action: Action) -> Action:
        @functools.wraps(action)
        async def handler(data: Any, ctx: ActionContext) -> Any:
            parts: list[Any] = [key_prefix, data]
            if key_extra is not None:
                parts.append(key_extra(data, ctx))
            return await cached_read(
                store,
                lambda: action(data, ctx),
                parts,
                ttl_seconds,
                tag_list,
            )

        return handler

    return stage
