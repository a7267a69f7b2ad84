"""Tests for cache keys, cached reads and tag invalidation."""

import json
from datetime import date
from unittest.mock import MagicMock

import pytest
from redis import ConnectionError as RedisConnectionError

from mundobebe.actions import ActionContext
from mundobebe.cache import (
    CacheStoreError,
    MemoryCacheStore,
    RedisCacheStore,
    cache_key,
    cached_read,
    invalidate_tags,
    with_cache,
)
from mundobebe.datatable import ListQuery


class Computer:
    """Async compute function counting its invocations."""

    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


class BrokenStore:
    def get(self, key):
        raise CacheStoreError("down")

    def set(self, key, value, ttl_seconds, tags):
        raise CacheStoreError("down")

    def invalidate_tag(self, tag):
        raise CacheStoreError("down")


# =============================================================================
# cache_key
# =============================================================================


class TestCacheKey:
    def test_dict_order_does_not_matter(self):
        a = cache_key("categories", {"page": 1, "name": "ropa"})
        b = cache_key("categories", {"name": "ropa", "page": 1})
        assert a == b

    def test_different_inputs_differ(self):
        assert cache_key("categories", {"page": 1}) != cache_key("categories", {"page": 2})

    def test_prefixed_with_first_string_part(self):
        assert cache_key("colors", {}).startswith("colors:")

    def test_models_dates_and_sets(self):
        query = ListQuery.model_validate({"page": "2"})
        key = cache_key("sizes", query, date(2024, 1, 31), {"b", "a"})

        assert key == cache_key("sizes", ListQuery(page=2), date(2024, 1, 31), {"a", "b"})

    def test_unsupported_part_raises(self):
        with pytest.raises(TypeError):
            cache_key("x", object())


# =============================================================================
# Memory store
# =============================================================================


class TestMemoryCacheStore:
    def test_get_set_and_expiry(self, clock):
        store = MemoryCacheStore(clock=clock)
        store.set("k", {"a": 1}, 60, ["t"])

        assert store.get("k") == (True, {"a": 1})
        clock.advance(60)
        assert store.get("k") == (False, None)
        assert len(store) == 0

    def test_returned_values_are_copies(self, clock):
        store = MemoryCacheStore(clock=clock)
        store.set("k", {"rows": [1]}, 60, [])

        _, value = store.get("k")
        value["rows"].append(2)

        assert store.get("k") == (True, {"rows": [1]})

    def test_invalidate_tag_drops_only_tagged_entries(self, clock):
        store = MemoryCacheStore(clock=clock)
        store.set("a", 1, 60, ["categories"])
        store.set("b", 2, 60, ["categories", "subcategories"])
        store.set("c", 3, 60, ["colors"])

        store.invalidate_tag("categories")

        assert store.get("a") == (False, None)
        assert store.get("b") == (False, None)
        assert store.get("c") == (True, 3)

    def test_invalidating_unknown_tag_is_a_no_op(self, clock):
        store = MemoryCacheStore(clock=clock)
        store.set("a", 1, 60, ["x"])
        store.invalidate_tag("nope")
        assert store.get("a") == (True, 1)


# =============================================================================
# Redis store
# =============================================================================


class TestRedisCacheStore:
    def test_get_decodes_json(self):
        client = MagicMock()
        client.get.return_value = json.dumps({"total": 3})
        store = RedisCacheStore(client, prefix="mb")

        assert store.get("k") == (True, {"total": 3})
        client.get.assert_called_once_with("mb:k")

    def test_miss(self):
        client = MagicMock()
        client.get.return_value = None
        assert RedisCacheStore(client).get("k") == (False, None)

    def test_set_indexes_tags(self):
        client = MagicMock()
        pipe = client.pipeline.return_value
        store = RedisCacheStore(client, prefix="mb")

        store.set("k", [1, 2], 120, ["categories", "subcategories"])

        pipe.set.assert_called_once_with("mb:k", "[1, 2]", ex=120)
        pipe.sadd.assert_any_call("mb:tag:categories", "mb:k")
        pipe.sadd.assert_any_call("mb:tag:subcategories", "mb:k")
        pipe.execute.assert_called_once()

    def test_invalidate_deletes_members_and_tag_set(self):
        client = MagicMock()
        client.smembers.return_value = {b"mb:k1"}
        pipe = client.pipeline.return_value
        store = RedisCacheStore(client, prefix="mb")

        store.invalidate_tag("categories")

        pipe.delete.assert_any_call(b"mb:k1")
        pipe.delete.assert_any_call("mb:tag:categories")

    def test_redis_errors_become_cache_store_errors(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("refused")

        with pytest.raises(CacheStoreError):
            RedisCacheStore(client).get("k")


# =============================================================================
# cached_read
# =============================================================================


class TestCachedRead:
    @pytest.mark.asyncio
    async def test_second_read_is_served_from_cache(self, clock):
        store = MemoryCacheStore(clock=clock)
        compute = Computer({"data": []})

        first = await cached_read(store, compute, ["categories", {}], 60, ["categories"])
        second = await cached_read(store, compute, ["categories", {}], 60, ["categories"])

        assert first == second == {"data": []}
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_invalidation_forces_recompute(self, clock):
        store = MemoryCacheStore(clock=clock)
        compute = Computer(1)
        await cached_read(store, compute, ["categories"], 60, ["categories"])

        invalidate_tags(store, "categories")
        await cached_read(store, compute, ["categories"], 60, ["categories"])

        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_compute_failures_are_not_cached(self, clock):
        store = MemoryCacheStore(clock=clock)

        async def failing():
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await cached_read(store, failing, ["k"], 60, [])

        assert len(store) == 0
        compute = Computer("ok")
        assert await cached_read(store, compute, ["k"], 60, []) == "ok"
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_fails_open_when_store_is_down(self):
        compute = Computer(42)

        assert await cached_read(BrokenStore(), compute, ["k"], 60, ["t"]) == 42
        assert await cached_read(BrokenStore(), compute, ["k"], 60, ["t"]) == 42
        assert compute.calls == 2

    def test_invalidation_failures_are_logged_not_raised(self, caplog):
        invalidate_tags(BrokenStore(), "categories", "colors")

        assert "categories" in caplog.text
        assert "colors" in caplog.text


# =============================================================================
# with_cache stage
# =============================================================================


class TestWithCache:
    @pytest.mark.asyncio
    async def test_keyed_by_input(self, clock):
        store = MemoryCacheStore(clock=clock)
        calls = []

        async def list_rows(data, ctx):
            calls.append(data)
            return {"page": data["page"]}

        action = with_cache(store, "colors", 60, ["colors"])(list_rows)
        ctx = ActionContext()

        await action({"page": 1}, ctx)
        await action({"page": 1}, ctx)
        await action({"page": 2}, ctx)

        assert calls == [{"page": 1}, {"page": 2}]

    @pytest.mark.asyncio
    async def test_key_extra_separates_viewers(self, clock):
        store = MemoryCacheStore(clock=clock)
        calls = []

        async def list_rows(data, ctx):
            calls.append(ctx.client_ip)
            return ctx.client_ip

        action = with_cache(
            store, "users", 60, ["users"],
            key_extra=lambda data, ctx: ctx.client_ip,
        )(list_rows)

        assert await action({}, ActionContext(client_ip="a")) == "a"
        assert await action({}, ActionContext(client_ip="b")) == "b"
        assert await action({}, ActionContext(client_ip="a")) == "a"
        assert calls == ["a", "b"]
